"""
Tests for the save state machine.
"""

from datetime import datetime, timezone

import pytest

from core.exceptions import InvalidStateTransitionError
from risk_definition.state_machine import ALLOWED_TRANSITIONS, SaveState, SaveWorkflow


AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestSaveWorkflow:
    """Test allowed and forbidden transitions."""

    def test_commit_path(self):
        workflow = SaveWorkflow("id")
        workflow.transition_to(SaveState.VALIDATED, at=AT)
        workflow.transition_to(SaveState.COMMITTED, at=AT)

        assert workflow.path() == (SaveState.DRAFT, SaveState.VALIDATED, SaveState.COMMITTED)
        assert workflow.is_terminal

    def test_reject_path(self):
        workflow = SaveWorkflow("id")
        workflow.transition_to(SaveState.VALIDATED, at=AT)
        transition = workflow.transition_to(SaveState.REJECTED, reason="ProbabilityListResize", at=AT)

        assert transition.from_state == SaveState.VALIDATED
        assert transition.reason == "ProbabilityListResize"
        assert workflow.state == SaveState.REJECTED

    def test_cannot_skip_validation(self):
        workflow = SaveWorkflow("id")
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            workflow.transition_to(SaveState.COMMITTED)
        assert exc_info.value.context["from_state"] == "DRAFT"
        assert workflow.state == SaveState.DRAFT

    @pytest.mark.parametrize("terminal", [SaveState.COMMITTED, SaveState.REJECTED])
    def test_terminal_states_have_no_exit(self, terminal):
        assert ALLOWED_TRANSITIONS[terminal] == set()
        workflow = SaveWorkflow("id", state=terminal)
        for target in SaveState:
            assert not workflow.can_transition_to(target)

    def test_fresh_workflow_path(self):
        assert SaveWorkflow("id").path() == (SaveState.DRAFT,)
