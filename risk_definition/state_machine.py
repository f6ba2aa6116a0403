"""
Risk Definition Engine - Save State Machine.

============================================================
PURPOSE
============================================================
Tracks one save request through its lifecycle.

STATE TRANSITION RULES:
- DRAFT -> VALIDATED: changes were detected against the
  stored version
- VALIDATED -> COMMITTED: every change kind is allowed, the
  domain was updated
- VALIDATED -> REJECTED: at least one change kind is not
  allowed, the domain is untouched

COMMITTED and REJECTED are terminal.

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from core.clock import now_utc
from core.exceptions import InvalidStateTransitionError


logger = logging.getLogger(__name__)


class SaveState(str, Enum):
    DRAFT = "DRAFT"
    VALIDATED = "VALIDATED"
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"


# ============================================================
# STATE TRANSITION RULES
# ============================================================

ALLOWED_TRANSITIONS: Dict[SaveState, Set[SaveState]] = {
    SaveState.DRAFT: {SaveState.VALIDATED},
    SaveState.VALIDATED: {SaveState.COMMITTED, SaveState.REJECTED},
    SaveState.COMMITTED: set(),
    SaveState.REJECTED: set(),
}

TERMINAL_STATES: Set[SaveState] = {SaveState.COMMITTED, SaveState.REJECTED}


# ============================================================
# SAVE WORKFLOW
# ============================================================


@dataclass
class SaveTransition:
    from_state: SaveState
    to_state: SaveState
    at: datetime
    reason: str = ""


@dataclass
class SaveWorkflow:
    """
    Lifecycle of a single save request.

    One instance per request; never reused.
    """

    risk_definition_ref: str
    state: SaveState = SaveState.DRAFT
    history: List[SaveTransition] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_transition_to(self, target: SaveState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def transition_to(
        self,
        target: SaveState,
        reason: str = "",
        at: Optional[datetime] = None,
    ) -> SaveTransition:
        """
        Move to target.

        Raises:
            InvalidStateTransitionError: If the rules above do not allow it
        """
        if not self.can_transition_to(target):
            raise InvalidStateTransitionError(
                f"Cannot move save of {self.risk_definition_ref} "
                f"from {self.state.value} to {target.value}",
                from_state=self.state.value,
                to_state=target.value,
            )

        transition = SaveTransition(
            from_state=self.state,
            to_state=target,
            at=at or now_utc(),
            reason=reason,
        )
        self.history.append(transition)
        self.state = target

        logger.debug(
            f"Save state transition | ref={self.risk_definition_ref} "
            f"{transition.from_state.value} -> {transition.to_state.value} reason={reason!r}"
        )
        return transition

    def path(self) -> Tuple[SaveState, ...]:
        """States visited so far, starting with DRAFT."""
        if not self.history:
            return (self.state,)
        return (self.history[0].from_state,) + tuple(t.to_state for t in self.history)
