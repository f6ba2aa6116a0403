"""
Tests for change events and publishers.
"""

import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from risk_definition.changes import (
    ChangeScope,
    ColorDiff,
    ListResize,
    MatrixPresence,
    RiskMatrixResize,
)
from risk_definition.domain import Domain
from risk_definition.events import (
    CollectingEventPublisher,
    CompositeEventPublisher,
    EventPublisher,
    LoggingEventPublisher,
    RiskDefinitionChangedEvent,
)

from tests.risk_definition.builders import definition


NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def event():
    return RiskDefinitionChangedEvent(
        domain=Domain(domain_id="d1", client_id="c1"),
        risk_definition_ref="id",
        new_definition=definition(),
        changes=frozenset({ColorDiff(ChangeScope.probability())}),
        source="risk_definition.engine",
        occurred_at=NOW,
    )


# ============================================================
# EVENT
# ============================================================

class TestEvent:
    """Test derived event properties."""

    def test_cosmetic_event(self, event):
        assert not event.is_new_definition
        assert not event.requires_migration
        assert not event.requires_risk_recalculation

    def test_to_dict(self, event):
        data = event.to_dict()

        assert data["domain_id"] == "d1"
        assert data["change_kinds"] == ["ColorDiff"]
        assert data["effects"] == []
        assert data["occurred_at"] == NOW.isoformat()

    def test_category_removal_event_requires_migration(self, event):
        removed = RiskDefinitionChangedEvent(
            domain=event.domain,
            risk_definition_ref="id",
            new_definition=definition(category_ids=("C",)),
            changes=frozenset({ListResize(ChangeScope.category_list(), ("I",))}),
            source=event.source,
        )

        assert removed.requires_migration
        assert "Risk values for category 'I' are removed from all risks." in removed.to_dict()["effects"]

    def test_added_matrix_event_requires_recalculation(self, event):
        added = RiskDefinitionChangedEvent(
            domain=event.domain,
            risk_definition_ref="id",
            new_definition=definition(),
            changes=frozenset({RiskMatrixResize(1, "I", MatrixPresence.ADDED)}),
            source=event.source,
        )

        assert added.requires_risk_recalculation
        assert added.requires_migration


# ============================================================
# PUBLISHERS
# ============================================================

class TestPublishers:
    """Test the publisher implementations."""

    def test_logging_publisher_writes_one_line(self, event):
        log = MagicMock(spec=logging.Logger)

        LoggingEventPublisher(log).publish(event)

        log.info.assert_called_once()
        (line,), _ = log.info.call_args
        assert "domain=d1" in line
        assert "ColorDiff" in line

    def test_collecting_publisher_clear(self, event):
        publisher = CollectingEventPublisher()
        publisher.publish(event)
        assert publisher.events == [event]

        publisher.clear()
        assert publisher.events == []

    def test_composite_fans_out_in_order(self, event):
        calls = []
        first = MagicMock(spec=EventPublisher)
        first.publish.side_effect = lambda e: calls.append("first")
        second = MagicMock(spec=EventPublisher)
        second.publish.side_effect = lambda e: calls.append("second")

        composite = CompositeEventPublisher(first)
        composite.add_publisher(second)
        composite.publish(event)

        first.publish.assert_called_once_with(event)
        second.publish.assert_called_once_with(event)
        assert calls == ["first", "second"]

    def test_composite_propagates_failures(self, event):
        failing = MagicMock(spec=EventPublisher)
        failing.publish.side_effect = RuntimeError("sink down")
        collector = CollectingEventPublisher()

        with pytest.raises(RuntimeError):
            CompositeEventPublisher(failing, collector).publish(event)

        assert collector.events == []
