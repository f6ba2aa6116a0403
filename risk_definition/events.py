"""
Risk Definition Engine - Change Events.

============================================================
PURPOSE
============================================================
Notification emitted after a risk definition was committed.

Downstream consumers (element-level risk recalculation,
impact inheritance, audit) subscribe to it. The engine only
publishes; it never waits for an acknowledgement.

============================================================
PUBLISHERS
============================================================
- LoggingEventPublisher: writes one INFO line per event
- CollectingEventPublisher: keeps events in memory (tests,
  batching by the caller)
- CompositeEventPublisher: fans out to several publishers

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Protocol

from .changes import (
    RiskDefinitionChange,
    RiskDefinitionChangeKind,
    get_effects,
    kinds_of,
    requires_migration,
    requires_risk_recalculation,
    sorted_changes,
)
from .interfaces import DomainProtocol
from .types import RiskDefinition


logger = logging.getLogger(__name__)


# ============================================================
# EVENT
# ============================================================


@dataclass(frozen=True)
class RiskDefinitionChangedEvent:
    """A committed risk definition version and how it differs from the previous one."""

    domain: DomainProtocol
    risk_definition_ref: str
    new_definition: RiskDefinition
    changes: FrozenSet[RiskDefinitionChange]
    source: str
    occurred_at: Optional[datetime] = field(compare=False, default=None)

    @property
    def change_kinds(self) -> FrozenSet[RiskDefinitionChangeKind]:
        return kinds_of(self.changes)

    @property
    def is_new_definition(self) -> bool:
        return RiskDefinitionChangeKind.NEW_RISK_DEFINITION in self.change_kinds

    @property
    def requires_risk_recalculation(self) -> bool:
        return requires_risk_recalculation(self.changes)

    @property
    def requires_migration(self) -> bool:
        return requires_migration(self.changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and the change log."""
        return {
            "domain_id": str(self.domain.id),
            "risk_definition_ref": self.risk_definition_ref,
            "changes": [repr(c) for c in sorted_changes(self.changes)],
            "change_kinds": sorted(k.value for k in self.change_kinds),
            "effects": [effect.description.get() for effect in get_effects(self.changes)],
            "source": self.source,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
        }


# ============================================================
# PUBLISHER PROTOCOL
# ============================================================


class EventPublisher(Protocol):
    """
    Protocol for event sinks.

    Fire-and-forget: the return value is ignored by the engine.
    """

    def publish(self, event: RiskDefinitionChangedEvent) -> None:
        ...


# ============================================================
# IMPLEMENTATIONS
# ============================================================


class LoggingEventPublisher:
    """Log every event (development, or as an audit side channel)."""

    def __init__(self, log: logging.Logger = logger):
        self._log = log

    def publish(self, event: RiskDefinitionChangedEvent) -> None:
        data = event.to_dict()
        self._log.info(
            f"Risk definition changed | domain={data['domain_id']} "
            f"ref={data['risk_definition_ref']} kinds={data['change_kinds']} "
            f"source={data['source']}"
        )


class CollectingEventPublisher:
    """Keep published events in memory."""

    def __init__(self):
        self._events: List[RiskDefinitionChangedEvent] = []

    @property
    def events(self) -> List[RiskDefinitionChangedEvent]:
        return list(self._events)

    def publish(self, event: RiskDefinitionChangedEvent) -> None:
        self._events.append(event)

    def clear(self) -> None:
        self._events.clear()


class CompositeEventPublisher:
    """Deliver each event to every registered publisher, in order."""

    def __init__(self, *publishers: EventPublisher):
        self._publishers: List[EventPublisher] = list(publishers)

    def add_publisher(self, publisher: EventPublisher) -> None:
        self._publishers.append(publisher)

    def publish(self, event: RiskDefinitionChangedEvent) -> None:
        for publisher in self._publishers:
            publisher.publish(event)
