"""
Risk Definition Engine - In-Process Domain.

============================================================
PURPOSE
============================================================
Plain implementation of DomainProtocol. The SQL repository
hydrates it from a row and writes it back; tests build it
directly.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from .interfaces import DomainProtocol
from .types import RiskDefinition


@dataclass
class DomainState:
    """Mutable fields of a domain."""

    domain_id: Any = field(default_factory=lambda: str(uuid4()))
    client_id: Any = None
    name: str = ""
    active: bool = True
    updated_at: Optional[datetime] = None
    risk_definitions: Dict[str, RiskDefinition] = field(default_factory=dict)


class Domain(DomainProtocol):
    """A domain owning risk definitions keyed by their symbolic ref."""

    def __init__(
        self,
        domain_id: Any = None,
        client_id: Any = None,
        name: str = "",
        active: bool = True,
        risk_definitions: Optional[Dict[str, RiskDefinition]] = None,
        updated_at: Optional[datetime] = None,
    ):
        self._state = DomainState(
            client_id=client_id,
            name=name,
            active=active,
            updated_at=updated_at,
            risk_definitions=dict(risk_definitions or {}),
        )
        if domain_id is not None:
            self._state.domain_id = domain_id

    @property
    def id(self) -> Any:
        return self._state.domain_id

    @property
    def client_id(self) -> Any:
        return self._state.client_id

    @property
    def name(self) -> str:
        return self._state.name

    @property
    def is_active(self) -> bool:
        return self._state.active

    @property
    def updated_at(self) -> Optional[datetime]:
        return self._state.updated_at

    @property
    def risk_definitions(self) -> Dict[str, RiskDefinition]:
        """Read-only view; mutate through apply/remove."""
        return dict(self._state.risk_definitions)

    def deactivate(self) -> None:
        self._state.active = False

    def get_risk_definition(self, ref: str) -> Optional[RiskDefinition]:
        return self._state.risk_definitions.get(ref)

    def apply_risk_definition(self, ref: str, definition: RiskDefinition) -> None:
        self._state.risk_definitions[ref] = definition

    def remove_risk_definition(self, ref: str) -> None:
        if ref not in self._state.risk_definitions:
            raise KeyError(ref)
        del self._state.risk_definitions[ref]

    def set_updated_at(self, timestamp: datetime) -> None:
        self._state.updated_at = timestamp

    def __repr__(self) -> str:
        return (
            f"Domain(id={self.id}, name={self.name!r}, active={self.is_active}, "
            f"risk_definitions={sorted(self._state.risk_definitions)})"
        )
