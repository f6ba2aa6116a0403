"""
Risk Definition Engine - Collaborator Interfaces.

============================================================
PURPOSE
============================================================
The engine performs no I/O. Everything it needs from the
surrounding system is expressed here as an abstract base
class: the owning domain, the repositories that load it and
its risk-bearing elements, the event sink, and the template
migration service.

============================================================
TRANSACTIONS
============================================================
All calls happen inside one request-scoped transaction owned
by the caller. Concurrent saves of the same
(domain, risk definition ref) are serialized by the
persistence layer, not here.

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional

from .types import RiskDefinition


class DomainProtocol(ABC):
    """The aggregate that owns risk definitions, keyed by a symbolic ref."""

    @property
    @abstractmethod
    def id(self) -> Any:
        pass

    @property
    @abstractmethod
    def is_active(self) -> bool:
        pass

    @abstractmethod
    def get_risk_definition(self, ref: str) -> Optional[RiskDefinition]:
        pass

    @abstractmethod
    def apply_risk_definition(self, ref: str, definition: RiskDefinition) -> None:
        """Insert or replace the definition stored under ref."""
        pass

    @abstractmethod
    def remove_risk_definition(self, ref: str) -> None:
        pass

    @abstractmethod
    def set_updated_at(self, timestamp: datetime) -> None:
        pass


class DomainRepository(ABC):
    """Loads domains for the authenticated client."""

    @abstractmethod
    def get_by_id(self, domain_id: Any, client_id: Any) -> DomainProtocol:
        """
        Raises:
            NotFoundError: If the client owns no domain with that id
        """
        pass


class RiskAffectedElement(ABC):
    """An element that stores risk values or impacts for some risk definitions."""

    @abstractmethod
    def remove_risk_definition(self, ref: str, domain: DomainProtocol) -> bool:
        """Drop every value referring to ref. True if anything was removed."""
        pass

    @abstractmethod
    def set_updated_at(self, timestamp: datetime) -> None:
        pass


class RiskAffectedRepository(ABC):
    """Finds the risk-bearing elements of one element type."""

    @abstractmethod
    def find_by_domain(self, domain: DomainProtocol) -> Iterable[RiskAffectedElement]:
        pass


class TemplateItemMigrationService(ABC):
    """Strips risk definition references from catalog and profile items."""

    @abstractmethod
    def remove_risk_definition(self, domain: DomainProtocol, ref: str) -> None:
        pass
