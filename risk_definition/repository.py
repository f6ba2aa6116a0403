"""
Risk Definition Engine - Repository.

============================================================
PURPOSE
============================================================
SQL adapter for the engine's collaborator interfaces.

Provides:
- Loading a client's domain with its risk definitions
- Writing a domain back after a workflow ran
- Recording committed change sets
- Querying the change history of a risk definition

The repository only flushes. Commit and rollback belong to
the caller's transaction_scope().

============================================================
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError

from .changes import get_effects, sorted_changes
from .config import RiskDefinitionEngineConfig, get_default_config
from .domain import Domain
from .events import RiskDefinitionChangedEvent
from .interfaces import DomainRepository
from .models import DomainRecord, RiskDefinitionChangeRecord
from .types import RiskDefinition


logger = logging.getLogger(__name__)


class SqlDomainRepository(DomainRepository):
    """
    Repository for domain persistence operations.

    ============================================================
    METHODS
    ============================================================
    - get_by_id: Load a domain owned by a client
    - save: Insert or update a domain row
    - save_loaded: Write back every domain handed out
    - record_changes: Append a change log row
    - get_change_history: Change log of a domain or definition

    ============================================================
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self._session = session

        # Domains handed out by get_by_id, so workflow mutations can be written back
        self._loaded: Dict[str, Domain] = {}

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    def get_by_id(self, domain_id: Any, client_id: Any) -> Domain:
        """
        Load a domain.

        Repeated calls within one repository return the same
        instance.

        Raises:
            NotFoundError: If the client owns no domain with that id
        """
        loaded = self._loaded.get(str(domain_id))
        if loaded is not None and str(loaded.client_id) == str(client_id):
            return loaded

        stmt = select(DomainRecord).where(
            DomainRecord.id == str(domain_id),
            DomainRecord.client_id == str(client_id),
        )
        record = self._session.execute(stmt).scalar_one_or_none()
        if record is None:
            raise NotFoundError("Domain not found.", domain_id=domain_id)

        domain = self._to_domain(record)
        self._loaded[record.id] = domain
        return domain

    def get_change_history(
        self,
        domain_id: Any,
        risk_definition_ref: Optional[str] = None,
    ) -> List[RiskDefinitionChangeRecord]:
        """
        Change log rows, oldest first.

        Args:
            domain_id: Domain to query
            risk_definition_ref: Restrict to one definition
        """
        stmt = select(RiskDefinitionChangeRecord).where(
            RiskDefinitionChangeRecord.domain_id == str(domain_id)
        )
        if risk_definition_ref is not None:
            stmt = stmt.where(RiskDefinitionChangeRecord.risk_definition_ref == risk_definition_ref)
        stmt = stmt.order_by(RiskDefinitionChangeRecord.id)
        return list(self._session.execute(stmt).scalars().all())

    # --------------------------------------------------------
    # WRITE OPERATIONS
    # --------------------------------------------------------

    def save(self, domain: Domain) -> DomainRecord:
        """
        Insert or update the row of a domain.

        Returns:
            The flushed DomainRecord
        """
        record = self._session.get(DomainRecord, str(domain.id))
        if record is None:
            record = DomainRecord(id=str(domain.id), client_id=str(domain.client_id))
            self._session.add(record)

        record.name = domain.name
        record.active = domain.is_active
        record.updated_at = domain.updated_at
        record.risk_definitions = {
            ref: definition.to_dict()
            for ref, definition in sorted(domain.risk_definitions.items())
        }

        self._session.flush()
        logger.debug(
            f"Domain saved | domain={record.id} risk_definitions={sorted(record.risk_definitions)}"
        )
        return record

    def save_loaded(self) -> int:
        """Write back every domain loaded through this repository."""
        for domain in self._loaded.values():
            self.save(domain)
        return len(self._loaded)

    def record_changes(self, event: RiskDefinitionChangedEvent) -> RiskDefinitionChangeRecord:
        """Append one change log row for a committed save."""
        record = RiskDefinitionChangeRecord(
            domain_id=str(event.domain.id),
            risk_definition_ref=event.risk_definition_ref,
            change_kinds=sorted(kind.value for kind in event.change_kinds),
            changes=[repr(change) for change in sorted_changes(event.changes)],
            effects=[effect.description.get() for effect in get_effects(event.changes)],
            is_new=event.is_new_definition,
            source=event.source,
        )
        if event.occurred_at is not None:
            record.created_at = event.occurred_at

        self._session.add(record)
        self._session.flush()
        logger.info(
            f"Change log recorded | domain={record.domain_id} "
            f"ref={record.risk_definition_ref} kinds={record.change_kinds}"
        )
        return record

    # --------------------------------------------------------
    # MAPPING
    # --------------------------------------------------------

    @staticmethod
    def _to_domain(record: DomainRecord) -> Domain:
        return Domain(
            domain_id=record.id,
            client_id=record.client_id,
            name=record.name,
            active=record.active,
            updated_at=record.updated_at,
            risk_definitions={
                ref: RiskDefinition.from_dict(data)
                for ref, data in (record.risk_definitions or {}).items()
            },
        )


class ChangeLogPublisher:
    """
    Event publisher that writes the change log through a repository.

    Honors persist_change_log of the engine configuration.
    """

    def __init__(
        self,
        repository: SqlDomainRepository,
        config: Optional[RiskDefinitionEngineConfig] = None,
    ):
        self._repository = repository
        self._config = config or get_default_config()

    def publish(self, event: RiskDefinitionChangedEvent) -> None:
        if not self._config.persist_change_log:
            return
        self._repository.record_changes(event)
