"""
Risk Definition Engine - Database Models.

============================================================
PERSISTENCE
============================================================
Store domains with their risk definitions, and an audit row
for every committed change set.

Risk definitions are stored as JSON documents (to_dict form)
inside the domain row: they are always loaded and replaced as
a whole, never queried by their parts.

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON, BigInteger, Boolean, Column, DateTime, Index, Integer, String,
)

from database.engine import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================
# DOMAIN TABLE
# =============================================================

class DomainRecord(Base):
    """
    Domain table.

    One row per domain. risk_definitions maps each symbolic ref
    to the serialized definition.
    Source: risk_definition.repository
    """
    __tablename__ = "domains"

    id = Column(String(36), primary_key=True)
    client_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    active = Column(Boolean, nullable=False, default=True)

    risk_definitions = Column(JSON, nullable=False, default=dict)

    updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self):
        return f"<DomainRecord(id={self.id}, name={self.name!r}, active={self.active})>"


# =============================================================
# CHANGE LOG TABLE
# =============================================================

class RiskDefinitionChangeRecord(Base):
    """
    Risk definition change log.

    One row per committed save. Rejected saves leave no row.
    Source: risk_definition.repository
    Retention: Permanent (audit trail)
    """
    __tablename__ = "risk_definition_changes"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    domain_id = Column(String(36), nullable=False, index=True)
    risk_definition_ref = Column(String(120), nullable=False)

    # Sorted change kind values, e.g. ["ColorDiff", "TranslationDiff"]
    change_kinds = Column(JSON, nullable=False, default=list)
    changes = Column(JSON, nullable=True)
    effects = Column(JSON, nullable=True)
    is_new = Column(Boolean, nullable=False, default=False)

    source = Column(String(100), nullable=False, default="risk_definition.engine")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    __table_args__ = (
        Index("ix_risk_definition_changes_domain_ref", "domain_id", "risk_definition_ref"),
    )

    def __repr__(self):
        return (
            f"<RiskDefinitionChangeRecord(id={self.id}, domain_id={self.domain_id}, "
            f"ref={self.risk_definition_ref}, kinds={self.change_kinds})>"
        )
