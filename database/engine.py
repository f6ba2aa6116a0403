"""
Database - Engine and Sessions.

============================================================
STORAGE FOR DOMAINS AND THE CHANGE LOG
============================================================

Owns the SQLAlchemy engine, the session factory and the
transaction boundary used by the SQL repository.

- DATABASE_URL selects the backend, SQLite file by default
- One transaction per workflow call, committed by the caller
- Driver errors surface as PersistenceError

============================================================
"""

import os
import logging
from typing import Dict, Generator, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.pool import StaticPool

from dotenv import load_dotenv

from core.exceptions import PersistenceError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///risk_definitions.db"

REQUIRED_TABLES = [
    "domains",
    "risk_definition_changes",
]

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# ENGINE
# =============================================================

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """DATABASE_URL, or the local SQLite file when unset."""
    url = os.getenv("DATABASE_URL")
    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL missing, falling back to {url}")
    return url


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Build an engine for database_url (DATABASE_URL when omitted).

    An in-memory SQLite database lives on one shared connection so
    every session sees the same tables. Pool settings apply to
    server databases only.
    """
    url = database_url or get_database_url()
    logger.info(f"Opening database engine url={url.split('@')[-1]}")

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)

    return create_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=pool_recycle,
        echo=echo,
    )


def configure_engine(engine: Optional[Engine]) -> None:
    """
    Install engine as the process-wide engine and reset the session factory.

    Passing None restores lazy creation from DATABASE_URL.
    """
    global _engine, _session_factory
    _engine = engine
    _session_factory = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )
    return _session_factory


# =============================================================
# SESSIONS
# =============================================================


def get_session() -> Session:
    """Open a bare session; the caller commits and closes it."""
    return get_session_factory()()


@contextmanager
def transaction_scope() -> Generator[Session, None, None]:
    """
    One unit of work around a workflow call.

    Commits when the block exits cleanly, rolls back otherwise.
    SQLAlchemy errors come out as PersistenceError; anything else
    (NotFoundError, UnprocessableDataError) propagates unchanged.

    Usage:
        with transaction_scope() as session:
            repository = SqlDomainRepository(session)
            engine = RiskDefinitionEngine(repository)
            engine.save(request)
            repository.save_loaded()
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("Transaction committed")
    except SQLAlchemyError as e:
        logger.error(f"Transaction failed on database error, rolled back: {e}")
        session.rollback()
        raise PersistenceError(f"Transaction failed: {e}", operation="commit", cause=e) from e
    except Exception:
        logger.error("Transaction aborted, rolling back")
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# SCHEMA
# =============================================================


def verify_database_connection() -> bool:
    """Run a trivial query; raises PersistenceError when unreachable."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except OperationalError as e:
        logger.error(f"Database unreachable: {e}")
        raise PersistenceError(f"Cannot connect to database: {e}", operation="connect", cause=e) from e
    logger.info("Database reachable")
    return True


def create_all_tables() -> None:
    """Create the tables of every model registered on Base."""
    try:
        Base.metadata.create_all(bind=get_engine())
    except SQLAlchemyError as e:
        logger.error(f"Schema creation failed: {e}")
        raise PersistenceError(f"Table creation failed: {e}", operation="create_all", cause=e) from e
    logger.info(f"Schema ready tables={sorted(Base.metadata.tables)}")


def initialize_database() -> None:
    """
    Prepare storage for the risk definition engine.

    1. Check the connection
    2. Register the risk definition models and create their tables
    3. Report any required table that is still missing
    """
    logger.info("Initializing risk definition storage")

    verify_database_connection()

    from risk_definition import models  # noqa: F401

    create_all_tables()
    verify_required_tables()

    logger.info("Risk definition storage ready")


def verify_required_tables() -> Dict[str, bool]:
    """Map each required table to whether it exists."""
    existing = set(inspect(get_engine()).get_table_names())
    result = {}
    for table in REQUIRED_TABLES:
        result[table] = table in existing
        if not result[table]:
            logger.warning(f"Required table missing table={table}")
    return result


def get_table_row_counts() -> Dict[str, int]:
    """Row count per required table, -1 where the table does not exist."""
    existing = verify_required_tables()
    counts = {}
    with get_engine().connect() as conn:
        for table in REQUIRED_TABLES:
            if not existing[table]:
                counts[table] = -1
                continue
            counts[table] = conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
    return counts


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "REQUIRED_TABLES",
    "configure_engine",
    "create_all_tables",
    "create_database_engine",
    "get_database_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "get_table_row_counts",
    "initialize_database",
    "transaction_scope",
    "verify_database_connection",
    "verify_required_tables",
]
