"""
Database Package Initialization.

============================================================
DATABASE PERSISTENCE LAYER
============================================================

Engine, sessions and transaction boundaries shared by the
persistence adapters. ORM models live next to the package
that owns them (risk_definition.models) and register on the
Base declared here.

============================================================
"""

from .engine import (
    Base,
    DEFAULT_DATABASE_URL,
    REQUIRED_TABLES,
    configure_engine,
    create_all_tables,
    create_database_engine,
    get_database_url,
    get_engine,
    get_session,
    get_session_factory,
    get_table_row_counts,
    initialize_database,
    transaction_scope,
    verify_database_connection,
    verify_required_tables,
)


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
