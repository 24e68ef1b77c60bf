"""
Database Package Initialization.

Engine, session and schema bootstrap for the portfolio
database. ORM models live in storage.models.
"""

from .engine import (
    Base,
    DEFAULT_DATABASE_URL,
    REQUIRED_TABLES,
    configure_engine,
    create_all_tables,
    create_database_engine,
    get_database_url,
    get_db_session,
    get_engine,
    get_session,
    get_session_factory,
    get_table_row_counts,
    initialize_database,
    reset_engine,
    transaction_scope,
    verify_database_connection,
    verify_required_tables,
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "REQUIRED_TABLES",
    "configure_engine",
    "create_all_tables",
    "create_database_engine",
    "get_database_url",
    "get_db_session",
    "get_engine",
    "get_session",
    "get_session_factory",
    "get_table_row_counts",
    "initialize_database",
    "reset_engine",
    "transaction_scope",
    "verify_database_connection",
    "verify_required_tables",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
