"""
Database Persistence Layer - Core Engine.

============================================================
PURPOSE
============================================================
Engine and session management for the portfolio database.

- URL from DATABASE_URL (PostgreSQL in production)
- SQLite supported for local use and tests
- Explicit transaction management
- Hard failures on persistence errors

============================================================
"""

import os
import logging
from typing import Generator, Optional, Union
from contextlib import contextmanager

from sqlalchemy import create_engine, event, inspect, select, func, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from dotenv import load_dotenv

from storage.models import Base

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./portfolio.db"
SQLITE_BUSY_TIMEOUT_MS = 5000

REQUIRED_TABLES = [
    "catalog_products",
    "inventory_items",
    "market_snapshots",
    "market_price_history",
    "sales_events",
    "sales_daily_aggregates",
    "sales_monthly_aggregates",
    "sync_jobs",
]

# =============================================================
# DATABASE ENGINE
# =============================================================

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """
    DATABASE_URL, or a local SQLite file.

    Hosted Postgres URLs (postgres://...) are rewritten to the
    postgresql:// scheme SQLAlchemy expects.
    """
    url = os.getenv("DATABASE_URL")
    if url and url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def _describe_url(url: str) -> str:
    return make_url(url).render_as_string(hide_password=True)


def _is_memory_sqlite(url: str) -> bool:
    return ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://")


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create a SQLAlchemy engine.

    Server databases get a pre-pinged QueuePool. SQLite files
    run in WAL mode with a busy timeout so the API and a queue
    worker can share one file; in-memory SQLite keeps a single
    shared connection.

    Args:
        database_url: Overrides the environment URL
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements
    """
    url = database_url or get_database_url()
    logger.info(f"Creating database engine for: {_describe_url(url)}")

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        in_memory = _is_memory_sqlite(url)
        if in_memory:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def on_sqlite_connect(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
            cursor.close()
    else:
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
            echo=echo,
        )

    return engine


def configure_engine(database_url: Optional[str] = None, **kwargs) -> Engine:
    """Replace the process-wide engine (CLI --database-url, tests)."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = create_database_engine(database_url, **kwargs)
    _SessionFactory = None
    return _engine


def get_engine() -> Engine:
    """Get the database engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Get session factory, creating if necessary."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionFactory


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


# =============================================================
# SESSION MANAGEMENT
# =============================================================


def get_session() -> Session:
    """
    Get a new database session.

    Caller is responsible for committing/closing. Prefer the
    get_db_session() or transaction_scope() context managers.
    """
    return get_session_factory()()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Usage:
        with get_db_session() as session:
            items = InventoryRepository(session).list_active()

    On exception the session is rolled back and the error
    re-raised.
    """
    session = get_session()
    try:
        yield session
    except Exception as e:
        logger.error(f"Session error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope() -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs; rolls back on any
    database error and raises DatabasePersistenceError.

    Usage:
        with transaction_scope() as session:
            MarketRepository(session).upsert_rows(rows)
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


def verify_database_connection() -> bool:
    """
    Verify database connection is working.

    Raises:
        DatabaseConnectionError: If connection fails
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e


def create_all_tables() -> None:
    """
    Create all tables defined in storage.models.

    Raises:
        DatabaseInitializationError: If table creation fails
    """
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=get_engine())
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


def verify_required_tables(bind: Optional[Union[Engine, Connection]] = None) -> list[str]:
    """Return the required tables that are missing (logged)."""
    existing = set(inspect(bind if bind is not None else get_engine()).get_table_names())
    missing = []
    for table in REQUIRED_TABLES:
        if table in existing:
            logger.debug(f"  [OK] Table verified: {table}")
        else:
            logger.warning(f"  [!!] Table missing: {table}")
            missing.append(table)
    return missing


def get_table_row_counts() -> dict[str, int]:
    """Row counts for all required tables (-1 when missing)."""
    counts = {}
    with get_engine().connect() as conn:
        for table_name in REQUIRED_TABLES:
            table = Base.metadata.tables[table_name]
            try:
                counts[table_name] = conn.execute(select(func.count()).select_from(table)).scalar()
            except SQLAlchemyError:
                counts[table_name] = -1
    return counts


def initialize_database() -> None:
    """
    Full database initialization sequence.

    1. Verify connection
    2. Create tables if not exist
    3. Verify tables

    Raises:
        DatabaseInitializationError: If any table is still missing
    """
    logger.info("Initializing database")

    verify_database_connection()
    create_all_tables()
    missing = verify_required_tables()
    if missing:
        raise DatabaseInitializationError(f"Missing tables: {', '.join(missing)}")

    logger.info("Database initialization complete")


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


# =============================================================
# EXPORTS
# =============================================================

__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "REQUIRED_TABLES",
    "get_database_url",
    "create_database_engine",
    "configure_engine",
    "get_engine",
    "get_session",
    "get_db_session",
    "get_session_factory",
    "reset_engine",
    "transaction_scope",
    "initialize_database",
    "verify_database_connection",
    "verify_required_tables",
    "create_all_tables",
    "get_table_row_counts",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
