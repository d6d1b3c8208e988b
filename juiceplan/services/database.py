"""
Engine, session and schema management for the planning database.

The planner stores products, bottle types, the inventory ledger and
production batches in one relational database (SQLite unless the
configuration points elsewhere). Service functions either receive a
session from their caller or open one through session_scope().
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from juiceplan.models.base import Base
from juiceplan.utils.config import get_config

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None

# Tables every planning database must have
EXPECTED_TABLES = ["products", "bottle_types", "inventory_batches", "production_batches"]

_SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
)


@event.listens_for(Engine, "connect")
def _apply_sqlite_pragmas(dbapi_connection, connection_record):
    """Enforce foreign keys and use WAL on every new SQLite connection."""
    if type(dbapi_connection).__module__.split(".")[0] not in ("sqlite3", "pysqlite2"):
        return

    cursor = dbapi_connection.cursor()
    for pragma in _SQLITE_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


def _engine_options(database_url: str) -> Dict[str, Any]:
    if ":memory:" in database_url or "mode=memory" in database_url:
        # One shared connection, otherwise each checkout sees an empty database
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {}


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Build an engine for the planning database.

    Args:
        database_url: Database URL; defaults to the configured SQLite file,
            whose directory is created if needed
        echo: Log every SQL statement

    Returns:
        SQLAlchemy Engine
    """
    if database_url is None:
        config = get_config()
        config.ensure_directories()
        database_url = config.database_url

    logger.info(f"Opening planning database: {database_url}")
    return create_engine(database_url, echo=echo, **_engine_options(database_url))


def get_engine(force_recreate: bool = False) -> Engine:
    """Shared engine, created from the configuration on first use."""
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Shared session factory bound to get_engine()."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _SessionFactory


def get_session() -> Session:
    """New session from the shared factory; the caller must close it."""
    return get_session_factory()()


@contextmanager
def session_scope():
    """
    Run a block of work in one transaction.

    Commits when the block finishes, rolls back when it raises, and always
    closes the session.

    Example:
        with session_scope() as session:
            session.add(BottleType(name="250ml", size_in_ml=250))
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================================
# Schema
# =============================================================================


def init_database(engine: Optional[Engine] = None) -> None:
    """Create any missing tables. Existing tables and data are kept."""
    engine = engine or get_engine()

    # Registers every model on Base.metadata
    from juiceplan import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Planning tables created or already present")


def missing_tables(engine: Optional[Engine] = None) -> List[str]:
    """Expected tables absent from the database."""
    present = set(inspect(engine or get_engine()).get_table_names())
    return [table for table in EXPECTED_TABLES if table not in present]


def verify_database() -> bool:
    """
    Check that the database can be opened and holds the planning tables.

    Returns:
        False if the database is unreachable or a table is missing
    """
    try:
        missing = missing_tables()
    except SQLAlchemyError as e:
        logger.error(f"Cannot inspect planning database: {e}")
        return False

    if missing:
        logger.warning(f"Planning database is missing tables: {', '.join(missing)}")
    return not missing


def reset_database(confirm: bool = False) -> None:
    """
    Drop and recreate every table, deleting all planning data.

    Raises:
        ValueError: Unless confirm=True
    """
    if not confirm:
        raise ValueError("reset_database() deletes all planning data; pass confirm=True")

    from juiceplan import models  # noqa: F401

    engine = get_engine()
    logger.warning("Dropping all planning tables")
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.info("Planning tables recreated empty")


def close_connections() -> None:
    """Dispose of the shared engine; the next call to get_engine() reopens it."""
    global _engine, _SessionFactory

    _SessionFactory = None
    if _engine is not None:
        _engine.dispose()
        _engine = None


def initialize_app_database() -> None:
    """
    Prepare the configured database for use.

    Entry point for embedding applications: creates the database file and
    its tables when absent, then verifies the schema.
    """
    config = get_config()
    state = "existing" if config.database_exists() else "new"
    logger.info(f"Initializing {state} planning database at {config.database_path}")

    init_database(get_engine())
    verify_database()
