"""Schema bootstrap: creates the counter database and table if missing.

Runs once at startup, before the HTTP listener binds. Safe to repeat:
every step uses "if not exists" semantics, so a restart never resets or
duplicates the ``counters`` table.
"""

from __future__ import annotations

from sqlalchemy import text

from .config import DatabaseSettings
from .database import StoreConnector
from .errors import CounterServiceError, DatabaseConnectionError, QueryError
from .logger import get_logger
from .models import Base

logger = get_logger(__name__)


def _postgres_database_exists(connector: StoreConnector, name: str) -> bool:
    rows = connector.execute(
        text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": name}
    )
    return bool(rows)


def ensure_database(connector: StoreConnector, name: str) -> None:
    """Create database ``name`` on the server unless it already exists.

    Args:
        connector: A connected, server-scoped connector.
        name: Database name; quoted with the backend's identifier rules.

    Raises:
        DatabaseConnectionError: If the backend refuses to create it.
    """
    backend = connector.dialect_name
    if backend == "sqlite":
        logger.debug("SQLite backend, database file '%s' needs no creation", name)
        return

    quoted = connector.quote_identifier(name)
    try:
        if backend == "postgresql":
            if _postgres_database_exists(connector, name):
                return
            try:
                connector.execute(f"CREATE DATABASE {quoted}")
            except QueryError:
                # Another instance may have created it in the meantime.
                if not _postgres_database_exists(connector, name):
                    raise
        else:
            connector.execute(f"CREATE DATABASE IF NOT EXISTS {quoted}")
    except QueryError as exc:
        raise DatabaseConnectionError(
            f"Cannot create database '{name}': {exc}"
        ) from exc
    logger.info("Database '%s' is present", name)


def create_tables(connector: StoreConnector) -> None:
    """Create the counters table on a database-scoped connector."""
    with connector.transaction() as connection:
        Base.metadata.create_all(connection, checkfirst=True)
    logger.info("Table 'counters' is present")


def initialize_schema(
    settings: DatabaseSettings,
    connector_factory: type[StoreConnector] = StoreConnector,
) -> StoreConnector:
    """Make the backend ready for the counter repository.

    Returns:
        The connected, database-scoped connector for the repository to use.

    Raises:
        DatabaseConnectionError: Backend unreachable, credentials rejected, or
            database creation refused.
        QueryError: Table creation failed.
    """
    logger.info("Initializing database %s", settings.to_dict())

    server = connector_factory.for_server(settings)
    try:
        server.connect()
        ensure_database(server, settings.name)
    finally:
        server.close()

    connector = connector_factory.for_database(settings)
    connector.connect()
    try:
        create_tables(connector)
    except CounterServiceError:
        connector.close()
        raise

    logger.info("Database initialized successfully")
    return connector
