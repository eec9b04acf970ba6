"""Store connector: owns the SQLAlchemy engine for one backend URL."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Sequence

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine, Row
from sqlalchemy.exc import IntegrityError, InterfaceError, SQLAlchemyError
from sqlalchemy.sql import Executable

from .config import DatabaseSettings
from .errors import (
    ConstraintViolationError,
    CounterServiceError,
    DatabaseConnectionError,
    QueryError,
)
from .logger import get_logger

logger = get_logger(__name__)

NOT_CONNECTED_MESSAGE = "Database not connected"

# Every request shares this pool, so size it for the HTTP worker threadpool.
_POOL_DEFAULTS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 30,
    "pool_recycle": 1800,
}


def _describe(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def _translate(exc: SQLAlchemyError) -> CounterServiceError:
    """Map a SQLAlchemy failure onto the service error taxonomy."""
    if isinstance(exc, IntegrityError):
        return ConstraintViolationError(_describe(exc))
    if isinstance(exc, InterfaceError) or getattr(exc, "connection_invalidated", False):
        return DatabaseConnectionError(f"Lost connection to database: {_describe(exc)}")
    return QueryError(_describe(exc))


class StoreConnector:
    """Holds a pooled connection to the relational backend.

    The connector knows nothing about counters; it only runs statements.
    Build one with :meth:`for_server` (no database selected, used for
    bootstrap) or :meth:`for_database`, then call :meth:`connect`.
    """

    def __init__(self, url: URL, **engine_kwargs: Any):
        self._url = url
        self._engine_kwargs = engine_kwargs
        self._engine: Engine | None = None

    @classmethod
    def for_server(cls, settings: DatabaseSettings, **engine_kwargs: Any) -> "StoreConnector":
        if settings.backend == "postgresql":
            # CREATE DATABASE cannot run inside a transaction block.
            engine_kwargs.setdefault("isolation_level", "AUTOCOMMIT")
        return cls(settings.server_url(), **engine_kwargs)

    @classmethod
    def for_database(cls, settings: DatabaseSettings, **engine_kwargs: Any) -> "StoreConnector":
        return cls(settings.database_url(), **engine_kwargs)

    @property
    def url(self) -> str:
        """Connection URL with the password masked."""
        return self._url.render_as_string(hide_password=True)

    @property
    def dialect_name(self) -> str:
        return self._url.get_backend_name()

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def connect(self) -> "StoreConnector":
        """Create the engine and verify the backend answers.

        Raises:
            DatabaseConnectionError: If the backend is unreachable, rejects the
                credentials, or the DBAPI driver is not installed.
        """
        if self._engine is not None:
            return self

        engine_kwargs = dict(self._engine_kwargs)
        if self.dialect_name == "sqlite":
            # Pooled connections are handed between HTTP worker threads.
            engine_kwargs.setdefault(
                "connect_args", {"check_same_thread": False, "timeout": 30}
            )
        else:
            for pool_key, pool_value in _POOL_DEFAULTS.items():
                engine_kwargs.setdefault(pool_key, pool_value)

        try:
            engine = create_engine(self._url, pool_pre_ping=True, **engine_kwargs)
        except ImportError as exc:
            raise DatabaseConnectionError(
                f"Database driver for '{self._url.drivername}' is not installed: {exc}"
            ) from exc
        except SQLAlchemyError as exc:
            raise DatabaseConnectionError(
                f"Invalid database configuration for {self.url}: {exc}"
            ) from exc

        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            engine.dispose()
            logger.error("Failed to connect to %s: %s", self.url, _describe(exc))
            raise DatabaseConnectionError(
                f"Cannot connect to database at {self.url}: {_describe(exc)}"
            ) from exc

        self._engine = engine
        logger.info("Connected to %s", self.url)
        return self

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseConnectionError(NOT_CONNECTED_MESSAGE)
        return self._engine

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside a transaction.

        Commits when the block exits cleanly and rolls back otherwise.
        SQLAlchemy errors are re-raised as service errors.
        """
        engine = self._require_engine()
        try:
            with engine.begin() as connection:
                yield connection
        except SQLAlchemyError as exc:
            raise _translate(exc) from exc

    def execute(
        self,
        statement: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> Sequence[Row] | int:
        """Run one statement in its own transaction.

        Returns:
            The fetched rows when the statement produces rows, otherwise the
            number of affected rows.

        Raises:
            DatabaseConnectionError: If not connected or the connection drops.
            ConstraintViolationError: If the statement violates a constraint.
            QueryError: For malformed SQL or any other backend fault.
        """
        if isinstance(statement, str):
            statement = text(statement)
        with self.transaction() as connection:
            result = connection.execute(statement, dict(params or {}))
            if result.returns_rows:
                return result.all()
            return result.rowcount

    def quote_identifier(self, name: str) -> str:
        """Quote a schema identifier with the backend's quoting rules."""
        return self._require_engine().dialect.identifier_preparer.quote_identifier(name)

    def close(self) -> None:
        """Dispose the engine. Safe to call more than once."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        logger.info("Closed connection to %s", self.url)
