"""Environment-driven configuration for the counter service."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy.engine import URL

from .errors import ConfigError

DEFAULT_DRIVER = "mysql+pymysql"
DEFAULT_COUNTER_ID = "main_counter"

_DATABASE_NAME = re.compile(r"^[A-Za-z0-9_$-]+$")
_REQUIRED_DB_VARS = ("DB_HOST", "DB_USER", "DB_PASSWORD", "DB_NAME")
LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def _read_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
        return parsed if parsed > 0 else default
    except ValueError:
        return default


def _read_port(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigError(f"DB_PORT must be an integer, got '{value}'.") from exc
    if parsed <= 0:
        raise ConfigError(f"DB_PORT must be positive, got {parsed}.")
    return parsed


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection parameters for the relational backend."""

    host: str
    user: str
    password: str
    name: str
    port: int | None = None
    driver: str = DEFAULT_DRIVER

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        """Build settings from DB_* environment variables.

        Raises:
            ConfigError: If a required variable is missing or a value is invalid.
        """
        values: dict[str, str] = {}
        missing = []
        for key in _REQUIRED_DB_VARS:
            raw = os.environ.get(key) or ""
            if not raw.strip():
                missing.append(key)
            # Passwords may legitimately carry surrounding whitespace.
            values[key] = raw if key == "DB_PASSWORD" else raw.strip()
        if missing:
            raise ConfigError(
                f"Missing required database configuration: {', '.join(missing)}. "
                "Set DB_HOST, DB_USER, DB_PASSWORD and DB_NAME."
            )

        driver = (os.environ.get("DB_DRIVER") or "").strip() or DEFAULT_DRIVER
        settings = cls(
            host=values["DB_HOST"],
            user=values["DB_USER"],
            password=values["DB_PASSWORD"],
            name=values["DB_NAME"],
            port=_read_port(os.environ.get("DB_PORT")),
            driver=driver,
        )
        settings.validate()
        return settings

    @property
    def backend(self) -> str:
        """Dialect name without the DBAPI suffix (mysql, postgresql, sqlite)."""
        return self.driver.split("+", 1)[0]

    def validate(self) -> None:
        if self.backend == "sqlite":
            return
        if not _DATABASE_NAME.match(self.name):
            raise ConfigError(
                f"DB_NAME '{self.name}' is not a valid database name. "
                "Use letters, digits, '_', '$' or '-'."
            )

    def server_url(self) -> URL:
        """URL for the server itself, without a database selected."""
        if self.backend == "sqlite":
            return URL.create(self.driver)
        # PostgreSQL always connects to some database; use the maintenance one.
        database = "postgres" if self.backend == "postgresql" else None
        return URL.create(
            self.driver,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=database,
        )

    def database_url(self) -> URL:
        """URL scoped to the counter database."""
        if self.backend == "sqlite":
            return URL.create(self.driver, database=self.name)
        return URL.create(
            self.driver,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.name,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a dict suitable for logging/debugging (password redacted)."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.name,
            "driver": self.driver,
            "password_set": bool(self.password),
        }


@dataclass(frozen=True)
class ServiceSettings:
    """Configuration container for the HTTP process."""

    database: DatabaseSettings
    host: str = "0.0.0.0"
    port: int = 3000
    counter_id: str = DEFAULT_COUNTER_ID
    log_level: str = "info"

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        database = DatabaseSettings.from_env()
        host = os.environ.get("COUNTER_SERVICE_HOST", cls.host)
        port = _read_int(os.environ.get("COUNTER_SERVICE_PORT"), cls.port)
        counter_id = (
            os.environ.get("COUNTER_SERVICE_COUNTER_ID") or ""
        ).strip() or cls.counter_id
        log_level = os.environ.get("COUNTER_SERVICE_LOG_LEVEL", "INFO").strip().lower()
        if log_level not in LOG_LEVELS:
            raise ConfigError(
                f"COUNTER_SERVICE_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, "
                f"got '{log_level}'."
            )

        return cls(
            database=database,
            host=host,
            port=port,
            counter_id=counter_id,
            log_level=log_level,
        )
