"""Shared counter service backed by a relational store."""

__version__ = "0.1.0"

from .app import bind_connector, create_app
from .config import DatabaseSettings, ServiceSettings
from .database import StoreConnector
from .errors import (
    ConfigError,
    ConstraintViolationError,
    CounterNotFoundError,
    CounterServiceError,
    DatabaseConnectionError,
    QueryError,
)
from .repository import CounterRepository
from .schema import initialize_schema

__all__ = [
    "__version__",
    # Configuration
    "DatabaseSettings",
    "ServiceSettings",
    # Storage
    "StoreConnector",
    "CounterRepository",
    "initialize_schema",
    # HTTP
    "create_app",
    "bind_connector",
    # Errors
    "CounterServiceError",
    "ConfigError",
    "DatabaseConnectionError",
    "QueryError",
    "ConstraintViolationError",
    "CounterNotFoundError",
]
