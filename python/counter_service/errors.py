"""Custom exceptions for the counter service."""

from __future__ import annotations


class CounterServiceError(RuntimeError):
    """Base error for counter service failures."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigError(CounterServiceError):
    """Raised when the service environment/configuration is invalid."""


class DatabaseConnectionError(CounterServiceError):
    """Raised when the backend cannot be reached or rejects the connection."""


class QueryError(CounterServiceError):
    """Raised when a statement fails on an established connection."""


class ConstraintViolationError(QueryError):
    """Raised when a statement violates a table constraint."""


class CounterNotFoundError(CounterServiceError):
    """Raised when the requested counter has no row yet."""

    def __init__(self, counter_id: str):
        super().__init__(f"Counter '{counter_id}' not found", status_code=404)
        self.counter_id = counter_id
