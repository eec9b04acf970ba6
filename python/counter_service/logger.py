"""Centralized logger configuration for the counter service.

Every module obtains its logger through :func:`get_logger` so that service
and Uvicorn output share one timestamped format on stdout.
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Track if root logger has been configured
_root_logger_configured = False


class _ServiceFormatter(logging.Formatter):
    """Renames 'uvicorn.error' to 'uvicorn'.

    Uvicorn logs ordinary lifecycle messages on 'uvicorn.error', which reads
    like an error in the output.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.name == "uvicorn.error":
            record.name = "uvicorn"
        return super().format(record)


def resolve_level(level: Optional[str] = None) -> str:
    """Return a level name logging accepts.

    Reads COUNTER_SERVICE_LOG_LEVEL when ``level`` is None. Unknown names fall
    back to INFO; ServiceSettings reports them as configuration errors.
    """
    if level is None:
        level = os.environ.get("COUNTER_SERVICE_LOG_LEVEL", "INFO")
    level = level.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        return "INFO"
    return level


def configure_root_logger(level: Optional[str] = None) -> None:
    """Configure the root logger with standard formatting.

    Called once at process startup. Subsequent calls are idempotent.

    Also configures the Uvicorn loggers with the same handler. The server
    is started with ``log_config=None`` so Uvicorn leaves them alone.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, reads from COUNTER_SERVICE_LOG_LEVEL or defaults to INFO.
    """
    global _root_logger_configured

    if _root_logger_configured:
        return

    level = resolve_level(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_ServiceFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False

    _root_logger_configured = True


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Return a configured logger with standardized formatting.

    The root logger is configured automatically on first call.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override. If None, uses root logger level.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Counter incremented")
        2024-01-15 10:30:45.123 | INFO     | counter_service.app | Counter incremented
    """
    if not _root_logger_configured:
        configure_root_logger()

    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(level.upper())

    return logger
