"""CLI entrypoint for running the counter service.

Startup is one ordered sequence: load configuration, bootstrap the schema,
then bind the HTTP listener. Any failure before the listener binds ends the
process with status 1. SIGTERM and SIGINT share one shutdown path: the
server stops serving, the app's lifespan shutdown closes the store
connector, and the process exits with status 0.
"""

from __future__ import annotations

import signal
import sys
from types import FrameType

import uvicorn

from .app import create_app
from .config import ServiceSettings
from .errors import ConfigError, CounterServiceError
from .logger import configure_root_logger, get_logger
from .schema import initialize_schema

logger = get_logger(__name__)


class CounterServer(uvicorn.Server):
    """Uvicorn server that treats a termination signal as a clean exit.

    Stock uvicorn re-raises the signals it caught once the server has
    stopped, which kills the interpreter (SIGTERM) before ``main`` returns.
    """

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        logger.info("Received %s, shutting down", signal.Signals(sig).name)
        if self.should_exit and sig == signal.SIGINT:
            self.force_exit = True
        else:
            self.should_exit = True


def main() -> int:
    configure_root_logger()

    try:
        settings = ServiceSettings.from_env()
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    try:
        connector = initialize_schema(settings.database)
    except CounterServiceError as exc:
        logger.error("Failed to initialize database: %s", exc)
        return 1

    app = create_app(connector, counter_id=settings.counter_id)
    server = CounterServer(
        uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level,
            log_config=None,
        )
    )
    try:
        logger.info("Backend API listening at http://%s:%s", settings.host, settings.port)
        server.run()
    finally:
        connector.close()

    if not server.started:
        logger.error("Server failed to start on %s:%s", settings.host, settings.port)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
