"""FastAPI application exposing the shared counter."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import DEFAULT_COUNTER_ID
from .database import NOT_CONNECTED_MESSAGE, StoreConnector
from .errors import CounterServiceError, DatabaseConnectionError
from .logger import get_logger
from .repository import CounterRepository
from .schemas import CounterResponse, ErrorResponse, HealthResponse

logger = get_logger(__name__)

router = APIRouter(tags=["counter"])


def get_repository(request: Request) -> CounterRepository:
    """Return the repository, or fail while the database is not ready."""
    repository: CounterRepository | None = request.app.state.repository
    if repository is None or not repository.connector.is_connected:
        raise DatabaseConnectionError(NOT_CONNECTED_MESSAGE)
    return repository


@router.get(
    "/increment",
    response_model=CounterResponse,
    responses={500: {"model": ErrorResponse}},
)
def increment_counter(
    request: Request,
    repository: CounterRepository = Depends(get_repository),
) -> CounterResponse:
    """Increment the well-known counter and return its new value.

    Declared as a plain function so FastAPI runs it in the worker
    threadpool; a slow query only holds up its own request.
    """
    value = repository.increment(request.app.state.counter_id)
    return CounterResponse(counter=value)


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness only. Does NOT probe the database."""
    return HealthResponse()


async def _database_connection_error_handler(
    request: Request, exc: DatabaseConnectionError
) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error=NOT_CONNECTED_MESSAGE).model_dump(),
    )


async def _service_error_handler(
    request: Request, exc: CounterServiceError
) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error=str(exc)).model_dump(),
    )


def bind_connector(app: FastAPI, connector: StoreConnector | None) -> None:
    """Attach (or detach, with None) the store connector serving requests."""
    app.state.connector = connector
    app.state.repository = CounterRepository(connector) if connector is not None else None


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Counter service ready (counter id '%s')", app.state.counter_id)
    yield
    connector: StoreConnector | None = app.state.connector
    if connector is not None:
        connector.close()
    logger.info("Counter service stopped")


def create_app(
    connector: StoreConnector | None = None,
    *,
    counter_id: str = DEFAULT_COUNTER_ID,
) -> FastAPI:
    """Create the HTTP service.

    Args:
        connector: Connected, database-scoped store connector. Without one,
            ``/api/increment`` answers 500 "Database not connected" until
            :func:`bind_connector` supplies it.
        counter_id: Identifier of the counter served by ``/api/increment``.

    Returns:
        Configured FastAPI app instance.
    """
    app = FastAPI(
        title="Counter Service",
        description="Shared, atomically incremented counter backed by a relational store",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.counter_id = counter_id
    bind_connector(app, connector)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DatabaseConnectionError, _database_connection_error_handler)
    app.add_exception_handler(CounterServiceError, _service_error_handler)

    app.include_router(router, prefix="/api")
    return app
