"""FastAPI application factory for the HTTP API.

Domain exceptions raised by route handlers are mapped to HTTP responses
here, so handlers can raise them directly:

    InvalidTargetError        -> 422
    TargetNotFoundError       -> 404 ``{"detail": "Target not found"}``
    StoreError                -> 500
    SchedulerUnavailableError -> 503
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pingmonitor import __version__
from pingmonitor.api.routes import ServiceControl, create_routes
from pingmonitor.exceptions import (
    InvalidTargetError,
    SchedulerUnavailableError,
    StoreError,
    TargetNotFoundError,
)
from pingmonitor.logging import get_logger

if TYPE_CHECKING:
    from pingmonitor.store import TargetStore

logger = get_logger(__name__)


async def _invalid_target_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def _target_not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Target not found"})


async def _store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Store error while handling %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


async def _scheduler_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Scheduler unavailable for %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def create_app(control: ServiceControl, store: TargetStore) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        control: Forwards commands to the scheduler.
        store: The shared target store.

    Returns:
        A configured FastAPI application.
    """
    app = FastAPI(
        title="URL Ping Monitor",
        description="Periodic reachability checks for a list of URLs",
        version=__version__,
    )

    app.add_exception_handler(InvalidTargetError, _invalid_target_handler)
    app.add_exception_handler(TargetNotFoundError, _target_not_found_handler)
    app.add_exception_handler(StoreError, _store_error_handler)
    app.add_exception_handler(SchedulerUnavailableError, _scheduler_unavailable_handler)

    app.include_router(create_routes(control, store))
    return app
