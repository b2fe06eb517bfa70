"""Route handlers for the HTTP API.

Target CRUD handlers talk to the ``TargetStore`` directly (it is thread-safe)
and are plain ``def`` functions, so FastAPI runs their blocking file writes
in its thread pool. Scheduler commands go through a ``ServiceControl``
implementation (``SchedulerController`` in production), which forwards them
to the scheduler's event loop.

Health check endpoints provide:
- /health/live: Liveness probe, including whether the scheduler is running
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Protocol

from fastapi import APIRouter, HTTPException, Response

from pingmonitor.api.models import (
    BypassRequest,
    BypassResponse,
    ServiceActionResponse,
    StatusResponse,
    TargetCreateRequest,
    TargetResponse,
)
from pingmonitor.exceptions import SchedulerUnavailableError, TargetNotFoundError
from pingmonitor.logging import get_logger

if TYPE_CHECKING:
    from pingmonitor.scheduler import SchedulerStatus
    from pingmonitor.store import TargetStore

logger = get_logger(__name__)


class ServiceControl(Protocol):
    """Scheduler commands available to the HTTP API."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def set_bypass(self, enabled: bool) -> None: ...

    async def get_status(self) -> SchedulerStatus: ...

    def request_probe(self, target_id: str) -> None: ...


def create_routes(control: ServiceControl, store: TargetStore) -> APIRouter:
    """Create API routes bound to the given control facade and store.

    Args:
        control: Forwards commands to the scheduler.
        store: The shared target store.

    Returns:
        An APIRouter with all API routes configured.
    """
    router = APIRouter()

    @router.get("/api/targets", response_model=list[TargetResponse])
    def list_targets() -> list[TargetResponse]:
        """Return all monitored targets in insertion order."""
        return [TargetResponse.model_validate(target) for target in store.list()]

    @router.get("/api/targets/{target_id}", response_model=TargetResponse)
    def get_target(target_id: str) -> TargetResponse:
        """Return a single target.

        Raises:
            TargetNotFoundError: Mapped to 404 by the application.
        """
        target = store.get(target_id)
        if target is None:
            raise TargetNotFoundError(target_id)
        return TargetResponse.model_validate(target)

    @router.post("/api/targets", response_model=TargetResponse, status_code=201)
    def create_target(request_body: TargetCreateRequest) -> TargetResponse:
        """Add a target and ask the scheduler to probe it right away.

        The immediate probe only happens when the scheduler is running and
        between passes; otherwise the target is picked up by the next pass.
        """
        target = store.create(request_body.url, request_body.name)
        control.request_probe(target.id)
        return TargetResponse.model_validate(target)

    @router.delete("/api/targets/{target_id}", status_code=204)
    def delete_target(target_id: str) -> Response:
        """Remove a target. A pass in progress skips it from now on."""
        if not store.delete(target_id):
            raise TargetNotFoundError(target_id)
        return Response(status_code=204)

    @router.get("/api/status", response_model=StatusResponse)
    async def get_status() -> StatusResponse:
        """Return scheduler state, cycle statistics and all targets."""
        status = await control.get_status()
        return StatusResponse.model_validate(status)

    # Registered before /api/service/{action} so "bypass" is not taken as an action.
    @router.post("/api/service/bypass", response_model=BypassResponse)
    async def set_bypass(request_body: BypassRequest) -> BypassResponse:
        """Enable or disable bypass of the minimum cycle time."""
        await control.set_bypass(request_body.enabled)
        return BypassResponse(bypass=request_body.enabled)

    @router.post("/api/service/{action}", response_model=ServiceActionResponse)
    async def service_action(action: str) -> ServiceActionResponse:
        """Start or stop the scheduler."""
        if action == "start":
            await control.start()
            return ServiceActionResponse(message="Service started successfully")
        if action == "stop":
            await control.stop()
            return ServiceActionResponse(message="Service stopped successfully")
        raise HTTPException(status_code=400, detail="Invalid action")

    @router.get("/health/live")
    async def health_live() -> dict[str, Any]:
        """Liveness probe endpoint.

        Reports healthy as long as the API answers; ``scheduler_running``
        is False when the scheduler is stopped or unreachable.
        """
        try:
            status = await control.get_status()
            scheduler_running = status.running
        except SchedulerUnavailableError as e:
            logger.warning("Scheduler unavailable during liveness check: %s", e)
            scheduler_running = False
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "scheduler_running": scheduler_running,
        }

    return router


__all__ = ["ServiceControl", "create_routes"]
