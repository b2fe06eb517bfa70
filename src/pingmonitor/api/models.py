"""Pydantic request/response models for the HTTP API.

Models are grouped by feature:

- Target models: TargetCreateRequest, TargetResponse
- Service models: ServiceActionResponse, BypassRequest, BypassResponse
- Status models: CycleStatsResponse, StatusResponse
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, field_validator

from pingmonitor.store import is_valid_url
from pingmonitor.types import SchedulerState, TargetStatus

# NOTE: Update this list when adding new models to this module.
__all__: list[str] = [
    # Target models
    "TargetCreateRequest",
    "TargetResponse",
    # Service models
    "ServiceActionResponse",
    "BypassRequest",
    "BypassResponse",
    # Status models
    "CycleStatsResponse",
    "StatusResponse",
]


class TargetCreateRequest(BaseModel):
    """Request model for adding a target."""

    url: str
    name: str | None = None

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_url(value):
            raise ValueError("Please enter a valid URL")
        return value

    @field_validator("name")
    @classmethod
    def _blank_name_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class TargetResponse(BaseModel):
    """Response model for a single target."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    name: str | None
    status: TargetStatus
    last_ping: datetime | None
    response_time: int | None
    last_error: str | None
    created_at: datetime


class ServiceActionResponse(BaseModel):
    """Response model for starting or stopping the service."""

    message: str


class BypassRequest(BaseModel):
    """Request model for toggling bypass mode."""

    enabled: bool


class BypassResponse(BaseModel):
    """Response model for toggling bypass mode."""

    bypass: bool


class CycleStatsResponse(BaseModel):
    """Response model for the scheduler's cycle statistics."""

    model_config = ConfigDict(from_attributes=True)

    current_cycle: int
    total_targets: int
    cycle_start_time: datetime | None
    next_cycle_time: datetime | None
    current_target_index: int
    current_target_id: str | None
    is_running: bool
    bypass_mode: bool
    successful_pings_today: int
    failed_pings_today: int
    stats_date: date | None
    cycle_successful: int
    cycle_failed: int
    last_cycle_elapsed_ms: int | None
    last_cycle_wait_ms: int | None


class StatusResponse(BaseModel):
    """Response model for the combined service status."""

    model_config = ConfigDict(from_attributes=True)

    running: bool
    bypass: bool
    state: SchedulerState
    stats: CycleStatsResponse
    targets: list[TargetResponse]
