"""Type definitions and enums for the ping monitor.

This module provides centralized enums for target health and scheduler
state, replacing magic strings throughout the codebase with type-safe
constants.

Usage:
    from pingmonitor.types import TargetStatus, SchedulerState

    # StrEnum members compare equal to their string values
    if target.status == TargetStatus.OFFLINE:
        ...

    TargetStatus.is_valid("online")  # True
"""

from __future__ import annotations

from enum import StrEnum


class TargetStatus(StrEnum):
    """Health status of a monitored target.

    Values:
        PENDING: Never probed yet ("pending")
        ONLINE: Last probe succeeded within the slow threshold ("online")
        WARNING: Last probe succeeded but was slow ("warning")
        OFFLINE: Last probe failed or timed out ("offline")
    """

    PENDING = "pending"
    ONLINE = "online"
    WARNING = "warning"
    OFFLINE = "offline"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string value is a valid target status.

        Args:
            value: The string value to validate.

        Returns:
            True if the value matches a valid target status.
        """
        return value in cls._value2member_map_

    @property
    def is_success(self) -> bool:
        """Whether this status counts as a successful probe.

        Slow responses still count as successful, only OFFLINE is a failure.
        PENDING is not the result of a probe and counts as neither.
        """
        return self in (TargetStatus.ONLINE, TargetStatus.WARNING)


class SchedulerState(StrEnum):
    """Lifecycle state of the cycle scheduler.

    Values:
        STOPPED: Not running ("stopped")
        IDLE_WAITING: Running, between passes or waiting for targets ("idle_waiting")
        IN_CYCLE: Running, actively walking the target list ("in_cycle")
    """

    STOPPED = "stopped"
    IDLE_WAITING = "idle_waiting"
    IN_CYCLE = "in_cycle"


__all__ = [
    "SchedulerState",
    "TargetStatus",
]
