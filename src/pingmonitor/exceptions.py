"""Exception types for the ping monitor.

Probe failures are never raised: they are recorded as an offline outcome on
the target. The exceptions below cover the CRUD boundary around the store.
"""

from __future__ import annotations


class PingMonitorError(Exception):
    """Base class for all ping monitor errors."""

    pass


class InvalidTargetError(PingMonitorError):
    """Raised when a target is created with an address that is not a valid URL.

    Example:
        >>> raise InvalidTargetError("Please enter a valid URL: 'not a url'")
    """

    pass


class TargetNotFoundError(PingMonitorError):
    """Raised when an operation references a target id that does not exist."""

    def __init__(self, target_id: str) -> None:
        super().__init__(f"Target not found: {target_id}")
        self.target_id = target_id


class StoreError(PingMonitorError):
    """Raised when the target store cannot read or persist its data."""

    pass


class SchedulerUnavailableError(PingMonitorError):
    """Raised when a command cannot be delivered to the scheduler's event loop."""

    pass


__all__ = [
    "InvalidTargetError",
    "PingMonitorError",
    "SchedulerUnavailableError",
    "StoreError",
    "TargetNotFoundError",
]
