"""Data model for monitored targets and cycle statistics.

Target
    One monitored endpoint and its latest observed health. Instances are
    treated as immutable snapshots: the store hands out copies and applies
    updates with ``dataclasses.replace``.

CycleStats
    Progress counters of the cycle scheduler. Owned and mutated only by the
    scheduler; everybody else receives a copy via ``CycleStats.snapshot()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from typing import Any

from pingmonitor.types import TargetStatus

def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Target:
    """A monitored network endpoint.

    Attributes:
        id: Opaque unique identifier.
        url: Address of the endpoint, always a valid http(s) URL.
        name: Optional display name.
        status: Health status from the most recent probe.
        last_ping: When the most recent probe finished, None if never probed.
        response_time: Latency of the most recent probe in milliseconds.
        last_error: Human-readable error of the most recent failed probe.
        created_at: When the target was added.
    """

    id: str
    url: str
    name: str | None = None
    status: TargetStatus = TargetStatus.PENDING
    last_ping: datetime | None = None
    response_time: int | None = None
    last_error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "status": self.status.value,
            "last_ping": _format_datetime(self.last_ping),
            "response_time": self.response_time,
            "last_error": self.last_error,
            "created_at": _format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Target:
        """Rebuild a Target from the dictionary produced by ``to_dict``.

        Unknown status strings fall back to PENDING so that a hand-edited data
        file does not prevent the store from loading.
        """
        raw_status = data.get("status") or TargetStatus.PENDING.value
        status = (
            TargetStatus(raw_status)
            if TargetStatus.is_valid(raw_status)
            else TargetStatus.PENDING
        )
        created_at = _parse_datetime(data.get("created_at")) or datetime.now(UTC)
        return cls(
            id=str(data["id"]),
            url=str(data["url"]),
            name=data.get("name"),
            status=status,
            last_ping=_parse_datetime(data.get("last_ping")),
            response_time=data.get("response_time"),
            last_error=data.get("last_error"),
            created_at=created_at,
        )


@dataclass
class CycleStats:
    """Live progress counters of the cycle scheduler.

    Attributes:
        current_cycle: Number of passes started so far (0 before the first).
        total_targets: Size of the snapshot walked by the current pass.
        cycle_start_time: When the current (or last) pass started.
        next_cycle_time: When the next pass is scheduled to start.
        current_target_index: Position in the snapshot of the target being
            probed. Reset to 0 between passes.
        current_target_id: Id of the target being probed, None between passes.
        is_running: Whether the scheduler is running.
        bypass_mode: Whether the minimum cycle time is bypassed.
        successful_pings_today: Probes classified online or warning today.
        failed_pings_today: Probes classified offline today.
        stats_date: Local date the daily counters belong to.
        cycle_successful: Successful probes in the current (or last) pass.
        cycle_failed: Failed probes in the current (or last) pass.
        last_cycle_elapsed_ms: Duration of the last completed pass.
        last_cycle_wait_ms: Wait scheduled after the last completed pass.
    """

    current_cycle: int = 0
    total_targets: int = 0
    cycle_start_time: datetime | None = None
    next_cycle_time: datetime | None = None
    current_target_index: int = 0
    current_target_id: str | None = None
    is_running: bool = False
    bypass_mode: bool = False
    successful_pings_today: int = 0
    failed_pings_today: int = 0
    stats_date: date | None = None
    cycle_successful: int = 0
    cycle_failed: int = 0
    last_cycle_elapsed_ms: int | None = None
    last_cycle_wait_ms: int | None = None

    def snapshot(self) -> CycleStats:
        """Return an independent copy for readers outside the scheduler."""
        return replace(self)

    def to_persisted(self) -> dict[str, Any]:
        """Counters that survive a restart, as written to the data file."""
        return {
            "current_cycle": self.current_cycle,
            "successful_pings_today": self.successful_pings_today,
            "failed_pings_today": self.failed_pings_today,
            "stats_date": self.stats_date.isoformat() if self.stats_date else None,
        }

    @classmethod
    def from_persisted(cls, data: dict[str, Any], today: date) -> CycleStats:
        """Rebuild the counters saved by ``to_persisted``.

        The cycle number always carries over. The daily counters only carry
        over when they were recorded on ``today``; otherwise they start at zero.

        Raises:
            TypeError: If a value has the wrong type.
            ValueError: If a value cannot be parsed.
        """
        raw_date = data.get("stats_date")
        stats = cls(current_cycle=max(0, int(data.get("current_cycle", 0))))
        if raw_date and date.fromisoformat(raw_date) == today:
            stats.stats_date = today
            stats.successful_pings_today = int(data.get("successful_pings_today", 0))
            stats.failed_pings_today = int(data.get("failed_pings_today", 0))
        return stats


__all__ = [
    "CycleStats",
    "Target",
]
