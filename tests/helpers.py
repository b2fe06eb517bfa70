"""Test helper functions for ping monitor tests.

These helpers simplify test setup by providing sensible defaults (fast
timings, in-memory store) while allowing customization.

Usage
=====

Import and use helpers directly in tests::

    from tests.helpers import make_config, make_scheduler, make_store, wait_until

    async def test_example():
        store = make_store("https://a.example", "https://b.example")
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=60.0)
        ...
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import patch

import httpx

from pingmonitor.config import (
    Config,
    DashboardConfig,
    LoggingConfig,
    ProbeConfig,
    SchedulerConfig,
    StorageConfig,
)
from pingmonitor.models import Target
from pingmonitor.scheduler import CycleScheduler
from pingmonitor.store import TargetStore
from pingmonitor.types import TargetStatus

if TYPE_CHECKING:
    from pingmonitor.ingestion import TargetIngestor
    from pingmonitor.scheduler import ProbeRunner
    from pingmonitor.store import TargetSource


def make_config(
    # Scheduler settings
    inter_probe_delay: float = 0.0,
    min_cycle_time: float = 60.0,
    empty_retry_interval: float = 0.05,
    bypass: bool = False,
    autostart: bool = True,
    # Probe settings
    probe_timeout: float = 1.0,
    slow_threshold: float = 0.5,
    # Storage settings
    data_file: Path | None = None,
    drop_file: Path | None = None,
    # API settings
    api_enabled: bool = False,
    api_host: str = "127.0.0.1",
    api_port: int = 8080,
    # Logging settings
    log_level: str = "INFO",
    log_json: bool = False,
) -> Config:
    """Create a Config with fast, test-friendly defaults."""
    return Config(
        scheduler=SchedulerConfig(
            inter_probe_delay=inter_probe_delay,
            min_cycle_time=min_cycle_time,
            empty_retry_interval=empty_retry_interval,
            bypass=bypass,
            autostart=autostart,
        ),
        probe=ProbeConfig(timeout=probe_timeout, slow_threshold=slow_threshold),
        storage=StorageConfig(data_file=data_file, drop_file=drop_file),
        dashboard=DashboardConfig(enabled=api_enabled, host=api_host, port=api_port),
        logging_config=LoggingConfig(level=log_level, json=log_json),
    )


def make_target(
    url: str = "https://example.com/",
    target_id: str = "target-1",
    name: str | None = None,
    status: TargetStatus = TargetStatus.PENDING,
    **fields: object,
) -> Target:
    """Create a Target with sensible defaults."""
    return Target(id=target_id, url=url, name=name, status=status, **fields)  # type: ignore[arg-type]


def make_store(*urls: str, data_file: Path | None = None) -> TargetStore:
    """Create a TargetStore pre-populated with the given URLs, in order."""
    store = TargetStore(data_file)
    for url in urls:
        store.create(url)
    return store


def make_scheduler(
    store: TargetSource,
    probe: ProbeRunner,
    ingestor: TargetIngestor | None = None,
    inter_probe_delay: float = 0.0,
    min_cycle_time: float = 60.0,
    empty_retry_interval: float = 0.05,
    bypass: bool = False,
    clock: Callable[[], datetime] | None = None,
) -> CycleScheduler:
    """Create a CycleScheduler with fast defaults.

    The default minimum cycle time is long, so a started scheduler runs one
    pass and then idles until the test stops it or enables bypass.
    """
    return CycleScheduler(
        store,
        probe,
        ingestor=ingestor,
        inter_probe_delay=inter_probe_delay,
        min_cycle_time=min_cycle_time,
        empty_retry_interval=empty_retry_interval,
        bypass=bypass,
        clock=clock,
    )


async def shutdown_scheduler(scheduler: CycleScheduler) -> None:
    """Stop a scheduler and wait for its loop task to exit."""
    await scheduler.stop()
    await scheduler.wait_stopped(timeout=2.0)


async def wait_until(
    predicate: Callable[[], bool],
    timeout: float = 2.0,
    interval: float = 0.005,
) -> None:
    """Poll ``predicate`` on the running loop until it is true.

    Raises:
        AssertionError: If the predicate is still false after ``timeout``.
    """
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError(f"Condition not met within {timeout}s")
        await asyncio.sleep(interval)


RequestHandler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


@contextmanager
def mock_http(handler: RequestHandler) -> Iterator[None]:
    """Route every ``httpx.AsyncClient`` created inside the block through ``handler``.

    The client keeps all other constructor arguments, so redirect and header
    behavior of the code under test is preserved.
    """
    real_client = httpx.AsyncClient

    def client_factory(*args: object, **kwargs: object) -> httpx.AsyncClient:
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)  # type: ignore[arg-type]

    with patch("httpx.AsyncClient", side_effect=client_factory):
        yield


def respond(status_code: int, **kwargs: object) -> RequestHandler:
    """Handler that answers every request with the same response."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, **kwargs)  # type: ignore[arg-type]

    return handler


def raise_error(error: Exception) -> RequestHandler:
    """Handler that fails every request with ``error``."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise error

    return handler


class FakeClock:
    """Manually advanced wall clock for deterministic timestamps."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
