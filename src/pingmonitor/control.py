"""Thread-safe command channel to the cycle scheduler.

The scheduler and its ``CycleStats`` live on one event loop (the main
thread's). The HTTP API is served by uvicorn on a background thread with its
own loop, so it must never touch the scheduler directly. ``SchedulerController``
submits every command as a coroutine to the scheduler's loop with
``asyncio.run_coroutine_threadsafe`` and awaits the result from the caller's
loop.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any, TypeVar

from pingmonitor.exceptions import SchedulerUnavailableError
from pingmonitor.logging import get_logger

if TYPE_CHECKING:
    from pingmonitor.scheduler import CycleScheduler, SchedulerStatus

logger = get_logger(__name__)

T = TypeVar("T")

# How long an API request waits for the scheduler loop to run a command
DEFAULT_COMMAND_TIMEOUT = 5.0


class SchedulerController:
    """Facade that forwards control commands to the scheduler's event loop."""

    def __init__(
        self,
        scheduler: CycleScheduler,
        loop: asyncio.AbstractEventLoop,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        """Initialize the controller.

        Args:
            scheduler: The scheduler to control.
            loop: The event loop the scheduler runs on.
            timeout: Seconds to wait for a command to complete.
        """
        self._scheduler = scheduler
        self._loop = loop
        self._timeout = timeout

    async def _submit(self, coro: Coroutine[Any, Any, T]) -> T:
        if asyncio.get_running_loop() is self._loop:
            return await coro

        try:
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError as e:
            coro.close()
            raise SchedulerUnavailableError(f"Scheduler loop is not available: {e}") from e

        try:
            return await asyncio.wait_for(asyncio.wrap_future(future), timeout=self._timeout)
        except TimeoutError as e:
            future.cancel()
            raise SchedulerUnavailableError(
                f"Scheduler did not respond within {self._timeout:.1f}s"
            ) from e

    async def start(self) -> None:
        """Start the scheduler."""
        await self._submit(self._scheduler.start())

    async def stop(self) -> None:
        """Stop the scheduler."""
        await self._submit(self._scheduler.stop())

    async def set_bypass(self, enabled: bool) -> None:
        """Enable or disable bypass of the minimum cycle time."""
        await self._submit(self._scheduler.set_bypass(enabled))

    async def get_status(self) -> SchedulerStatus:
        """Return a status snapshot taken on the scheduler's loop."""

        async def snapshot() -> SchedulerStatus:
            return self._scheduler.get_status()

        return await self._submit(snapshot())

    def request_probe(self, target_id: str) -> None:
        """Ask the scheduler to probe a target if it is idle, without waiting.

        Errors are logged; the caller is never affected.
        """
        coro = self._scheduler.probe_if_idle(target_id)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError as e:
            coro.close()
            logger.warning("Could not request immediate probe of %s: %s", target_id, e)
            return

        def _log_failure(done: concurrent.futures.Future[bool]) -> None:
            if done.cancelled():
                return
            error = done.exception()
            if error is not None:
                logger.error(
                    "Immediate probe of %s failed: %s",
                    target_id,
                    error,
                    extra={"target_id": target_id},
                )

        future.add_done_callback(_log_failure)


__all__ = ["DEFAULT_COMMAND_TIMEOUT", "SchedulerController"]
