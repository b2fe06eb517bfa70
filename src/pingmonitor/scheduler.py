"""Cycle scheduler: the long-lived loop that walks and probes all targets.

The scheduler owns exactly one background task. Each iteration of that task:

1. pulls newly discovered targets through the ingestion hook,
2. takes a fresh snapshot of the target store,
3. if the snapshot is empty, waits ``empty_retry_interval`` and starts over,
4. otherwise walks the snapshot in order, publishing the current index and id
   to ``CycleStats`` before each probe and pausing ``inter_probe_delay``
   between probes,
5. publishes the next cycle start, saves the cycle number and daily counters
   through the store, and waits out the remainder of ``min_cycle_time``
   (unless bypass mode is on).

All waits go through one cancellable-sleep primitive backed by an
``asyncio.Event``: ``stop()`` wakes any wait, enabling bypass wakes only the
post-cycle wait. The running flag is checked before every probe and before
every wait, so a stopped scheduler never starts another probe.

``CycleStats`` and the running/bypass flags are only touched from the event
loop the scheduler runs on. Callers on other threads must go through
``pingmonitor.control.SchedulerController``. Readers get copies from
``get_status()``.

State machine::

    stopped --start()--> in_cycle <--> idle_waiting
       ^                                   |
       +------------- stop() --------------+
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING, Protocol, TypeAlias

from pingmonitor.exceptions import StoreError
from pingmonitor.logging import get_logger
from pingmonitor.models import CycleStats, Target
from pingmonitor.probe import ProbeOutcome, classify
from pingmonitor.types import SchedulerState

if TYPE_CHECKING:
    from pingmonitor.config import SchedulerConfig
    from pingmonitor.ingestion import TargetIngestor
    from pingmonitor.store import TargetSource

logger = get_logger(__name__)

ProbeResult: TypeAlias = tuple[Target, ProbeOutcome]


class ProbeRunner(Protocol):
    """The part of the probe executor the scheduler depends on."""

    async def probe(self, target: Target) -> ProbeOutcome:
        """Probe a target, record the result, and return the outcome."""
        ...


@dataclass(frozen=True)
class SchedulerStatus:
    """Read-only composite view of the scheduler and the monitored targets.

    Attributes:
        running: Whether the scheduler is running.
        bypass: Whether the minimum cycle time is bypassed.
        state: Current state of the scheduler state machine.
        stats: Copy of the cycle statistics.
        targets: Snapshot of all targets.
    """

    running: bool
    bypass: bool
    state: SchedulerState
    stats: CycleStats
    targets: list[Target] = field(default_factory=list)


class CycleScheduler:
    """Repeatedly probes every target, one at a time, with spacing rules.

    Attributes:
        inter_probe_delay: Pause between two probes of the same pass (seconds).
        min_cycle_time: Minimum time between two pass starts (seconds).
        empty_retry_interval: Re-poll interval while there are no targets.
    """

    def __init__(
        self,
        store: TargetSource,
        probe_executor: ProbeRunner,
        ingestor: TargetIngestor | None = None,
        inter_probe_delay: float = 1.0,
        min_cycle_time: float = 600.0,
        empty_retry_interval: float = 10.0,
        bypass: bool = False,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the scheduler in the stopped state.

        Args:
            store: Source of target snapshots.
            probe_executor: Performs and records individual probes.
            ingestor: Optional hook called at the top of every pass.
            inter_probe_delay: Pause between consecutive probes in seconds.
            min_cycle_time: Minimum seconds between pass starts.
            empty_retry_interval: Seconds to wait before re-checking an
                empty target list.
            bypass: Start with the minimum cycle time bypassed.
            clock: Wall clock, injectable for tests.
        """
        self.inter_probe_delay = inter_probe_delay
        self.min_cycle_time = min_cycle_time
        self.empty_retry_interval = empty_retry_interval
        self._store = store
        self._probe = probe_executor
        self._ingestor = ingestor
        self._clock = clock or (lambda: datetime.now(UTC))

        self._running = False
        self._bypass = bypass
        self._state = SchedulerState.IDLE_WAITING
        self._stats = self._restore_stats()
        self._stats.bypass_mode = bypass

        # Bumped by stop(); a pass aborts when the generation it started in
        # is no longer current, even if start() was called again meanwhile.
        self._generation = 0
        self._single_pass = False
        self._in_post_cycle_wait = False
        self._wakeup = asyncio.Event()
        # Periodic passes and one-off probes never run concurrently.
        self._probe_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls,
        config: SchedulerConfig,
        store: TargetSource,
        probe_executor: ProbeRunner,
        ingestor: TargetIngestor | None = None,
    ) -> CycleScheduler:
        """Create a CycleScheduler from the scheduler section of the app Config."""
        return cls(
            store,
            probe_executor,
            ingestor=ingestor,
            inter_probe_delay=config.inter_probe_delay,
            min_cycle_time=config.min_cycle_time,
            empty_retry_interval=config.empty_retry_interval,
            bypass=config.bypass,
        )

    @property
    def running(self) -> bool:
        """Whether the scheduler loop is (supposed to be) running."""
        return self._running

    @property
    def bypass(self) -> bool:
        """Whether the minimum cycle time is bypassed."""
        return self._bypass

    @property
    def state(self) -> SchedulerState:
        """Current state of the scheduler state machine."""
        if not self._running and not self._single_pass:
            return SchedulerState.STOPPED
        return self._state

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the scheduler loop. No-op if it is already running."""
        if self._running:
            return

        self._running = True
        self._stats.is_running = True
        logger.info("Ping service started")

        # A loop task from before a recent stop() may still be finishing its
        # in-flight probe; it will pick up the new run instead of exiting.
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="cycle-scheduler")

    async def stop(self) -> None:
        """Stop the scheduler loop.

        Any pending wait is cancelled immediately. A probe that is already in
        flight may finish and be recorded, but no further probe is started.
        """
        was_running = self._running
        self._running = False
        self._stats.is_running = False
        self._generation += 1
        self._wakeup.set()
        if was_running:
            logger.info("Ping service stopped")

    async def set_bypass(self, enabled: bool) -> None:
        """Enable or disable bypass of the minimum cycle time.

        Enabling bypass while the scheduler is waiting out the minimum cycle
        time cancels that wait, so the next pass starts right away.
        """
        self._bypass = enabled
        self._stats.bypass_mode = enabled
        logger.info("Bypass mode %s", "enabled" if enabled else "disabled")

        if enabled and self._running and self._in_post_cycle_wait:
            logger.debug(
                "Cancelling post-cycle wait",
                extra={"diagnostic_tag": "cycle"},
            )
            self._wakeup.set()

    async def probe_if_idle(self, target_id: str) -> bool:
        """Probe a single target right away if the scheduler is between passes.

        Gives newly added targets fast feedback without waiting for the next
        pass. Does nothing when the scheduler is stopped or mid-pass, and
        never touches the pass bookkeeping in ``CycleStats``.

        Args:
            target_id: Id of the target to probe.

        Returns:
            True if a probe was performed.
        """
        if not self._running or self._state == SchedulerState.IN_CYCLE:
            return False

        target = self._store.get(target_id)
        if target is None:
            return False

        logger.info("Pinging new URL immediately: %s", target.url, extra={"target_id": target.id})
        async with self._probe_lock:
            outcome = await self._probe.probe(target)
        self._record_outcome(outcome, in_pass=False)
        return True

    def get_status(self) -> SchedulerStatus:
        """Return a consistent-enough snapshot of scheduler state and targets."""
        return SchedulerStatus(
            running=self._running,
            bypass=self._bypass,
            state=self.state,
            stats=self._stats.snapshot(),
            targets=self._store.list(),
        )

    async def wait_stopped(self, timeout: float | None = None) -> None:
        """Wait for the loop task to exit after ``stop()``.

        If the task does not finish within ``timeout`` seconds (typically
        because a probe is still in flight), it is cancelled.
        """
        task = self._task
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except TimeoutError:
            logger.warning("Scheduler did not stop within %.1fs, cancelling", timeout or 0.0)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def run_pass_once(self) -> list[ProbeResult]:
        """Run exactly one pass without entering the forever loop.

        The minimum cycle time is not waited out afterwards.

        Returns:
            ``(target, outcome)`` for every probed target, in pass order.

        Raises:
            RuntimeError: If the scheduler loop is running.
        """
        if self._running:
            raise RuntimeError("Cannot run a single pass while the scheduler loop is running")

        results: list[ProbeResult] = []
        self._single_pass = True
        generation = self._generation
        try:
            targets = self._pull_targets()
            if targets:
                await self._run_pass(targets, generation, results)
                self._finish_pass()
        finally:
            self._single_pass = False
            self._state = SchedulerState.IDLE_WAITING
        return results

    # ------------------------------------------------------------------
    # Loop internals
    # ------------------------------------------------------------------

    def _should_continue(self, generation: int) -> bool:
        return self._generation == generation and (self._running or self._single_pass)

    async def _sleep(self, seconds: float, generation: int) -> bool:
        """Cancellable sleep.

        Returns:
            True if the wait was cut short by a wake-up.
        """
        self._wakeup.clear()
        if not self._should_continue(generation):
            return True
        if seconds <= 0:
            await asyncio.sleep(0)
            return False
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True

    async def _run(self) -> None:
        logger.debug("Scheduler loop started", extra={"diagnostic_tag": "cycle"})
        try:
            while self._running:
                generation = self._generation
                try:
                    targets = self._pull_targets()
                    if not self._should_continue(generation):
                        continue

                    if not targets:
                        self._state = SchedulerState.IDLE_WAITING
                        logger.debug(
                            "No targets, re-checking in %.1fs",
                            self.empty_retry_interval,
                            extra={"diagnostic_tag": "cycle"},
                        )
                        await self._sleep(self.empty_retry_interval, generation)
                        continue

                    completed = await self._run_pass(targets, generation)
                    if not completed:
                        self._abort_pass()
                        continue

                    wait = self._finish_pass()
                except Exception as e:
                    # INTENTIONAL BROAD CATCH: the loop must survive any fault
                    # inside a pass; the iteration degrades to "no targets".
                    logger.exception(
                        "Unexpected error in ping cycle: %s",
                        e,
                        extra={"error_type": type(e).__name__},
                    )
                    self._abort_pass()
                    await self._sleep(self.empty_retry_interval, generation)
                    continue

                if wait > 0:
                    self._in_post_cycle_wait = True
                    try:
                        await self._sleep(wait, generation)
                    finally:
                        self._in_post_cycle_wait = False
                else:
                    # Next pass starts on the next scheduling tick.
                    await asyncio.sleep(0)
        finally:
            self._state = SchedulerState.IDLE_WAITING
            logger.debug("Scheduler loop exited", extra={"diagnostic_tag": "cycle"})

    def _pull_targets(self) -> list[Target]:
        """Run the ingestion hook and take a fresh snapshot of the store.

        A failure in either step is logged and treated as an empty target
        list for this iteration.
        """
        try:
            if self._ingestor is not None:
                self._ingestor.pull_newly_discovered()
            return self._store.list()
        except Exception as e:
            # INTENTIONAL BROAD CATCH: ingestion and store backends are
            # pluggable; any failure here only skips one iteration.
            logger.error(
                "Failed to read targets, treating as empty: %s",
                e,
                extra={"error_type": type(e).__name__},
            )
            return []

    async def _run_pass(
        self,
        targets: list[Target],
        generation: int,
        results: list[ProbeResult] | None = None,
    ) -> bool:
        """Walk the snapshot once, probing every target in order.

        Returns:
            True if the pass reached its end, False if it was stopped.
        """
        now = self._clock()
        stats = self._stats
        stats.current_cycle += 1
        stats.total_targets = len(targets)
        stats.cycle_start_time = now
        stats.current_target_index = 0
        stats.current_target_id = None
        stats.cycle_successful = 0
        stats.cycle_failed = 0
        self._state = SchedulerState.IN_CYCLE

        cycle_logger = logger.with_context(cycle=stats.current_cycle)
        cycle_logger.info("Starting ping cycle with %d URLs", len(targets))

        last_index = len(targets) - 1
        for index, snapshot in enumerate(targets):
            if not self._should_continue(generation):
                return False

            stats.current_target_index = index
            stats.current_target_id = snapshot.id

            # Re-read so edits are honoured and deletions are skipped.
            target = self._store.get(snapshot.id)
            if target is None:
                cycle_logger.debug(
                    "Target %s was deleted, skipping",
                    snapshot.id,
                    extra={"diagnostic_tag": "cycle"},
                )
            else:
                async with self._probe_lock:
                    if not self._should_continue(generation):
                        return False
                    outcome = await self._probe.probe(target)
                self._record_outcome(outcome, in_pass=True)
                if results is not None:
                    results.append((target, outcome))

            if index < last_index:
                await self._sleep(self.inter_probe_delay, generation)

        return True

    def _finish_pass(self) -> float:
        """Publish end-of-pass statistics and compute the post-cycle wait.

        ``next_cycle_time`` is always ``cycle_start_time + elapsed + wait``
        using the millisecond values recorded in the stats.

        Returns:
            Seconds to wait before the next pass.
        """
        stats = self._stats
        end = self._clock()
        start = stats.cycle_start_time or end
        elapsed_ms = max(0, (end - start) // timedelta(milliseconds=1))
        min_cycle_ms = round(self.min_cycle_time * 1000)

        wait_ms = 0
        if not self._bypass and elapsed_ms < min_cycle_ms:
            wait_ms = min_cycle_ms - elapsed_ms

        stats.last_cycle_elapsed_ms = elapsed_ms
        stats.last_cycle_wait_ms = wait_ms
        stats.next_cycle_time = start + timedelta(milliseconds=elapsed_ms + wait_ms)
        stats.current_target_id = None
        stats.current_target_index = 0
        self._state = SchedulerState.IDLE_WAITING
        self._save_stats()

        logger.info(
            "Cycle completed in %dms (%d ok, %d failed). Next cycle in %dms",
            elapsed_ms,
            stats.cycle_successful,
            stats.cycle_failed,
            wait_ms,
            extra={"cycle": stats.current_cycle},
        )
        return wait_ms / 1000

    def _abort_pass(self) -> None:
        self._stats.current_target_id = None
        self._stats.current_target_index = 0
        self._state = SchedulerState.IDLE_WAITING

    def _local_date(self) -> date:
        return self._clock().astimezone().date()

    def _restore_stats(self) -> CycleStats:
        """Resume the cycle number and today's counters from the store."""
        saved = self._store.load_stats()
        if not saved:
            return CycleStats()
        try:
            stats = CycleStats.from_persisted(saved, today=self._local_date())
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable saved cycle statistics: %s", e)
            return CycleStats()
        logger.info(
            "Resuming after cycle %d (%d ok, %d failed today)",
            stats.current_cycle,
            stats.successful_pings_today,
            stats.failed_pings_today,
        )
        return stats

    def _save_stats(self) -> None:
        try:
            self._store.save_stats(self._stats.to_persisted())
        except StoreError as e:
            logger.error("Failed to save cycle statistics: %s", e)

    def _record_outcome(self, outcome: ProbeOutcome, in_pass: bool) -> None:
        stats = self._stats
        today = self._local_date()
        if stats.stats_date != today:
            stats.stats_date = today
            stats.successful_pings_today = 0
            stats.failed_pings_today = 0

        if classify(outcome).is_success:
            stats.successful_pings_today += 1
            if in_pass:
                stats.cycle_successful += 1
        else:
            stats.failed_pings_today += 1
            if in_pass:
                stats.cycle_failed += 1


__all__ = [
    "CycleScheduler",
    "ProbeResult",
    "ProbeRunner",
    "SchedulerStatus",
]
