"""Tests for the cycle scheduler.

Timing tests run the real loop with short delays. Assertions on spacing
use a small tolerance below the configured delay because the event loop
clock and ``time.monotonic`` can disagree by a fraction of a millisecond.
"""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta
from pathlib import Path

import httpx
import pytest

from pingmonitor.probe import ProbeExecutor, ProbeFailure, ProbeSlowSuccess, ProbeSuccess
from pingmonitor.scheduler import CycleScheduler
from pingmonitor.store import TargetStore
from pingmonitor.types import SchedulerState, TargetStatus
from tests.helpers import (
    FakeClock,
    make_config,
    make_scheduler,
    make_store,
    mock_http,
    shutdown_scheduler,
    wait_until,
)
from tests.mocks import FlakyStore, MockIngestor, MockProbeExecutor

A = "https://a.example/"
B = "https://b.example/"
C = "https://c.example/"

TOLERANCE = 0.01


class TestInitialState:
    """Tests for a freshly created scheduler."""

    def test_starts_stopped(self) -> None:
        scheduler = make_scheduler(TargetStore(), MockProbeExecutor())

        status = scheduler.get_status()

        assert status.running is False
        assert status.state == SchedulerState.STOPPED
        assert status.stats.current_cycle == 0
        assert status.stats.current_target_id is None
        assert status.targets == []

    def test_from_config(self) -> None:
        config = make_config(inter_probe_delay=2.0, min_cycle_time=30.0, bypass=True)

        scheduler = CycleScheduler.from_config(config.scheduler, TargetStore(), MockProbeExecutor())

        assert scheduler.inter_probe_delay == 2.0
        assert scheduler.min_cycle_time == 30.0
        assert scheduler.bypass is True
        assert scheduler.get_status().stats.bypass_mode is True


class TestPassOrdering:
    """Each pass visits every target exactly once, in snapshot order."""

    @pytest.mark.asyncio
    async def test_visits_each_target_once_in_order(self) -> None:
        store = make_store(A, B, C)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=60.0)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) == 3)
            # The minimum cycle time keeps the next pass from starting
            await asyncio.sleep(0.1)
            assert probe.calls == [A, B, C]
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_publishes_index_and_id_before_each_probe(self) -> None:
        store = make_store(A, B, C)
        seen: list[tuple[int, str | None]] = []
        scheduler: CycleScheduler

        def record(target: object) -> None:
            stats = scheduler.get_status().stats
            seen.append((stats.current_target_index, stats.current_target_id))

        probe = MockProbeExecutor(store, on_probe=record)
        scheduler = make_scheduler(store, probe)
        ids = [target.id for target in store.list()]

        await scheduler.start()
        try:
            await wait_until(lambda: len(seen) == 3)
            await wait_until(lambda: scheduler.state == SchedulerState.IDLE_WAITING)
            assert seen == [(0, ids[0]), (1, ids[1]), (2, ids[2])]

            stats = scheduler.get_status().stats
            assert stats.current_target_index == 0
            assert stats.current_target_id is None
            assert stats.total_targets == 3
            assert stats.current_cycle == 1
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_state_is_in_cycle_while_probing(self) -> None:
        store = make_store(A)
        states: list[SchedulerState] = []
        scheduler: CycleScheduler

        def record(target: object) -> None:
            states.append(scheduler.state)

        probe = MockProbeExecutor(store, on_probe=record)
        scheduler = make_scheduler(store, probe)

        await scheduler.start()
        try:
            await wait_until(lambda: len(states) == 1)
            await wait_until(lambda: scheduler.state == SchedulerState.IDLE_WAITING)
            assert states == [SchedulerState.IN_CYCLE]
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_target_deleted_mid_pass_is_skipped(self) -> None:
        store = make_store(A, B, C)
        b_id = store.list()[1].id

        def delete_b(target: object) -> None:
            if store.get(b_id) is not None:
                store.delete(b_id)

        probe = MockProbeExecutor(store, on_probe=delete_b)
        scheduler = make_scheduler(store, probe)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.get_status().stats.last_cycle_elapsed_ms is not None)
            assert probe.calls == [A, C]
            assert scheduler.get_status().stats.total_targets == 3
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_target_added_mid_pass_waits_for_next_pass(self) -> None:
        store = make_store(A, B)

        def add_c(target: object) -> None:
            if C not in [known.url for known in store.list()]:
                store.create(C)

        probe = MockProbeExecutor(store, on_probe=add_c)
        scheduler = make_scheduler(store, probe, min_cycle_time=0.0)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) >= 5)
            assert probe.calls[:5] == [A, B, A, B, C]
        finally:
            await shutdown_scheduler(scheduler)


class TestSpacing:
    """Tests for inter-probe and minimum cycle spacing."""

    @pytest.mark.asyncio
    async def test_inter_probe_delay_between_consecutive_probes(self) -> None:
        store = make_store(A, B, C)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, inter_probe_delay=0.05)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) == 3)
            gaps = [b - a for a, b in zip(probe.call_times, probe.call_times[1:], strict=False)]
            assert all(gap >= 0.05 - TOLERANCE for gap in gaps)
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_min_cycle_time_between_pass_starts(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=0.2)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) == 2)
            assert probe.call_times[1] - probe.call_times[0] >= 0.2 - TOLERANCE
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_slow_pass_starts_next_pass_without_waiting(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store, delay=0.1)
        scheduler = make_scheduler(store, probe, min_cycle_time=0.05)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) == 2)
            stats = scheduler.get_status().stats
            assert stats.last_cycle_wait_ms == 0
            assert stats.last_cycle_elapsed_ms is not None
            assert stats.last_cycle_elapsed_ms >= 50
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_next_cycle_time_is_start_plus_elapsed_plus_wait(self) -> None:
        clock = FakeClock()
        store = make_store(A, B, C)

        def tick(target: object) -> None:
            clock.advance(2.0)

        probe = MockProbeExecutor(store, on_probe=tick)
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0, clock=clock)
        pass_start = clock.now

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.get_status().stats.next_cycle_time is not None)
            stats = scheduler.get_status().stats
            assert stats.cycle_start_time == pass_start
            assert stats.last_cycle_elapsed_ms == 6000
            assert stats.last_cycle_wait_ms == 594000
            assert stats.next_cycle_time == pass_start + timedelta(
                milliseconds=stats.last_cycle_elapsed_ms + stats.last_cycle_wait_ms
            )
            assert stats.next_cycle_time == pass_start + timedelta(seconds=600)
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_next_cycle_time_not_before_min_cycle_time(self) -> None:
        store = make_store(A, B)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=30.0)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.get_status().stats.next_cycle_time is not None)
            stats = scheduler.get_status().stats
            assert stats.cycle_start_time is not None
            assert stats.next_cycle_time is not None
            assert stats.next_cycle_time - stats.cycle_start_time >= timedelta(seconds=30)
        finally:
            await shutdown_scheduler(scheduler)


class TestBypass:
    """Tests for bypass mode."""

    @pytest.mark.asyncio
    async def test_bypass_skips_min_cycle_wait(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=60.0, bypass=True)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) >= 3)
            assert scheduler.get_status().stats.last_cycle_wait_ms == 0
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_enabling_bypass_cancels_post_cycle_wait(self) -> None:
        store = make_store(A, B)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=60.0)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.get_status().stats.next_cycle_time is not None)
            await asyncio.sleep(0.02)
            assert len(probe.calls) == 2

            await scheduler.set_bypass(True)

            await wait_until(lambda: len(probe.calls) >= 4, timeout=1.0)
            assert probe.calls[2:4] == [A, B]
            status = scheduler.get_status()
            assert status.bypass is True
            assert status.stats.bypass_mode is True
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_enabling_bypass_does_not_cut_inter_probe_delay(self) -> None:
        store = make_store(A, B)
        scheduler: CycleScheduler

        async def enable_bypass(target: object) -> None:
            await scheduler.set_bypass(True)

        probe = MockProbeExecutor(store, on_probe=enable_bypass)
        scheduler = make_scheduler(store, probe, inter_probe_delay=0.1)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) >= 2)
            assert probe.call_times[1] - probe.call_times[0] >= 0.1 - TOLERANCE
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_disabling_bypass_restores_min_cycle_time(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=60.0, bypass=True)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) >= 2)
            await scheduler.set_bypass(False)
            await wait_until(lambda: (scheduler.get_status().stats.last_cycle_wait_ms or 0) > 0)
            count = len(probe.calls)
            await asyncio.sleep(0.1)
            assert len(probe.calls) == count
        finally:
            await shutdown_scheduler(scheduler)


class TestStartStop:
    """Tests for start/stop semantics."""

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe)

        await scheduler.start()
        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) == 1)
            await asyncio.sleep(0.05)
            assert probe.calls == [A]
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_stop_mid_pass_prevents_further_probes(self) -> None:
        store = make_store(A, B, C)
        probe = MockProbeExecutor(store, delay=0.1)
        scheduler = make_scheduler(store, probe)

        await scheduler.start()
        try:
            await wait_until(lambda: probe.in_flight)
            await scheduler.stop()
            assert scheduler.state == SchedulerState.STOPPED

            # The in-flight probe finishes and is recorded
            await scheduler.wait_stopped(timeout=1.0)
            await asyncio.sleep(0.1)
            assert probe.calls == [A]
            assert store.list()[0].status == TargetStatus.ONLINE
            assert store.list()[1].status == TargetStatus.PENDING

            status = scheduler.get_status()
            assert status.running is False
            assert status.stats.is_running is False
            assert status.stats.current_target_id is None
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_stop_cancels_inter_probe_delay(self) -> None:
        store = make_store(A, B)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, inter_probe_delay=30.0)

        await scheduler.start()
        await wait_until(lambda: len(probe.calls) == 1)
        await scheduler.stop()

        await asyncio.wait_for(scheduler.wait_stopped(), timeout=1.0)
        assert probe.calls == [A]

    @pytest.mark.asyncio
    async def test_stop_cancels_post_cycle_wait(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0)

        await scheduler.start()
        await wait_until(lambda: scheduler.get_status().stats.next_cycle_time is not None)
        await scheduler.stop()

        await asyncio.wait_for(scheduler.wait_stopped(), timeout=1.0)
        assert scheduler.state == SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_restart_runs_a_new_pass(self) -> None:
        store = make_store(A, B)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) == 2)
            await scheduler.stop()
            await scheduler.wait_stopped(timeout=1.0)

            await scheduler.start()
            await wait_until(lambda: len(probe.calls) == 4)
            assert probe.calls == [A, B, A, B]
            assert scheduler.get_status().stats.current_cycle == 2
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_stop_then_immediate_start_aborts_old_pass(self) -> None:
        store = make_store(A, B, C)
        probe = MockProbeExecutor(store, delay=0.05)
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0)

        await scheduler.start()
        try:
            await wait_until(lambda: probe.in_flight)
            await scheduler.stop()
            await scheduler.start()

            await wait_until(lambda: len(probe.calls) == 4)
            # A was in flight; the restarted pass begins again from A
            assert probe.calls == [A, A, B, C]
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_wait_stopped_cancels_hung_probe(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store, delay=30.0)
        scheduler = make_scheduler(store, probe)

        await scheduler.start()
        await wait_until(lambda: probe.in_flight)
        await scheduler.stop()

        await asyncio.wait_for(scheduler.wait_stopped(timeout=0.05), timeout=1.0)
        assert store.list()[0].status == TargetStatus.PENDING


class TestProbeIfIdle:
    """Tests for the one-off probe of a newly added target."""

    @pytest.mark.asyncio
    async def test_noop_when_stopped(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe)

        performed = await scheduler.probe_if_idle(store.list()[0].id)

        assert performed is False
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_noop_while_in_cycle(self) -> None:
        store = make_store(A)
        results: list[bool] = []
        scheduler: CycleScheduler

        async def probe_other(target: object) -> None:
            if not results:
                results.append(await scheduler.probe_if_idle(store.list()[0].id))

        probe = MockProbeExecutor(store, on_probe=probe_other)
        scheduler = make_scheduler(store, probe)

        await scheduler.start()
        try:
            await wait_until(lambda: bool(results))
            assert results == [False]
            assert probe.calls == [A]
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_probes_when_idle_without_touching_pass_bookkeeping(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.get_status().stats.next_cycle_time is not None)
            before = scheduler.get_status().stats

            new_target = store.create(B)
            performed = await scheduler.probe_if_idle(new_target.id)

            after = scheduler.get_status().stats
            assert performed is True
            assert probe.calls == [A, B]
            assert store.get(new_target.id).status == TargetStatus.ONLINE  # type: ignore[union-attr]
            assert after.current_cycle == before.current_cycle
            assert after.current_target_index == before.current_target_index
            assert after.current_target_id is None
            assert after.next_cycle_time == before.next_cycle_time
            assert after.cycle_successful == before.cycle_successful
            assert after.successful_pings_today == before.successful_pings_today + 1
            assert scheduler.state == SchedulerState.IDLE_WAITING
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_unknown_target_is_noop(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) == 1)
            await wait_until(lambda: scheduler.state == SchedulerState.IDLE_WAITING)
            assert await scheduler.probe_if_idle("missing") is False
            assert probe.calls == [A]
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_probes_while_waiting_for_targets(self) -> None:
        store = TargetStore()
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, empty_retry_interval=60.0)

        await scheduler.start()
        try:
            await asyncio.sleep(0.02)
            target = store.create(A)
            assert await scheduler.probe_if_idle(target.id) is True
            assert probe.calls == [A]
        finally:
            await shutdown_scheduler(scheduler)


class TestOutcomeCounting:
    """Tests for per-pass and daily counters."""

    @pytest.mark.asyncio
    async def test_mixed_outcomes_pass(self) -> None:
        store = make_store(A, B, C)
        probe = MockProbeExecutor(
            store,
            outcomes={
                A: ProbeSuccess(latency_ms=120),
                B: ProbeSlowSuccess(latency_ms=6200),
                C: ProbeFailure(reason="HTTP 503: Service Unavailable", latency_ms=40),
            },
        )
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.get_status().stats.next_cycle_time is not None)
            stats = scheduler.get_status().stats
            assert stats.cycle_successful == 2
            assert stats.cycle_failed == 1
            assert stats.successful_pings_today == 2
            assert stats.failed_pings_today == 1

            a, b, c = store.list()
            assert a.status == TargetStatus.ONLINE
            assert b.status == TargetStatus.WARNING
            assert c.status == TargetStatus.OFFLINE
            assert c.last_error == "HTTP 503: Service Unavailable"
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_daily_counters_reset_on_new_day(self) -> None:
        clock = FakeClock()
        store = make_store(A)
        probe = MockProbeExecutor(store)
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0, clock=clock)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.get_status().stats.successful_pings_today == 1)
            first_day = scheduler.get_status().stats.stats_date

            clock.advance(48 * 3600)
            await scheduler.set_bypass(True)

            await wait_until(lambda: len(probe.calls) >= 2)
            await wait_until(lambda: scheduler.get_status().stats.stats_date != first_day)
            assert scheduler.get_status().stats.successful_pings_today >= 1
            assert scheduler.get_status().stats.successful_pings_today < len(probe.calls)
        finally:
            await shutdown_scheduler(scheduler)


class TestEmptyAndFaults:
    """Tests for the empty-list idle loop and fault containment."""

    @pytest.mark.asyncio
    async def test_empty_store_idles_and_keeps_polling_ingestion(self) -> None:
        store = TargetStore()
        probe = MockProbeExecutor(store)
        ingestor = MockIngestor(store)
        scheduler = make_scheduler(store, probe, ingestor=ingestor, empty_retry_interval=0.02)

        await scheduler.start()
        try:
            await wait_until(lambda: ingestor.calls >= 3)
            assert probe.calls == []
            assert scheduler.state == SchedulerState.IDLE_WAITING
            assert scheduler.get_status().stats.current_cycle == 0

            ingestor.add_later(A)
            await wait_until(lambda: probe.calls == [A])
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_ingestion_called_once_per_pass(self) -> None:
        store = make_store(A, B)
        probe = MockProbeExecutor(store)
        ingestor = MockIngestor(store)
        scheduler = make_scheduler(store, probe, ingestor=ingestor, min_cycle_time=600.0)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.get_status().stats.next_cycle_time is not None)
            assert ingestor.calls == 1
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_ingestion_failure_is_treated_as_empty(self) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store)
        ingestor = MockIngestor(error=OSError("disk on fire"))
        scheduler = make_scheduler(store, probe, ingestor=ingestor, empty_retry_interval=0.02)

        await scheduler.start()
        try:
            await wait_until(lambda: ingestor.calls >= 3)
            assert probe.calls == []
            assert scheduler.running is True
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_store_failure_does_not_kill_loop(self) -> None:
        inner = make_store(A)
        store = FlakyStore(inner, failures=2)
        probe = MockProbeExecutor(inner)
        scheduler = make_scheduler(store, probe, empty_retry_interval=0.02)

        await scheduler.start()
        try:
            await wait_until(lambda: probe.calls == [A])
            assert store.list_calls >= 3
        finally:
            await shutdown_scheduler(scheduler)

    @pytest.mark.asyncio
    async def test_probe_exception_is_contained(self, caplog: pytest.LogCaptureFixture) -> None:
        store = make_store(A)
        probe = MockProbeExecutor(store, error=RuntimeError("boom"))
        scheduler = make_scheduler(store, probe, empty_retry_interval=0.02)

        await scheduler.start()
        try:
            await wait_until(lambda: len(probe.calls) >= 2)
            assert scheduler.running is True
            assert scheduler.get_status().stats.current_target_id is None
            assert "Unexpected error in ping cycle" in caplog.text
        finally:
            await shutdown_scheduler(scheduler)


class TestRunPassOnce:
    """Tests for the single-pass mode."""

    @pytest.mark.asyncio
    async def test_returns_outcomes_in_order(self) -> None:
        store = make_store(A, B)
        failure = ProbeFailure(reason="ConnectError", latency_ms=3)
        probe = MockProbeExecutor(store, outcomes={B: failure})
        scheduler = make_scheduler(store, probe, min_cycle_time=600.0)

        results = await scheduler.run_pass_once()

        assert [(target.url, outcome) for target, outcome in results] == [
            (A, ProbeSuccess(latency_ms=10)),
            (B, failure),
        ]
        assert scheduler.state == SchedulerState.STOPPED
        assert scheduler.get_status().stats.cycle_failed == 1

    @pytest.mark.asyncio
    async def test_runs_ingestion_first(self) -> None:
        store = TargetStore()
        probe = MockProbeExecutor(store)
        ingestor = MockIngestor(store, pending_urls=[A])
        scheduler = make_scheduler(store, probe, ingestor=ingestor)

        results = await scheduler.run_pass_once()

        assert [target.url for target, _ in results] == [A]

    @pytest.mark.asyncio
    async def test_empty_store_returns_nothing(self) -> None:
        scheduler = make_scheduler(TargetStore(), MockProbeExecutor())

        assert await scheduler.run_pass_once() == []

    @pytest.mark.asyncio
    async def test_refuses_while_running(self) -> None:
        store = make_store(A)
        scheduler = make_scheduler(store, MockProbeExecutor(store))

        await scheduler.start()
        try:
            with pytest.raises(RuntimeError, match="while the scheduler loop is running"):
                await scheduler.run_pass_once()
        finally:
            await shutdown_scheduler(scheduler)


class TestStatusSnapshot:
    """Tests for get_status()."""

    def test_stats_snapshot_is_a_copy(self) -> None:
        store = make_store(A)
        scheduler = make_scheduler(store, MockProbeExecutor(store))

        status = scheduler.get_status()
        status.stats.current_cycle = 99

        assert scheduler.get_status().stats.current_cycle == 0


class TestStatsPersistence:
    """Tests for counters that survive a restart."""

    @pytest.mark.asyncio
    async def test_counters_survive_restart(self, data_file: Path) -> None:
        clock = FakeClock()
        store = make_store(A, B, data_file=data_file)
        failure = ProbeFailure(reason="HTTP 500", latency_ms=3)
        probe = MockProbeExecutor(store, outcomes={B: failure})
        await make_scheduler(store, probe, clock=clock).run_pass_once()

        reloaded = TargetStore(data_file)
        restarted = make_scheduler(reloaded, MockProbeExecutor(reloaded), clock=clock)

        stats = restarted.get_status().stats
        assert stats.current_cycle == 1
        assert stats.successful_pings_today == 1
        assert stats.failed_pings_today == 1
        assert stats.is_running is False

        await restarted.run_pass_once()

        stats = restarted.get_status().stats
        assert stats.current_cycle == 2
        assert stats.successful_pings_today == 3
        assert stats.failed_pings_today == 1

    @pytest.mark.asyncio
    async def test_daily_counters_reset_when_restarted_on_another_day(
        self, data_file: Path
    ) -> None:
        clock = FakeClock()
        store = make_store(A, data_file=data_file)
        await make_scheduler(store, MockProbeExecutor(store), clock=clock).run_pass_once()

        clock.advance(48 * 3600)
        reloaded = TargetStore(data_file)
        restarted = make_scheduler(reloaded, MockProbeExecutor(reloaded), clock=clock)

        stats = restarted.get_status().stats

        assert stats.current_cycle == 1
        assert stats.successful_pings_today == 0
        assert stats.failed_pings_today == 0

    def test_unreadable_saved_stats_start_from_zero(
        self, data_file: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        data_file.write_text(
            json.dumps({"targets": [], "stats": {"current_cycle": "many"}}), encoding="utf-8"
        )
        store = TargetStore(data_file)

        stats = make_scheduler(store, MockProbeExecutor(store)).get_status().stats

        assert stats.current_cycle == 0
        assert "Ignoring unreadable saved cycle statistics" in caplog.text

    def test_bypass_setting_wins_over_saved_stats(self) -> None:
        store = make_store(A)
        store.save_stats({"current_cycle": 5})

        scheduler = make_scheduler(store, MockProbeExecutor(store), bypass=True)

        stats = scheduler.get_status().stats
        assert stats.current_cycle == 5
        assert stats.bypass_mode is True

    @pytest.mark.asyncio
    async def test_save_failure_does_not_abort_pass(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        store = make_store(A)
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        scheduler = make_scheduler(store, MockProbeExecutor())
        store.data_file = blocker / "URLs.json"

        results = await scheduler.run_pass_once()

        assert [target.url for target, _ in results] == [A]
        assert scheduler.get_status().stats.last_cycle_elapsed_ms is not None
        assert "Failed to save cycle statistics" in caplog.text


class TestRealProbePass:
    """One pass through the real probe executor over a mocked network."""

    @pytest.mark.asyncio
    async def test_online_timeout_online(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "b.example":
                await asyncio.sleep(10)
            return httpx.Response(200)

        store = make_store(A, B, C)
        with mock_http(handler):
            async with ProbeExecutor(store, timeout=0.3) as executor:
                scheduler = make_scheduler(store, executor)
                results = await scheduler.run_pass_once()

        assert [target.url for target, _ in results] == [A, B, C]
        a, b, c = store.list()
        assert a.status == TargetStatus.ONLINE
        assert b.status == TargetStatus.OFFLINE
        assert b.last_error == "Timed out after 300ms"
        assert c.status == TargetStatus.ONLINE
        stats = scheduler.get_status().stats
        assert stats.cycle_successful == 2
        assert stats.cycle_failed == 1
        assert stats.current_cycle == 1
