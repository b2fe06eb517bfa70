"""Probe executor: one bounded-timeout reachability check per call.

A probe issues a single HTTP GET against the target's URL and reduces the
result to a closed outcome type:

- ``ProbeSuccess``: 2xx response within the slow threshold
- ``ProbeSlowSuccess``: 2xx response slower than the slow threshold
- ``ProbeFailure``: non-2xx response, transport error, or deadline exceeded

``classify()`` maps an outcome to the target's ``TargetStatus``. The executor
writes the classified result back to the store and returns the outcome; it
never raises, so a failing target can never break the scheduler loop.

The deadline is enforced with ``asyncio.timeout`` around the whole request,
which cancels the in-flight request when it expires. Only response headers
are awaited; the body is never downloaded.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeAlias

import httpx

from pingmonitor.config import DEFAULT_USER_AGENT
from pingmonitor.exceptions import StoreError
from pingmonitor.logging import get_logger, log_probe_summary
from pingmonitor.types import TargetStatus

if TYPE_CHECKING:
    from pingmonitor.config import ProbeConfig
    from pingmonitor.models import Target
    from pingmonitor.store import TargetSource

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProbeSuccess:
    """The target answered with a 2xx status in acceptable time."""

    latency_ms: int


@dataclass(frozen=True)
class ProbeSlowSuccess:
    """The target answered with a 2xx status, but slower than the threshold."""

    latency_ms: int


@dataclass(frozen=True)
class ProbeFailure:
    """The target could not be reached or answered with an error status.

    Attributes:
        reason: Human-readable description, e.g. ``"HTTP 503: Service Unavailable"``.
        latency_ms: Time spent until the failure was observed.
    """

    reason: str
    latency_ms: int


ProbeOutcome: TypeAlias = ProbeSuccess | ProbeSlowSuccess | ProbeFailure


def classify(outcome: ProbeOutcome) -> TargetStatus:
    """Map a probe outcome to the target status it implies."""
    match outcome:
        case ProbeSuccess():
            return TargetStatus.ONLINE
        case ProbeSlowSuccess():
            return TargetStatus.WARNING
        case ProbeFailure():
            return TargetStatus.OFFLINE
    raise TypeError(f"Unknown probe outcome: {outcome!r}")


def describe_error(error: BaseException) -> str:
    """Render an exception as a short, human-readable error string."""
    message = str(error).strip()
    name = type(error).__name__
    return f"{name}: {message}" if message else name


class ProbeExecutor:
    """Performs reachability checks and records their results.

    Attributes:
        timeout: Hard deadline of a probe in seconds.
        slow_threshold: Latency in seconds above which a success is "slow".
    """

    def __init__(
        self,
        store: TargetSource,
        timeout: float = 30.0,
        slow_threshold: float = 5.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
        timer: Callable[[], float] = time.perf_counter,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the probe executor.

        Args:
            store: Store that receives probe results.
            timeout: Hard deadline of a probe in seconds.
            slow_threshold: Successful responses slower than this many
                seconds are classified as warning.
            user_agent: User-Agent header sent with every probe.
            client: Optional shared HTTP client. When omitted, the executor
                creates (and later closes) its own.
            timer: Monotonic clock used to measure latency.
            clock: Wall clock used for ``last_ping`` timestamps.
        """
        self.timeout = timeout
        self.slow_threshold = slow_threshold
        self._store = store
        self._user_agent = user_agent
        self._client = client
        self._owns_client = client is None
        self._timer = timer
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_config(
        cls,
        config: ProbeConfig,
        store: TargetSource,
        client: httpx.AsyncClient | None = None,
    ) -> ProbeExecutor:
        """Create a ProbeExecutor from the probe section of the app Config."""
        return cls(
            store,
            timeout=config.timeout,
            slow_threshold=config.slow_threshold,
            user_agent=config.user_agent,
            client=client,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # The outer asyncio.timeout is the real deadline, httpx's own
            # timeout is disabled so it cannot report a different cause first.
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=None)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ProbeExecutor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _elapsed_ms(self, started: float) -> int:
        return max(0, round((self._timer() - started) * 1000))

    async def check(self, url: str) -> ProbeOutcome:
        """Run the reachability check for a URL without recording anything.

        Returns:
            The probe outcome. Never raises for network or HTTP failures.
        """
        timeout_ms = round(self.timeout * 1000)
        started = self._timer()
        try:
            async with asyncio.timeout(self.timeout):
                async with self._get_client().stream(
                    "GET",
                    url,
                    headers={"User-Agent": self._user_agent},
                ) as response:
                    latency_ms = self._elapsed_ms(started)
                    status_code = response.status_code
                    reason_phrase = response.reason_phrase
                    is_success = response.is_success
        except (TimeoutError, httpx.TimeoutException):
            return ProbeFailure(
                reason=f"Timed out after {timeout_ms}ms",
                latency_ms=self._elapsed_ms(started),
            )
        except httpx.HTTPError as e:
            return ProbeFailure(reason=describe_error(e), latency_ms=self._elapsed_ms(started))
        except httpx.InvalidURL as e:
            return ProbeFailure(reason=describe_error(e), latency_ms=self._elapsed_ms(started))
        except Exception as e:
            # INTENTIONAL BROAD CATCH: a probe must never propagate an error to
            # the scheduler loop; the failure is the recorded outcome.
            logger.exception("Unexpected error probing %s", url)
            return ProbeFailure(reason=describe_error(e), latency_ms=self._elapsed_ms(started))

        if not is_success:
            reason = f"HTTP {status_code}: {reason_phrase}" if reason_phrase else f"HTTP {status_code}"
            return ProbeFailure(reason=reason, latency_ms=latency_ms)
        if latency_ms > self.slow_threshold * 1000:
            return ProbeSlowSuccess(latency_ms=latency_ms)
        return ProbeSuccess(latency_ms=latency_ms)

    async def probe(self, target: Target) -> ProbeOutcome:
        """Probe a target and write the classified result to the store.

        Args:
            target: Snapshot of the target to probe.

        Returns:
            The probe outcome. This method never raises for probe failures;
            a failure to persist the result is logged.
        """
        logger.debug(
            "Probing %s",
            target.url,
            extra={"target_id": target.id, "diagnostic_tag": "probe"},
        )
        outcome = await self.check(target.url)
        status = classify(outcome)
        error = outcome.reason if isinstance(outcome, ProbeFailure) else None

        try:
            self._store.update(
                target.id,
                status=status,
                last_ping=self._clock(),
                response_time=outcome.latency_ms,
                last_error=error,
            )
        except StoreError as e:
            logger.error(
                "Failed to record probe result for %s: %s",
                target.url,
                e,
                extra={"target_id": target.id},
            )

        log_probe_summary(logger, target.id, target.url, status.value, outcome.latency_ms, error)
        return outcome


__all__ = [
    "ProbeExecutor",
    "ProbeFailure",
    "ProbeOutcome",
    "ProbeSlowSuccess",
    "ProbeSuccess",
    "classify",
    "describe_error",
]
