"""Core application runner for the ping monitor.

This module provides the main application runner that coordinates:
- API server lifecycle
- The cycle scheduler on the main thread's event loop
- Single-pass mode execution

API-less Operation Mode:
    The monitor keeps probing if the HTTP API fails to start (port in use,
    missing dependencies, configuration errors). The failure is logged as a
    warning and the scheduler runs without a control surface.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import TYPE_CHECKING

from pingmonitor.api_server import ApiServer
from pingmonitor.bootstrap import BootstrapContext, bootstrap, create_scheduler_from_context
from pingmonitor.cli import parse_args
from pingmonitor.control import SchedulerController
from pingmonitor.logging import get_logger
from pingmonitor.probe import classify
from pingmonitor.shutdown import create_shutdown_handler

if TYPE_CHECKING:
    from pingmonitor.probe import ProbeExecutor
    from pingmonitor.scheduler import CycleScheduler

logger = get_logger(__name__)

# Grace period for an in-flight probe to finish during shutdown
SHUTDOWN_TIMEOUT = 5.0


def start_api(context: BootstrapContext, controller: SchedulerController) -> ApiServer | None:
    """Start the API server if enabled.

    If the API fails to start for any reason, the monitor continues to
    operate without it.

    Args:
        context: Bootstrap context with configuration and the store.
        controller: Command channel to the scheduler.

    Returns:
        ApiServer if started successfully, None otherwise.
    """
    config = context.config
    if not config.dashboard.enabled:
        logger.info("HTTP API is disabled via configuration")
        return None

    try:
        from pingmonitor.api import create_app

        logger.info("Starting API server on %s:%s", config.dashboard.host, config.dashboard.port)
        api_app = create_app(controller, context.store)
        api_server = ApiServer(host=config.dashboard.host, port=config.dashboard.port)
        api_server.start(api_app)
        return api_server
    except ImportError as e:
        logger.warning(
            "API startup failed: dependencies not available. "
            "Monitoring will continue without the API. Error: %s",
            e,
        )
        return None
    except OSError as e:
        logger.warning(
            "API startup failed: network/OS error. "
            "Monitoring will continue without the API. Error: %s",
            e,
        )
        return None
    except RuntimeError as e:
        logger.warning(
            "API startup failed: runtime error. "
            "Monitoring will continue without the API. Error: %s",
            e,
        )
        return None
    except Exception as e:
        # INTENTIONAL BROAD CATCH: the API is optional and must never stop
        # the scheduler from running.
        logger.warning(
            "API startup failed: unexpected error (%s). "
            "Monitoring will continue without the API. Error: %s",
            type(e).__name__,
            e,
            extra={"error_type": type(e).__name__},
        )
        return None


async def run_once_mode(scheduler: CycleScheduler, probe_executor: ProbeExecutor) -> int:
    """Probe every target once.

    Args:
        scheduler: Configured (stopped) scheduler.
        probe_executor: The scheduler's probe executor, closed on return.

    Returns:
        Exit code: 0 if every probed target is online or warning, 1 otherwise.
    """
    logger.info("Running a single pass (--once mode)")
    try:
        results = await scheduler.run_pass_once()
    finally:
        await probe_executor.aclose()

    success_count = sum(1 for _, outcome in results if classify(outcome).is_success)
    logger.info("Completed: %s/%s reachable", success_count, len(results))
    return 0 if success_count == len(results) else 1


async def run_continuous_mode(
    context: BootstrapContext,
    scheduler: CycleScheduler,
    probe_executor: ProbeExecutor,
) -> int:
    """Run the scheduler and the API until SIGINT/SIGTERM.

    Args:
        context: Bootstrap context with configuration and the store.
        scheduler: Configured scheduler.
        probe_executor: The scheduler's probe executor, closed on exit.

    Returns:
        Exit code: 0 for success.
    """
    loop = asyncio.get_running_loop()
    shutdown_handler = create_shutdown_handler(loop)
    controller = SchedulerController(scheduler, loop)
    api_server = start_api(context, controller)

    try:
        if context.config.scheduler.autostart:
            await scheduler.start()
        else:
            logger.info("Autostart disabled, start the scheduler with POST /api/service/start")
        await shutdown_handler.wait()
    finally:
        await scheduler.stop()
        await scheduler.wait_stopped(timeout=SHUTDOWN_TIMEOUT)
        await probe_executor.aclose()
        if api_server is not None:
            # The server thread may still be waiting on this loop, keep it free
            await asyncio.to_thread(api_server.shutdown)

    logger.info("Ping monitor shutdown complete")
    return 0


def run_application(parsed: argparse.Namespace, context: BootstrapContext) -> int:
    """Run the main application with the given context.

    Args:
        parsed: Parsed command-line arguments.
        context: Bootstrap context with all dependencies.

    Returns:
        Exit code for the application.
    """
    scheduler, probe_executor = create_scheduler_from_context(context)

    if parsed.once:
        return asyncio.run(run_once_mode(scheduler, probe_executor))
    return asyncio.run(run_continuous_mode(context, scheduler, probe_executor))


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        Exit code for the application.
    """
    parsed = parse_args(args)
    context = bootstrap(parsed)
    return run_application(parsed, context)


__all__ = [
    "main",
    "run_application",
    "run_continuous_mode",
    "run_once_mode",
    "start_api",
]


if __name__ == "__main__":
    import sys

    sys.exit(main())
