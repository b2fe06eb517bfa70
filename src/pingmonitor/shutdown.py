"""Graceful shutdown handling for the ping monitor.

SIGINT (Ctrl+C) and SIGTERM do not kill the process; they ask the
application to stop the scheduler, close the HTTP client and join the API
server thread.
"""

from __future__ import annotations

import asyncio
import signal
from types import FrameType

from pingmonitor.logging import get_logger

logger = get_logger(__name__)


class ShutdownHandler:
    """Coordinates shutdown requests from signals and from code.

    The handler owns an ``asyncio.Event`` bound to the application's event
    loop. Signal handlers run on the main thread between bytecodes, so the
    event is set through ``loop.call_soon_threadsafe``.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Initialize the shutdown handler.

        Args:
            loop: Event loop the application runs on. Required for
                ``wait()``; may be omitted when only the flag is needed.
        """
        self._shutdown_requested = False
        self._loop = loop
        self._event = asyncio.Event()

    @property
    def shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def request_shutdown(self) -> None:
        """Request graceful shutdown.

        Safe to call more than once and from any thread.
        """
        if self._shutdown_requested:
            return
        logger.info("Shutdown requested")
        self._shutdown_requested = True

        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._event.set)
        else:
            self._event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._event.wait()

    def handle_signal(self, signum: int, frame: FrameType | None) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM).

        Args:
            signum: The signal number received.
            frame: The current stack frame (unused).
        """
        signal_name = signal.Signals(signum).name
        logger.info("Received %s, initiating graceful shutdown...", signal_name)
        self.request_shutdown()

    def install_signal_handlers(self) -> None:
        """Install signal handlers for SIGINT and SIGTERM."""
        signal.signal(signal.SIGINT, self.handle_signal)
        signal.signal(signal.SIGTERM, self.handle_signal)
        logger.debug("Signal handlers installed for SIGINT and SIGTERM")


def create_shutdown_handler(loop: asyncio.AbstractEventLoop | None = None) -> ShutdownHandler:
    """Create a ShutdownHandler and install its signal handlers.

    Args:
        loop: Event loop the application runs on.

    Returns:
        Configured ShutdownHandler with signal handlers installed.
    """
    handler = ShutdownHandler(loop)
    handler.install_signal_handlers()
    return handler


__all__ = [
    "ShutdownHandler",
    "create_shutdown_handler",
]
