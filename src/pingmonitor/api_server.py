"""API server management for the ping monitor.

This module provides the ApiServer class that manages a uvicorn server
running in a background thread, allowing the HTTP API to run alongside
the scheduler's event loop on the main thread.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import uvicorn
    from starlette.types import ASGIApp

from pingmonitor.logging import get_logger

logger = get_logger(__name__)

# How long start() waits for uvicorn to report readiness
STARTUP_TIMEOUT = 5.0


class ApiServer:
    """Background server for the HTTP API.

    Example:
        from pingmonitor.api import create_app
        from pingmonitor.api_server import ApiServer

        app = create_app(controller, store)
        server = ApiServer(host="127.0.0.1", port=8080)
        server.start(app)

        # ... run the scheduler ...

        server.shutdown()
    """

    def __init__(self, host: str, port: int) -> None:
        """Initialize the API server.

        Args:
            host: The host address to bind to (e.g., "0.0.0.0" or "127.0.0.1").
            port: The port to listen on.
        """
        self._host = host
        self._port = port
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def host(self) -> str:
        """Get the host address."""
        return self._host

    @property
    def port(self) -> int:
        """Get the port number."""
        return self._port

    @property
    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._server is not None and self._server.started

    def start(self, app: ASGIApp) -> None:
        """Start the API server in a background thread.

        Blocks until uvicorn reports it has started (up to STARTUP_TIMEOUT
        seconds), then returns.

        Args:
            app: The ASGI application to serve.
        """
        import uvicorn

        config = uvicorn.Config(
            app=app,
            host=self._host,
            port=self._port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        server = self._server

        self._thread = threading.Thread(
            target=server.run,
            name="api-server",
            daemon=True,
        )
        self._thread.start()

        start_wait = time.monotonic()
        while not server.started:
            if not self._thread.is_alive():
                raise RuntimeError(f"API server failed to start on {self._host}:{self._port}")
            if time.monotonic() - start_wait > STARTUP_TIMEOUT:
                logger.warning("API server startup timed out, continuing anyway")
                break
            time.sleep(0.05)

        if server.started:
            logger.info("API server started at http://%s:%s", self._host, self._port)

    def shutdown(self) -> None:
        """Shutdown the API server gracefully.

        Signals the server to stop and waits up to 5 seconds for the server
        thread to terminate.
        """
        if self._server is None:
            return

        logger.info("Shutting down API server...")
        self._server.should_exit = True

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("API server thread did not terminate gracefully")

        logger.info("API server shutdown complete")


__all__ = ["ApiServer"]
