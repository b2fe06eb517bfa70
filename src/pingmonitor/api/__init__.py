"""HTTP API for the ping monitor.

The API exposes target CRUD against the shared ``TargetStore`` and scheduler
commands through the ``ServiceControl`` protocol, which keeps route handlers
off the scheduler's event loop.
"""

from pingmonitor.api.app import create_app
from pingmonitor.api.routes import ServiceControl, create_routes

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "create_app",
    "create_routes",
    "ServiceControl",
]
