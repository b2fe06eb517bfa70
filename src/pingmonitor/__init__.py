"""URL Ping Monitor - periodic reachability checks for a list of URLs."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("url-ping-monitor")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from pingmonitor.app import main
from pingmonitor.scheduler import CycleScheduler

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "CycleScheduler",
    "main",
]
