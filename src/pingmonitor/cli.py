"""Command-line interface argument parsing for the ping monitor.

This module provides the CLI argument parser that handles:
- Single-pass mode (--once)
- Scheduler mode overrides (--bypass, --no-autostart)
- Data and drop file locations
- API port and log level overrides
- Environment file location
"""

from __future__ import annotations

import argparse
from pathlib import Path


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace with the following attributes:
        - once: Whether to run a single pass and exit
        - bypass: Whether to start with the minimum cycle time bypassed
        - no_autostart: Whether to leave the scheduler stopped at startup
        - data_file: Path to the JSON target list
        - drop_file: Path to the URL drop file
        - port: API port
        - log_level: Logging level
        - env_file: Path to .env file
    """
    parser = argparse.ArgumentParser(
        description="URL Ping Monitor - periodic reachability checks for a list of URLs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Probe every target once and exit (exit code 1 if any is offline)",
    )

    parser.add_argument(
        "--bypass",
        action="store_true",
        help="Start the next pass as soon as the previous one ends (overrides PINGMON_BYPASS)",
    )

    parser.add_argument(
        "--no-autostart",
        action="store_true",
        help="Do not start the scheduler until requested through the API",
    )

    parser.add_argument(
        "--data-file",
        type=Path,
        default=None,
        help="Path to the JSON target list (default: ./URLs.json)",
    )

    parser.add_argument(
        "--drop-file",
        type=Path,
        default=None,
        help="Path to the URL drop file (default: ./URLs.txt)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="API port (overrides PINGMON_API_PORT)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (overrides PINGMON_LOG_LEVEL)",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )

    return parser.parse_args(args)


__all__ = ["parse_args"]
