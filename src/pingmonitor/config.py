"""Configuration loading from environment variables.

Settings are grouped into frozen sub-configs. Every value can be set through
a ``PINGMON_*`` environment variable (optionally from a ``.env`` file);
invalid values are logged and replaced by their defaults.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Valid log levels
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Port validation bounds
MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_USER_AGENT = "URL-Ping-Monitor/1.0"


@dataclass(frozen=True)
class SchedulerConfig:
    """Timing and mode settings of the cycle scheduler (seconds)."""

    inter_probe_delay: float = 1.0
    min_cycle_time: float = 600.0  # 10 minutes between cycle starts
    empty_retry_interval: float = 10.0
    bypass: bool = False  # start with the minimum cycle time bypassed
    autostart: bool = True


@dataclass(frozen=True)
class ProbeConfig:
    """Settings of a single reachability check."""

    timeout: float = 30.0  # hard deadline in seconds
    slow_threshold: float = 5.0  # responses slower than this are "warning"
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class StorageConfig:
    """Locations of the persisted target list and the drop file."""

    data_file: Path | None = Path("./URLs.json")
    drop_file: Path | None = Path("./URLs.txt")


@dataclass(frozen=True)
class DashboardConfig:
    """HTTP API server settings."""

    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass(frozen=True)
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    json: bool = False
    diagnostic_tags: str = ""


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment.

    This dataclass is frozen (immutable) to prevent accidental modification
    after creation. Use ``dataclasses.replace`` to derive overridden copies.
    """

    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    logging_config: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_positive_float(value: str, name: str, default: float) -> float:
    """Parse a string as a strictly positive float with validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed positive float, or the default if invalid.

    Logs a warning if the value is invalid.
    """
    try:
        parsed = float(value)
        if not math.isfinite(parsed):
            logging.warning(
                "Invalid %s: %s is not a finite number, using default %f",
                name,
                value,
                default,
            )
            return default
        if parsed <= 0:
            logging.warning(
                "Invalid %s: %f is not positive, using default %f",
                name,
                parsed,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %f",
            name,
            value,
            default,
        )
        return default


def _parse_non_negative_float(value: str, name: str, default: float) -> float:
    """Parse a string as a non-negative float with validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed non-negative float, or the default if invalid.

    Logs a warning if the value is invalid.
    """
    try:
        parsed = float(value)
        if not math.isfinite(parsed):
            logging.warning(
                "Invalid %s: %s is not a finite number, using default %f",
                name,
                value,
                default,
            )
            return default
        if parsed < 0:
            logging.warning(
                "Invalid %s: %f is negative, using default %f",
                name,
                parsed,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %f",
            name,
            value,
            default,
        )
        return default


def _parse_port(value: str, name: str, default: int) -> int:
    """Parse a string as a valid TCP port number with range validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed port number (MIN_PORT-MAX_PORT), or the default if invalid.
    """
    try:
        parsed = int(value)
        if parsed < MIN_PORT or parsed > MAX_PORT:
            logging.warning(
                "Invalid %s: %d is not a valid port (must be %d-%d), using default %d",
                name,
                parsed,
                MIN_PORT,
                MAX_PORT,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d",
            name,
            value,
            default,
        )
        return default


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Validate and normalize a log level string.

    Args:
        value: The log level string to validate.
        default: The default value to use if invalid.

    Returns:
        The validated log level (uppercase), or the default if invalid.
    """
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid PINGMON_LOG_LEVEL: '%s' is not valid, using default '%s'. Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def _parse_bool(value: str) -> bool:
    """Parse a string as a boolean.

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise.
    """
    return value.lower() in ("true", "1", "yes")


def _parse_optional_path(value: str) -> Path | None:
    """Parse a path setting where an empty string disables the feature."""
    value = value.strip()
    return Path(value) if value else None


def load_config(env_file: Path | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory.

    Returns:
        Config object with loaded values.

    Values are validated and defaults are used for invalid inputs:
    - Durations must be valid numbers (positive, or non-negative for delays)
    - Ports must be within 1-65535
    - LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    scheduler = SchedulerConfig(
        inter_probe_delay=_parse_non_negative_float(
            os.getenv("PINGMON_INTER_PROBE_DELAY", "1.0"),
            "PINGMON_INTER_PROBE_DELAY",
            1.0,
        ),
        min_cycle_time=_parse_non_negative_float(
            os.getenv("PINGMON_MIN_CYCLE_TIME", "600"),
            "PINGMON_MIN_CYCLE_TIME",
            600.0,
        ),
        empty_retry_interval=_parse_positive_float(
            os.getenv("PINGMON_EMPTY_RETRY_INTERVAL", "10"),
            "PINGMON_EMPTY_RETRY_INTERVAL",
            10.0,
        ),
        bypass=_parse_bool(os.getenv("PINGMON_BYPASS", "")),
        autostart=_parse_bool(os.getenv("PINGMON_AUTOSTART", "true")),
    )

    probe = ProbeConfig(
        timeout=_parse_positive_float(
            os.getenv("PINGMON_PROBE_TIMEOUT", "30"),
            "PINGMON_PROBE_TIMEOUT",
            30.0,
        ),
        slow_threshold=_parse_non_negative_float(
            os.getenv("PINGMON_SLOW_THRESHOLD", "5"),
            "PINGMON_SLOW_THRESHOLD",
            5.0,
        ),
        user_agent=os.getenv("PINGMON_USER_AGENT", DEFAULT_USER_AGENT) or DEFAULT_USER_AGENT,
    )

    storage = StorageConfig(
        data_file=_parse_optional_path(os.getenv("PINGMON_DATA_FILE", "./URLs.json")),
        drop_file=_parse_optional_path(os.getenv("PINGMON_DROP_FILE", "./URLs.txt")),
    )

    dashboard = DashboardConfig(
        enabled=_parse_bool(os.getenv("PINGMON_API_ENABLED", "true")),
        host=os.getenv("PINGMON_API_HOST", "127.0.0.1"),
        port=_parse_port(
            os.getenv("PINGMON_API_PORT", "8080"),
            "PINGMON_API_PORT",
            8080,
        ),
    )

    logging_config = LoggingConfig(
        level=_validate_log_level(os.getenv("PINGMON_LOG_LEVEL", "INFO")),
        json=_parse_bool(os.getenv("PINGMON_LOG_JSON", "")),
        diagnostic_tags=os.getenv("PINGMON_DIAGNOSTIC_TAGS", ""),
    )

    return Config(
        scheduler=scheduler,
        probe=probe,
        storage=storage,
        dashboard=dashboard,
        logging_config=logging_config,
    )
