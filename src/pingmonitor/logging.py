"""Structured logging configuration for the ping monitor."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

# Extra fields rendered by the formatters when present on a record.
CONTEXT_FIELDS = ("cycle", "target_id", "status")


def _component(record: logging.LogRecord) -> str:
    # "pingmonitor.probe" -> "probe"
    return record.name.rpartition(".")[2]


class DiagnosticFilter(logging.Filter):
    """Suppresses tagged DEBUG records unless their tag is enabled.

    A record is tagged by passing ``extra={"diagnostic_tag": "cycle"}``. The
    scheduler tags pass bookkeeping with ``cycle`` and the probe executor
    tags per-request detail with ``probe``. Untagged records and records
    above DEBUG are never filtered. ``PINGMON_DIAGNOSTIC_TAGS=cycle,probe``
    turns tags on, ``"*"`` turns all of them on.

    Attributes:
        enabled_tags: Tags that are let through.
        allow_all: Whether every tag is let through.
    """

    def __init__(self, enabled_tags: frozenset[str] | None = None) -> None:
        super().__init__()
        self.enabled_tags: frozenset[str] = enabled_tags or frozenset()
        self.allow_all: bool = "*" in self.enabled_tags

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno != logging.DEBUG:
            return True
        tag: str | None = getattr(record, "diagnostic_tag", None)
        return tag is None or self.allow_all or tag in self.enabled_tags

    @classmethod
    def from_config_string(cls, tags_csv: str) -> DiagnosticFilter:
        """Build a filter from a comma-separated tag list; blank entries are ignored."""
        return cls(frozenset(tag.strip() for tag in tags_csv.split(",") if tag.strip()))


class StructuredFormatter(logging.Formatter):
    """Human-readable single-line format with a bracketed context block.

    Example::

        2024-03-01 12:00:06.120 [INFO    ] [scheduler   ] [cycle=3] Starting ping cycle with 2 URLs
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        parts = [
            created.strftime("%Y-%m-%d %H:%M:%S.") + f"{created.microsecond // 1000:03d}",
            f"[{record.levelname:8}]",
            f"[{_component(record):12}]",
        ]

        context = [
            f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS if hasattr(record, key)
        ]
        if context:
            parts.append(f"[{' '.join(context)}]")

        parts.append(record.getMessage())
        if record.exc_info:
            parts.append(self.formatException(record.exc_info))
        return " ".join(parts)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
        }
        for key in (*CONTEXT_FIELDS, "url", "latency_ms", "error"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


class ContextAdapter(logging.LoggerAdapter[logging.Logger]):
    """Merges fixed context (e.g. the cycle number) into every record's extra."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = kwargs.get("extra", {})
        if self.extra is not None:
            extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


class PingMonitorLogger(logging.Logger):
    """Logger class that can hand out context-bound adapters."""

    def with_context(self, **context: Any) -> ContextAdapter:
        """Return an adapter that adds ``context`` to every message."""
        return ContextAdapter(self, context)


logging.setLoggerClass(PingMonitorLogger)


def get_logger(name: str) -> PingMonitorLogger:
    """Return the module logger as a ``PingMonitorLogger``."""
    return logging.getLogger(name)  # type: ignore[return-value]


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    diagnostic_tags: str = "",
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
        json_format: If True, output JSON-formatted logs.
        diagnostic_tags: Comma-separated list of diagnostic tags to enable.
            Debug messages carrying a ``diagnostic_tag`` extra are only
            emitted when their tag is enabled.  ``"*"`` enables all tags.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(StructuredFormatter())

    handler.addFilter(DiagnosticFilter.from_config_string(diagnostic_tags))

    root_logger.addHandler(handler)

    logging.getLogger("pingmonitor").setLevel(numeric_level)
    # httpx logs every request at INFO, which would duplicate our probe summaries
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))


def log_probe_summary(
    logger: logging.Logger | logging.LoggerAdapter[Any],
    target_id: str,
    url: str,
    status: str,
    latency_ms: int,
    error: str | None = None,
) -> None:
    """Log a one-line summary of a probe outcome.

    Args:
        logger: Logger to use.
        target_id: Id of the probed target.
        url: Address of the probed target.
        status: Classified status (online, warning, offline).
        latency_ms: Observed latency in milliseconds.
        error: Error description for failed probes.
    """
    if status == "offline":
        log_method = logger.error
    elif status == "warning":
        log_method = logger.warning
    else:
        log_method = logger.info

    message = f"Probe {status} for {url} in {latency_ms}ms"
    if error:
        message = f"{message}: {error}"

    log_method(
        message,
        extra={
            "target_id": target_id,
            "status": status,
            "url": url,
            "latency_ms": latency_ms,
            "error": error,
        },
    )
