"""Ingestion bridge: picks up URLs dropped into a plain-text file.

Operators can append URLs (one per line) to the drop file at any time. The
scheduler calls ``pull_newly_discovered()`` once at the top of every pass;
new, valid URLs are added to the store and the file is emptied.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from pingmonitor.logging import get_logger
from pingmonitor.store import TargetStore

logger = get_logger(__name__)

AUTO_ADDED_NAME_PREFIX = "Auto-added: "


class TargetIngestor(Protocol):
    """Hook the scheduler calls at every pass boundary."""

    def pull_newly_discovered(self) -> None:
        """Add any newly discovered targets to the store."""
        ...


class DropFileIngestor:
    """Imports URLs from a drop file into a target store.

    Blank lines are ignored, invalid URLs and URLs that are already monitored
    are skipped. After processing, the file is truncated so each line is
    imported once.
    """

    def __init__(self, store: TargetStore, drop_file: Path) -> None:
        """Initialize the ingestor.

        Args:
            store: Store that receives the imported targets.
            drop_file: Plain-text file with one URL per line.
        """
        self._store = store
        self._drop_file = drop_file

    @property
    def drop_file(self) -> Path:
        """Get the watched drop file path."""
        return self._drop_file

    def pull_newly_discovered(self) -> None:
        """Import new URLs from the drop file and empty it.

        A missing drop file is not an error. Other I/O errors propagate to
        the caller, which treats them as a failed pass boundary.
        """
        try:
            content = self._drop_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return

        lines = [line.strip() for line in content.splitlines()]
        lines = [line for line in lines if line]
        if lines:
            added = self._store.add_many(lines, name_prefix=AUTO_ADDED_NAME_PREFIX)
            for target in added:
                logger.info(
                    "Auto-added URL from %s: %s",
                    self._drop_file.name,
                    target.url,
                    extra={"target_id": target.id},
                )

        if content:
            self._drop_file.write_text("", encoding="utf-8")


__all__ = [
    "AUTO_ADDED_NAME_PREFIX",
    "DropFileIngestor",
    "TargetIngestor",
]
