"""Target store: the mutable set of monitored targets.

The store is shared between the scheduler (which reads snapshots and writes
probe results) and the HTTP API (which adds and deletes targets). It guards
its own state with a lock, so callers never need to coordinate with each
other; the scheduler simply re-reads a fresh snapshot at the top of every
pass.

When a data file is configured, every mutation is written to it as JSON
(``{"targets": [...], "stats": {...}}``) via an atomic temp-file replace, and
the file is loaded at construction. A missing or unreadable file yields an
empty store. The ``stats`` entry is opaque to the store: the scheduler saves
its restart-surviving counters there at the end of every pass.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
import uuid
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlsplit

from pingmonitor.exceptions import InvalidTargetError, StoreError
from pingmonitor.logging import get_logger
from pingmonitor.models import Target

logger = get_logger(__name__)

VALID_URL_SCHEMES = frozenset({"http", "https"})


class TargetSource(Protocol):
    """Store operations the cycle scheduler and probe executor depend on."""

    def list(self) -> list[Target]:
        """Return a snapshot of all targets in insertion order."""
        ...

    def get(self, target_id: str) -> Target | None:
        """Return the target with the given id, or None if it does not exist."""
        ...

    def update(self, target_id: str, **fields: Any) -> Target | None:
        """Apply field updates to a target; None if it no longer exists."""
        ...

    def load_stats(self) -> dict[str, Any] | None:
        """Return the scheduler counters saved by ``save_stats``, if any."""
        ...

    def save_stats(self, stats: dict[str, Any]) -> None:
        """Persist the scheduler counters next to the targets."""
        ...


def is_valid_url(value: str) -> bool:
    """Check whether a string is an absolute http(s) URL with a host."""
    try:
        parts = urlsplit(value)
        # Accessing .port validates the port component
        _ = parts.port
    except ValueError:
        return False
    return parts.scheme.lower() in VALID_URL_SCHEMES and bool(parts.hostname)


def validate_url(value: str) -> str:
    """Validate and normalize a target address.

    Args:
        value: The candidate URL.

    Returns:
        The URL with surrounding whitespace removed.

    Raises:
        InvalidTargetError: If the value is not an absolute http(s) URL.
    """
    candidate = (value or "").strip()
    if not is_valid_url(candidate):
        raise InvalidTargetError(f"Please enter a valid URL: {value!r}")
    return candidate


class TargetStore:
    """Thread-safe, optionally persistent collection of targets.

    Attributes:
        data_file: JSON file the targets are persisted to, or None to keep
            them in memory only.
    """

    def __init__(self, data_file: Path | None = None) -> None:
        """Initialize the store and load any previously persisted targets.

        Args:
            data_file: Path of the JSON data file. None disables persistence.
        """
        self.data_file = data_file
        self._targets: dict[str, Target] = {}
        self._stats: dict[str, Any] | None = None
        self._lock = threading.Lock()
        self._load()

    def list(self) -> list[Target]:
        """Return a snapshot of all targets in insertion order."""
        with self._lock:
            return list(self._targets.values())

    def get(self, target_id: str) -> Target | None:
        """Return the target with the given id, or None if it does not exist."""
        with self._lock:
            return self._targets.get(target_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._targets)

    def create(self, url: str, name: str | None = None) -> Target:
        """Add a new target in the pending state.

        Args:
            url: Address to monitor; must be an absolute http(s) URL.
            name: Optional display name.

        Returns:
            The created target.

        Raises:
            InvalidTargetError: If the URL is not valid.
            StoreError: If the target could not be persisted.
        """
        target = Target(
            id=str(uuid.uuid4()),
            url=validate_url(url),
            name=name or None,
            created_at=datetime.now(UTC),
        )
        with self._lock:
            self._targets[target.id] = target
            self._save_locked()
        logger.info("Added target %s (%s)", target.url, target.id, extra={"target_id": target.id})
        return target

    def add_many(self, urls: list[str], name_prefix: str = "") -> list[Target]:
        """Add several targets with a single write, skipping URLs already present.

        Invalid URLs are skipped with a warning rather than rejected, since
        this is used for bulk imports.

        Returns:
            The targets that were actually added.
        """
        added: list[Target] = []
        with self._lock:
            known = {target.url for target in self._targets.values()}
            for raw in urls:
                url = raw.strip()
                if not url:
                    continue
                if not is_valid_url(url):
                    logger.warning("Skipping invalid URL: %s", url)
                    continue
                if url in known:
                    continue
                target = Target(
                    id=str(uuid.uuid4()),
                    url=url,
                    name=f"{name_prefix}{url}" if name_prefix else None,
                    created_at=datetime.now(UTC),
                )
                self._targets[target.id] = target
                known.add(url)
                added.append(target)
            if added:
                self._save_locked()
        return added

    def update(self, target_id: str, **fields: Any) -> Target | None:
        """Apply field updates to a target.

        Args:
            target_id: Id of the target to update.
            **fields: Target attributes to overwrite.

        Returns:
            The updated target, or None if it no longer exists.

        Raises:
            StoreError: If the change could not be persisted. The in-memory
                update has already been applied at that point.
        """
        with self._lock:
            existing = self._targets.get(target_id)
            if existing is None:
                return None
            updated = replace(existing, **fields)
            self._targets[target_id] = updated
            self._save_locked()
            return updated

    def delete(self, target_id: str) -> bool:
        """Remove a target.

        Returns:
            True if the target existed and was removed.

        Raises:
            StoreError: If the change could not be persisted.
        """
        with self._lock:
            removed = self._targets.pop(target_id, None)
            if removed is None:
                return False
            self._save_locked()
        logger.info("Deleted target %s (%s)", removed.url, target_id, extra={"target_id": target_id})
        return True

    def load_stats(self) -> dict[str, Any] | None:
        """Return the saved scheduler counters, or None if nothing was saved."""
        with self._lock:
            return dict(self._stats) if self._stats is not None else None

    def save_stats(self, stats: dict[str, Any]) -> None:
        """Replace the saved scheduler counters and write the data file.

        Raises:
            StoreError: If the change could not be persisted.
        """
        with self._lock:
            self._stats = dict(stats)
            self._save_locked()

    def _load(self) -> None:
        if self.data_file is None:
            return

        try:
            with open(self.data_file, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info("%s not found, starting with empty state", self.data_file)
            return
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("%s is unreadable, starting with empty state: %s", self.data_file, e)
            return

        raw_targets = data.get("targets", []) if isinstance(data, dict) else []
        for raw in raw_targets:
            try:
                target = Target.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed target entry in %s: %s", self.data_file, e)
                continue
            self._targets[target.id] = target

        raw_stats = data.get("stats") if isinstance(data, dict) else None
        if isinstance(raw_stats, dict):
            self._stats = raw_stats

        logger.info("Loaded %d target(s) from %s", len(self._targets), self.data_file)

    def _save_locked(self) -> None:
        """Write targets and saved stats. Caller must hold ``self._lock``."""
        if self.data_file is None:
            return

        payload: dict[str, Any] = {
            "targets": [target.to_dict() for target in self._targets.values()]
        }
        if self._stats is not None:
            payload["stats"] = self._stats
        directory = self.data_file.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.data_file.name}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_name, self.data_file)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreError(f"Failed to write {self.data_file}: {e}") from e


__all__ = [
    "TargetSource",
    "TargetStore",
    "is_valid_url",
    "validate_url",
]
