"""Shared pytest fixtures for ping monitor tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from pathlib import Path

import pytest

from pingmonitor.store import TargetStore

ENV_PREFIX = "PINGMON_"


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """Undo root logger changes made by setup_logging() during a test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    package_level = logging.getLogger("pingmonitor").level
    httpx_level = logging.getLogger("httpx").level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("pingmonitor").setLevel(package_level)
    logging.getLogger("httpx").setLevel(httpx_level)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    """Remove all PINGMON_* variables and run from an empty directory.

    Running from ``tmp_path`` keeps ``load_dotenv()`` from picking up a
    developer's ``.env`` file.
    """
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def store() -> TargetStore:
    """In-memory target store."""
    return TargetStore()


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    """Path for a persisted target list inside a temporary directory."""
    return tmp_path / "URLs.json"
