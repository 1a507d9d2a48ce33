"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from pathlib import Path

import pytest
from rip.core.graveyard import Graveyard
from rip.core.record import RecordStore


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep every test away from the user's config and graveyard."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("XDG_DATA_HOME", raising=False)
    monkeypatch.delenv("RIP_GRAVEYARD", raising=False)


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Directory holding the files tests bury."""
    path = tmp_path.resolve() / "work"
    path.mkdir()
    return path


@pytest.fixture
def yard_root(tmp_path: Path) -> Path:
    """Graveyard root (not created)."""
    return tmp_path.resolve() / "graveyard"


@pytest.fixture
def graveyard(yard_root: Path) -> Graveyard:
    """Graveyard with a short lock timeout."""
    return Graveyard(yard_root, lock_timeout=5.0)


@pytest.fixture
def store(yard_root: Path) -> RecordStore:
    """Record store of an existing, empty graveyard."""
    yard_root.mkdir()
    return RecordStore(yard_root, lock_timeout=2.0)
