"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import os
from collections.abc import Callable
from pathlib import Path

import pytest
from tidyctl.recovery.manager import RecoveryManager


@pytest.fixture(autouse=True)
def isolated_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point all XDG directories into the test's temporary directory."""
    xdg = tmp_path / "xdg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(xdg / "state"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(xdg / "cache"))
    return xdg


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Directory holding the files a test cleans up."""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def recovery_root(tmp_path: Path) -> Path:
    """Recovery root of an isolated store (not created yet)."""
    return tmp_path / "recovery"


@pytest.fixture
def manager(recovery_root: Path) -> RecoveryManager:
    """RecoveryManager on an isolated store."""
    return RecoveryManager(recovery_root, workers=2, copy_retries=1)


@pytest.fixture
def make_file() -> Callable[..., Path]:
    """Factory writing a file with given content and optional mtime."""

    def _make(path: Path, content: bytes | str = b"", mtime: float | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        data = content.encode() if isinstance(content, str) else content
        path.write_bytes(data)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _make
