"""Unit tests for XDG path resolution."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest
from tidyctl.core.paths import (
    APP_NAME,
    ensure_recovery_root,
    get_config_dir,
    get_config_path,
    get_recovery_root,
    get_state_dir,
)


class TestXdgDirs:
    """Tests for get_config_dir and get_state_dir."""

    @pytest.mark.parametrize(
        ("env_var", "resolve"),
        [("XDG_CONFIG_HOME", get_config_dir), ("XDG_STATE_HOME", get_state_dir)],
    )
    def test_env_override(
        self,
        env_var: str,
        resolve: Callable[[], Path],
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """The XDG variable replaces the home-based default."""
        monkeypatch.setenv(env_var, str(tmp_path))

        assert resolve() == tmp_path / APP_NAME

    @pytest.mark.parametrize(
        ("env_var", "resolve", "fallback"),
        [
            ("XDG_CONFIG_HOME", get_config_dir, Path(".config")),
            ("XDG_STATE_HOME", get_state_dir, Path(".local", "state")),
        ],
    )
    def test_unset_or_empty_falls_back_to_home(
        self,
        env_var: str,
        resolve: Callable[[], Path],
        fallback: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Unset and empty variables both use the home directory."""
        expected = Path.home() / fallback / APP_NAME

        monkeypatch.delenv(env_var)
        assert resolve() == expected

        monkeypatch.setenv(env_var, "")
        assert resolve() == expected


class TestFiles:
    """Tests for derived file locations."""

    def test_config_path(self, isolated_xdg: Path) -> None:
        """Settings live in config.toml of the config dir."""
        assert get_config_path() == isolated_xdg / "config" / APP_NAME / "config.toml"

    def test_recovery_root(self, isolated_xdg: Path) -> None:
        """The default recovery root is under the state dir."""
        assert get_recovery_root() == isolated_xdg / "state" / APP_NAME / "recovery"


class TestEnsureRecoveryRoot:
    """Tests for ensure_recovery_root function."""

    def test_creates_layout(self, recovery_root: Path) -> None:
        """manifests/ and archives/ are created under the given root."""
        assert ensure_recovery_root(recovery_root) == recovery_root
        assert (recovery_root / "manifests").is_dir()
        assert (recovery_root / "archives").is_dir()

    def test_idempotent(self, recovery_root: Path) -> None:
        """Calling twice on an existing layout succeeds."""
        ensure_recovery_root(recovery_root)
        ensure_recovery_root(recovery_root)

        assert sorted(p.name for p in recovery_root.iterdir()) == ["archives", "manifests"]

    def test_defaults_to_state_dir(self, isolated_xdg: Path) -> None:
        """Without a root the XDG default is initialized."""
        result = ensure_recovery_root()

        assert result == isolated_xdg / "state" / APP_NAME / "recovery"
        assert (result / "archives").is_dir()

    def test_permission_error(self, recovery_root: Path) -> None:
        """Creation failures surface as RuntimeError."""
        with (
            patch.object(Path, "mkdir", side_effect=PermissionError("denied")),
            pytest.raises(RuntimeError, match="Permission denied"),
        ):
            ensure_recovery_root(recovery_root)

    def test_other_os_error(self, recovery_root: Path) -> None:
        """Other OS errors keep their message."""
        with (
            patch.object(Path, "mkdir", side_effect=OSError("read-only file system")),
            pytest.raises(RuntimeError, match="read-only file system"),
        ):
            ensure_recovery_root(recovery_root)
