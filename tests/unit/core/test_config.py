"""Unit tests for TidyConfig and related functions.

Tests for the settings module that provides the Pydantic model and the
TOML load/save functions.
"""

import tomllib
from pathlib import Path
from unittest.mock import patch

import pytest
import typer
from pydantic import ValidationError
from tidyctl.core.config import (
    ConfigError,
    ConfigParseError,
    RootsConfig,
    TidyConfig,
    config_to_dict,
    load_config,
    require_config,
    save_config,
)
from tidyctl.core.paths import get_config_path, get_recovery_root


class TestTidyConfig:
    """Tests for TidyConfig Pydantic model."""

    def test_default_values(self) -> None:
        """TidyConfig has correct default values."""
        config = TidyConfig()

        assert config.recovery_root is None
        assert config.retention_days == 30
        assert config.workers is None
        assert config.hash_algorithm == "sha256"
        assert config.copy_retries == 3
        assert config.reserve_bytes == 0
        assert config.temp_min_age_hours == 24
        assert config.roots == RootsConfig()

    def test_retention_bounds(self) -> None:
        """TidyConfig validates the retention period."""
        with pytest.raises(ValidationError):
            TidyConfig(retention_days=0)
        with pytest.raises(ValidationError):
            TidyConfig(retention_days=5000)

    def test_invalid_algorithm(self) -> None:
        """TidyConfig rejects unknown hash algorithms."""
        with pytest.raises(ValidationError):
            TidyConfig(hash_algorithm="md5")  # type: ignore[arg-type]

    def test_extra_fields_forbidden(self) -> None:
        """TidyConfig rejects unknown keys."""
        with pytest.raises(ValidationError):
            TidyConfig(unknown=1)  # type: ignore[call-arg]

    def test_effective_recovery_root_default(self) -> None:
        """Without an override the recovery root is in the XDG state dir."""
        assert TidyConfig().effective_recovery_root == get_recovery_root()

    def test_effective_recovery_root_expands_user(self) -> None:
        """A configured recovery root has ~ expanded."""
        config = TidyConfig(recovery_root=Path("~/archive"))

        assert config.effective_recovery_root == Path.home() / "archive"


class TestLoadConfig:
    """Tests for load_config function."""

    def test_missing_file_returns_defaults(self, tmp_path: Path) -> None:
        """A missing config file is not an error."""
        config = load_config(tmp_path / "missing.toml")

        assert config == TidyConfig()

    def test_loads_values(self, tmp_path: Path) -> None:
        """Values and root overrides are read from TOML."""
        path = tmp_path / "config.toml"
        path.write_text(
            'retention_days = 7\nhash_algorithm = "blake2b"\n\n[roots]\ncache = ["~/.npm"]\n'
        )

        config = load_config(path)

        assert config.retention_days == 7
        assert config.hash_algorithm == "blake2b"
        assert config.roots.cache == ["~/.npm"]
        assert config.roots.logs is None

    def test_invalid_toml_raises_parse_error(self, tmp_path: Path) -> None:
        """Malformed TOML raises ConfigParseError."""
        path = tmp_path / "config.toml"
        path.write_text("retention_days = [")

        with pytest.raises(ConfigParseError, match="Invalid TOML"):
            load_config(path)

    def test_invalid_content_raises_config_error(self, tmp_path: Path) -> None:
        """Values failing validation raise ConfigError."""
        path = tmp_path / "config.toml"
        path.write_text("copy_retries = -1\n")

        with pytest.raises(ConfigError, match="Invalid config content"):
            load_config(path)

    def test_uses_default_path(self) -> None:
        """Without an argument the XDG config path is used."""
        path = get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text("workers = 2\n")

        assert load_config().workers == 2


class TestSaveConfig:
    """Tests for save_config function."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """A saved config loads back unchanged."""
        path = tmp_path / "nested" / "config.toml"
        config = TidyConfig(retention_days=14, workers=4, roots=RootsConfig(logs=["/var/log/app"]))

        saved = save_config(config, path)

        assert saved == path
        assert load_config(path) == config

    def test_omits_unset_values(self, tmp_path: Path) -> None:
        """TOML has no null: unset optional values are left out."""
        path = tmp_path / "config.toml"

        save_config(TidyConfig(), path)

        with open(path, "rb") as f:
            data = tomllib.load(f)
        assert "workers" not in data
        assert "recovery_root" not in data
        assert "roots" not in data
        assert data["retention_days"] == 30

    def test_write_failure_raises_and_cleans_up(self, tmp_path: Path) -> None:
        """A failed write raises ConfigError and leaves no temp file."""
        path = tmp_path / "config.toml"

        with (
            patch("tidyctl.core.config.os.replace", side_effect=OSError("disk full")),
            pytest.raises(ConfigError, match="Failed to write config"),
        ):
            save_config(TidyConfig(), path)

        assert list(tmp_path.iterdir()) == []


class TestConfigToDict:
    """Tests for config_to_dict function."""

    def test_keeps_configured_roots(self) -> None:
        """Root overrides are serialized, unset categories are not."""
        data = config_to_dict(TidyConfig(roots=RootsConfig(cache=["~/.cache"])))

        assert data["roots"] == {"cache": ["~/.cache"]}


class TestRequireConfig:
    """Tests for require_config function."""

    def test_returns_config(self, tmp_path: Path) -> None:
        """require_config returns the loaded settings."""
        assert require_config(tmp_path / "missing.toml") == TidyConfig()

    def test_exits_on_invalid_config(self, tmp_path: Path) -> None:
        """require_config exits with code 1 on a broken file."""
        path = tmp_path / "config.toml"
        path.write_text("[[[")

        with pytest.raises(typer.Exit) as exc_info:
            require_config(path)

        assert exc_info.value.exit_code == 1
