"""User settings for tidyctl.

Settings are stored in ~/.config/tidyctl/config.toml. A missing file is
not an error: every setting has a default, so tidyctl works out of the box
and ``tidyctl config init`` only materializes those defaults for editing.

Example config.toml::

    retention_days = 14
    hash_algorithm = "blake2b"
    workers = 4

    [roots]
    cache = ["~/.cache", "~/.npm/_cacache"]
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Literal

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tidyctl.core.paths import get_config_path, get_recovery_root

logger = logging.getLogger(__name__)

HashAlgorithmName = Literal["sha256", "blake2b"]


class RootsConfig(BaseModel):
    """Per-category overrides for the directories a cleanup target searches.

    A None value keeps the built-in default roots for that category.
    Entries may use ``~`` for the home directory.
    """

    model_config = ConfigDict(extra="forbid")

    cache: list[str] | None = None
    logs: list[str] | None = None
    temp: list[str] | None = None
    build_artifact: list[str] | None = None
    duplicate: list[str] | None = None


class TidyConfig(BaseModel):
    """Settings for scanning, archival and retention.

    Attributes:
        recovery_root: Directory holding archives, manifests and the index.
            None means the XDG state default.
        retention_days: Days an archived batch is kept before it may be purged.
        workers: Worker threads for hashing and copying. None means CPU count.
        hash_algorithm: Digest used to group duplicates.
        copy_retries: Extra attempts for a transiently failing archive copy.
        reserve_bytes: Free space to leave untouched on the recovery volume.
        temp_min_age_hours: Temp files younger than this are never candidates.
        roots: Per-category root directory overrides.
    """

    model_config = ConfigDict(extra="forbid")

    recovery_root: Annotated[
        Path | None,
        Field(description="Recovery store location (None = XDG state dir)"),
    ] = None
    retention_days: Annotated[
        int,
        Field(ge=1, le=3650, description="Retention period in days (1-3650)"),
    ] = 30
    workers: Annotated[
        int | None,
        Field(ge=1, le=64, description="Worker threads (None = CPU count)"),
    ] = None
    hash_algorithm: Annotated[
        HashAlgorithmName,
        Field(description="Digest used for duplicate detection"),
    ] = "sha256"
    copy_retries: Annotated[
        int,
        Field(ge=0, le=10, description="Retries for transient archive copy failures"),
    ] = 3
    reserve_bytes: Annotated[
        int,
        Field(ge=0, description="Free space to keep on the recovery volume"),
    ] = 0
    temp_min_age_hours: Annotated[
        int,
        Field(ge=0, description="Minimum age of temp files before cleanup"),
    ] = 24
    roots: Annotated[
        RootsConfig,
        Field(default_factory=RootsConfig, description="Per-category root overrides"),
    ]

    @property
    def effective_recovery_root(self) -> Path:
        """Recovery root with ``~`` expanded, or the XDG default."""
        if self.recovery_root is not None:
            return self.recovery_root.expanduser()
        return get_recovery_root()


class ConfigError(Exception):
    """Base exception for settings errors."""


class ConfigParseError(ConfigError):
    """Raised when the settings file cannot be parsed."""


def load_config(path: Path | None = None) -> TidyConfig:
    """Load settings from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated TidyConfig. Defaults if the file does not exist.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the file cannot be read or the content is invalid.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config at %s, using defaults", config_path)
        return TidyConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return TidyConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_config(config: TidyConfig, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The TidyConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config_to_dict(config)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def config_to_dict(config: TidyConfig) -> dict[str, object]:
    """Convert TidyConfig to a dictionary for TOML serialization.

    TOML has no null, so unset optional values are omitted.
    """
    data = config.model_dump(mode="json", exclude_none=True)
    roots = data.get("roots")
    if not roots:
        data.pop("roots", None)
    return data


def require_config(path: Path | None = None) -> TidyConfig:
    """Load settings or exit with a helpful error message.

    Convenience wrapper around load_config() for CLI commands.

    Args:
        path: Optional custom config path.

    Returns:
        Loaded and validated TidyConfig.

    Raises:
        typer.Exit: If the config file exists but cannot be loaded.
    """
    import typer

    from tidyctl.utils.formatting import print_error, print_info

    config_path = path or get_config_path()
    try:
        return load_config(config_path)
    except ConfigError as e:
        print_error(str(e))
        print_info(f"Fix or remove {config_path}, or run 'tidyctl config init --force'.")
        raise typer.Exit(code=1) from e
