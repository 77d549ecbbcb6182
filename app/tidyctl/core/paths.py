"""Filesystem locations used by tidyctl.

Locations follow the XDG Base Directory layout:

- settings and theme overrides: ``$XDG_CONFIG_HOME/tidyctl`` (``~/.config/tidyctl``)
- recovery store: ``$XDG_STATE_HOME/tidyctl/recovery`` (``~/.local/state/tidyctl/recovery``)

The recovery store is kept under state rather than cache because archived
files must survive cache wipes until their retention expires.
"""

import os
from pathlib import Path

APP_NAME = "tidyctl"


def _xdg_base(env_var: str, fallback: str) -> Path:
    """Return ``$env_var/tidyctl``, or ``~/<fallback>/tidyctl`` when unset or empty."""
    base = os.environ.get(env_var)
    root = Path(base) if base else Path.home() / fallback
    return root / APP_NAME


def get_config_dir() -> Path:
    """Directory holding config.toml and theme.toml."""
    return _xdg_base("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Directory for data that persists between runs but is not configuration."""
    return _xdg_base("XDG_STATE_HOME", ".local/state")


def get_config_path() -> Path:
    """Get the settings file path.

    Returns:
        Path to config.toml inside :func:`get_config_dir`.
    """
    return get_config_dir() / "config.toml"


def get_recovery_root() -> Path:
    """Default recovery root used when the config names none."""
    return get_state_dir() / "recovery"


def _make_dir(path: Path, purpose: str) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create {purpose} directory {path}: Permission denied"
        raise RuntimeError(msg) from e
    except OSError as e:
        msg = f"Cannot create {purpose} directory {path}: {e}"
        raise RuntimeError(msg) from e


def ensure_recovery_root(root: Path | None = None) -> Path:
    """Create the recovery root with its ``manifests/`` and ``archives/`` subdirectories.

    Args:
        root: Recovery root to initialize. Defaults to :func:`get_recovery_root`.

    Returns:
        Path to the recovery root.

    Raises:
        RuntimeError: If a directory cannot be created.
    """
    recovery_root = root if root is not None else get_recovery_root()
    for sub in ("manifests", "archives"):
        _make_dir(recovery_root / sub, f"recovery {sub}")
    return recovery_root
