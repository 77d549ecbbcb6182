"""Color theme for tidyctl output.

The bundled palette in ``tidyctl/data/theme.toml`` can be overridden,
fully or in part, by ``theme.toml`` in the tidyctl config directory.
Invalid user colors never break the CLI: the bundled palette is used.
"""

import functools
import logging
import re
import tomllib
from importlib import resources
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from rich.theme import Theme

from tidyctl.core.paths import get_config_dir

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Rich style name -> (palette color, extra attributes)
_STYLES: dict[str, tuple[str, str]] = {
    "text": ("text", ""),
    "muted": ("muted", ""),
    "dim": ("muted", ""),
    "header": ("header", ""),
    "bold_header": ("header", "bold"),
    "border": ("border", ""),
    "success": ("success", ""),
    "warning": ("warning", ""),
    "error": ("error", "bold"),
    "info": ("info", ""),
    "keep": ("keep", "bold"),
    "reclaim": ("reclaim", ""),
    "restored": ("restored", ""),
    "expired": ("expired", ""),
}


class ThemeColors(BaseModel):
    """Palette used by the CLI. Every value is a #RGB or #RRGGBB hex color."""

    model_config = ConfigDict(extra="forbid")

    text: str = "#ffffff"
    muted: str = "#b2bec3"
    header: str = "#69B9A1"
    border: str = "#29526d"
    success: str = "#03b971"
    warning: str = "#f5b332"
    error: str = "#f53263"
    info: str = "#0ec1c8"
    # Duplicate groups and cleanup results
    keep: str = "#69B9A1"
    reclaim: str = "#f5b332"
    restored: str = "#c1ff62"
    expired: str = "#d44ebc"

    @field_validator("*", mode="before")
    @classmethod
    def _check_hex(cls, value: object) -> str:
        if not isinstance(value, str) or not _HEX_COLOR.match(value.strip()):
            msg = f"expected a #RGB or #RRGGBB color, got {value!r}"
            raise ValueError(msg)
        return value.strip()


def get_user_theme_path() -> Path:
    """Location of the user's palette overrides."""
    return get_config_dir() / "theme.toml"


def read_palette(path: Path) -> dict[str, str]:
    """Read the ``[colors]`` table of a theme file.

    Missing or unreadable files yield an empty palette; problems other
    than a missing file are logged.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Ignoring theme file %s: %s", path, e)
        return {}

    colors = data.get("colors", {})
    if not isinstance(colors, dict):
        logger.warning("Ignoring theme file %s: [colors] is not a table", path)
        return {}
    return {str(key): value for key, value in colors.items() if isinstance(value, str)}


def load_colors() -> ThemeColors:
    """Merge the bundled palette with the user's overrides."""
    bundled = resources.files("tidyctl.data").joinpath("theme.toml")
    palette = read_palette(Path(str(bundled)))
    overrides = read_palette(get_user_theme_path())
    if overrides:
        logger.debug("Applying %d theme override(s)", len(overrides))

    try:
        return ThemeColors(**{**palette, **overrides})
    except ValidationError as e:
        logger.warning("Invalid theme colors, using defaults: %s", e)
        return ThemeColors()


def build_theme(colors: ThemeColors) -> Theme:
    """Map a palette onto the Rich style names used in markup."""
    styles: dict[str, str] = {}
    for name, (color_field, attributes) in _STYLES.items():
        color = getattr(colors, color_field)
        styles[name] = f"{attributes} {color}".strip()
    return Theme(styles)


@functools.cache
def get_theme() -> Theme:
    """Rich theme for the shared consoles, loaded once per process."""
    return build_theme(load_colors())
