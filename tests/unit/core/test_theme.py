"""Unit tests for the CLI color theme."""

from pathlib import Path

import pytest
from pydantic import ValidationError
from rich.style import Style
from tidyctl.core.theme import (
    ThemeColors,
    build_theme,
    get_theme,
    get_user_theme_path,
    load_colors,
    read_palette,
)


class TestThemeColors:
    """Tests for ThemeColors model."""

    @pytest.mark.parametrize("color", ["#fff", "#A1b2C3", " #000000 "])
    def test_accepts_hex(self, color: str) -> None:
        """Short and long hex colors are accepted and stripped."""
        assert ThemeColors(muted=color).muted == color.strip()

    @pytest.mark.parametrize("color", ["red", "#12", "#gggggg", "123456"])
    def test_rejects_other_values(self, color: str) -> None:
        """Anything but a hex color is rejected."""
        with pytest.raises(ValidationError):
            ThemeColors(muted=color)

    def test_unknown_color_rejected(self) -> None:
        """Unknown palette entries are errors."""
        with pytest.raises(ValidationError):
            ThemeColors(sparkle="#ffffff")  # type: ignore[call-arg]


class TestReadPalette:
    """Tests for read_palette function."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is an empty palette."""
        assert read_palette(tmp_path / "theme.toml") == {}

    def test_reads_colors_table(self, tmp_path: Path) -> None:
        """Only string entries of [colors] are returned."""
        path = tmp_path / "theme.toml"
        path.write_text('[colors]\nkeep = "#00ff00"\nbroken = 3\n')

        assert read_palette(path) == {"keep": "#00ff00"}

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Unparseable files are ignored."""
        path = tmp_path / "theme.toml"
        path.write_text("[colors\n")

        assert read_palette(path) == {}

    def test_colors_not_a_table(self, tmp_path: Path) -> None:
        """A scalar colors entry is ignored."""
        path = tmp_path / "theme.toml"
        path.write_text('colors = "#ffffff"\n')

        assert read_palette(path) == {}


class TestLoadColors:
    """Tests for load_colors function."""

    def test_bundled_defaults(self) -> None:
        """Without overrides the bundled palette is used."""
        assert load_colors() == ThemeColors()

    def test_user_overrides_merge(self) -> None:
        """A partial user theme overrides only the colors it names."""
        path = get_user_theme_path()
        path.parent.mkdir(parents=True)
        path.write_text('[colors]\nreclaim = "#123456"\n')

        colors = load_colors()

        assert colors.reclaim == "#123456"
        assert colors.keep == ThemeColors().keep

    def test_invalid_override_falls_back(self) -> None:
        """An invalid user color falls back to the defaults."""
        path = get_user_theme_path()
        path.parent.mkdir(parents=True)
        path.write_text('[colors]\nreclaim = "orange"\n')

        assert load_colors() == ThemeColors()


class TestBuildTheme:
    """Tests for build_theme and get_theme."""

    def test_cleanup_styles(self) -> None:
        """Cleanup roles map to their palette colors."""
        colors = ThemeColors(keep="#010203", expired="#040506")

        theme = build_theme(colors)

        assert theme.styles["keep"] == Style.parse("bold #010203")
        assert theme.styles["expired"] == Style.parse("#040506")
        assert theme.styles["bold_header"] == Style.parse(f"bold {colors.header}")
        assert theme.styles["dim"] == Style.parse(colors.muted)

    def test_get_theme_cached(self) -> None:
        """get_theme returns the same instance on every call."""
        assert get_theme() is get_theme()

    def test_user_theme_path(self, isolated_xdg: Path) -> None:
        """User overrides live in the tidyctl config directory."""
        assert get_user_theme_path() == isolated_xdg / "config" / "tidyctl" / "theme.toml"
