"""Shared Rich consoles and output helpers.

Errors and warnings go to stderr so JSON on stdout stays parseable.
"""

import re
import sys

from rich.console import Console

from tidyctl.core.theme import get_theme

_SIZE_UNITS: dict[str, int] = {
    "": 1,
    "B": 1,
    "K": 1024,
    "KB": 1024,
    "KIB": 1024,
    "M": 1024**2,
    "MB": 1024**2,
    "MIB": 1024**2,
    "G": 1024**3,
    "GB": 1024**3,
    "GIB": 1024**3,
    "T": 1024**4,
    "TB": 1024**4,
    "TIB": 1024**4,
}

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([A-Za-z]*)\s*$")


def _detect_color_system() -> str | None:
    """Use truecolor on a TTY so hex theme colors render; otherwise let Rich decide."""
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def format_size(size_bytes: int | None) -> str:
    """Format byte count as human-readable string."""
    if size_bytes is None or size_bytes == 0:
        return "0 B"
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(size) < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.1f} TB"


def parse_size(text: str) -> int:
    """Parse a human-readable size such as ``100MB`` or ``1.5G``.

    Units are binary (1 KB = 1024 bytes). A bare number is bytes.

    Args:
        text: Size string.

    Returns:
        Size in bytes.

    Raises:
        ValueError: If the string is not a valid size.
    """
    match = _SIZE_PATTERN.match(text)
    if match is None:
        msg = f"Invalid size: {text!r}"
        raise ValueError(msg)
    number, unit = match.groups()
    multiplier = _SIZE_UNITS.get(unit.upper())
    if multiplier is None:
        msg = f"Unknown size unit {unit!r} in {text!r}"
        raise ValueError(msg)
    return int(float(number) * multiplier)


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
