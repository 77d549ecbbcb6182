"""Console output and size helpers shared by the CLI and its commands."""

from tidyctl.utils.formatting import (
    console,
    err_console,
    format_size,
    parse_size,
    print_error,
    print_info,
    print_success,
    print_warning,
)

__all__ = [
    "console",
    "err_console",
    "format_size",
    "parse_size",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
]
