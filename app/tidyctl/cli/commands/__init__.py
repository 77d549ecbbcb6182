"""CLI commands for tidyctl.

This package contains all subcommand implementations.
"""

from tidyctl.cli.commands import clean, config, dupes, recover

__all__ = ["clean", "config", "dupes", "recover"]
