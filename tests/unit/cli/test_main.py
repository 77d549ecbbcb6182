"""Unit tests for the main CLI application.

Tests for global options and logging setup.
"""

import logging

from tidyctl import __version__
from tidyctl.cli.main import app, setup_logging
from typer.testing import CliRunner

runner = CliRunner()


class TestMainApp:
    """Tests for the top-level app."""

    def test_version(self) -> None:
        """--version prints the version and exits."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"tidyctl version {__version__}" in result.stdout

    def test_version_short_flag(self) -> None:
        """-V is an alias for --version."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_help_lists_commands(self) -> None:
        """Help shows every command group."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("dupes", "clean", "recover", "config"):
            assert name in result.stdout


class TestSetupLogging:
    """Tests for setup_logging function."""

    def _managed(self) -> list[logging.Handler]:
        logger = logging.getLogger("tidyctl")
        return [h for h in logger.handlers if getattr(h, "_tidyctl_managed", False)]

    def test_levels(self) -> None:
        """Verbose enables debug output, quiet keeps only errors."""
        setup_logging(verbose=True)
        assert logging.getLogger("tidyctl").level == logging.DEBUG

        setup_logging(quiet=True)
        assert logging.getLogger("tidyctl").level == logging.ERROR

        setup_logging()
        assert logging.getLogger("tidyctl").level == logging.WARNING

    def test_handler_replaced(self) -> None:
        """Repeated setup keeps a single managed handler."""
        setup_logging()
        setup_logging(verbose=True)

        assert len(self._managed()) == 1
        assert logging.getLogger("tidyctl").propagate is False
