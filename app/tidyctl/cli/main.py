"""Main CLI application entry point.

Defines the Typer application, global options and logging setup.
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from tidyctl import __version__
from tidyctl.cli.commands import clean, config, dupes, recover
from tidyctl.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="tidyctl",
    help="Find duplicates and clean up files, with every removal restorable.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"tidyctl version {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route tidyctl log records to stderr through Rich.

    Warnings are shown by default, debug output with --verbose and only
    errors with --quiet. Calling it again replaces the handler.
    """
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logger = logging.getLogger("tidyctl")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_tidyctl_managed", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=err_console,
        show_path=verbose,
        show_time=verbose,
        rich_tracebacks=verbose,
    )
    handler._tidyctl_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug log records on stderr.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Only log errors.",
        ),
    ] = False,
) -> None:
    """tidyctl - Recoverable cleanup and duplicate detection.

    Every file tidyctl removes is first archived and verified, and can be
    restored with `tidyctl recover restore` until its retention ends.
    """
    setup_logging(verbose=verbose, quiet=quiet)


# Register commands
app.add_typer(dupes.app, name="dupes")
app.add_typer(clean.app, name="clean")
app.add_typer(recover.app, name="recover")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
