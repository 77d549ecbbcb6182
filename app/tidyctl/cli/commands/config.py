"""Settings commands.

Provides `tidyctl config show` to print the effective settings and
`tidyctl config init` to write the defaults to config.toml for editing.
"""

from typing import Annotated

import tomli_w
import typer

from tidyctl.core.config import (
    ConfigError,
    TidyConfig,
    config_to_dict,
    require_config,
    save_config,
)
from tidyctl.core.paths import get_config_path
from tidyctl.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show and initialize tidyctl settings.",
    no_args_is_help=True,
)


@app.command()
def show() -> None:
    """Print the effective settings and where they come from."""
    path = get_config_path()
    config = require_config(path)

    if path.exists():
        print_info(f"Settings from {path}")
    else:
        print_info(f"No config file at {path}; showing defaults.")

    console.print(tomli_w.dumps(config_to_dict(config)), markup=False, highlight=False)
    console.print(f"[dim]recovery root: {config.effective_recovery_root}[/dim]")


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config file."),
    ] = False,
) -> None:
    """Write the default settings to config.toml."""
    path = get_config_path()
    if path.exists() and not force:
        print_error(f"Config already exists: {path}")
        print_info("Use --force to overwrite it with defaults.")
        raise typer.Exit(code=1)

    try:
        saved = save_config(TidyConfig(), path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(f"Wrote default settings to {saved}")
