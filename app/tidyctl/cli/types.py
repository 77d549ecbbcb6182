"""Option types shared by several CLI command modules."""

from typing import Annotated

import typer

JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON."),
]
YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip confirmation prompt."),
]
DryRunOption = Annotated[
    bool,
    typer.Option("--dry-run", help="Show what would change without changing anything."),
]
