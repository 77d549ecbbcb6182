"""Cleanup preview and execution commands.

Provides `tidyctl clean preview` and `tidyctl clean run`. Every file a
run removes is archived and verified first, and stays restorable with
`tidyctl recover restore` until its retention period ends.
"""

import json
from pathlib import Path
from typing import Annotated

import typer

from tidyctl.cleanup.orchestrator import (
    CleanupOrchestrator,
    CleanupOutcome,
    CleanupPlan,
    OutcomeStatus,
)
from tidyctl.cleanup.targets import CleanupCategory, CleanupTarget
from tidyctl.cli.display import create_plan_table, print_deletion_summary, print_scan_errors
from tidyctl.cli.types import DryRunOption, JsonOption, YesOption
from tidyctl.core.config import TidyConfig, require_config
from tidyctl.utils.formatting import (
    console,
    format_size,
    parse_size,
    print_error,
    print_info,
    print_success,
)

app = typer.Typer(
    help="Preview and run recoverable cleanups.",
    no_args_is_help=True,
)

TargetArgument = Annotated[
    CleanupCategory,
    typer.Argument(help="What to clean: cache, logs, temp, build-artifact or duplicate."),
]
PathOption = Annotated[
    list[Path] | None,
    typer.Option(
        "--path",
        "-p",
        help="Directory to search (repeatable). Default: the category's standard roots.",
    ),
]
MinSizeOption = Annotated[
    str,
    typer.Option(
        "--min-size",
        "-m",
        help="Ignore files smaller than this (e.g. 1MB, 512K).",
    ),
]


def _build_target(
    config: TidyConfig, category: CleanupCategory, paths: list[Path] | None, min_size: str
) -> CleanupTarget:
    try:
        size_threshold = parse_size(min_size)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--min-size") from e
    return CleanupTarget.for_category(category, config, paths=paths, min_size=size_threshold)


def _print_plan(plan: CleanupPlan, dry_run: bool = False) -> None:
    print_scan_errors(list(plan.errors))
    console.print(create_plan_table(plan, dry_run=dry_run))
    roots = ", ".join(str(r) for r in plan.target.roots)
    console.print(
        f"\n[dim]{len(plan.candidates)} file(s), {format_size(plan.total_size)} "
        f"under {roots}[/dim]"
    )


@app.command()
def preview(
    target: TargetArgument,
    path: PathOption = None,
    min_size: MinSizeOption = "0",
    json_output: JsonOption = False,
) -> None:
    """Show what a cleanup would remove, without changing anything."""
    config = require_config()
    orchestrator = CleanupOrchestrator.from_config(config)
    plan = orchestrator.preview(_build_target(config, target, path, min_size))

    if json_output:
        console.print_json(json.dumps(plan.to_dict()))
        return

    if plan.is_empty:
        print_scan_errors(list(plan.errors))
        print_success(f"Nothing to clean for {target.value}.")
        return

    _print_plan(plan)


@app.command()
def run(
    target: TargetArgument,
    path: PathOption = None,
    min_size: MinSizeOption = "0",
    retention_days: Annotated[
        int | None,
        typer.Option(
            "--retention-days",
            "-r",
            min=0,
            help="Days the removed files stay restorable. Default: from config (30).",
        ),
    ] = None,
    dry_run: DryRunOption = False,
    yes: YesOption = False,
    json_output: JsonOption = False,
) -> None:
    """Archive and remove the files of a cleanup target.

    Files are copied into the recovery store and verified before anything
    is deleted. If any file cannot be archived, nothing is deleted. With
    --json the outcome, including the recovery id, is printed as JSON and
    the confirmation prompt goes to stderr.

    Examples:
        tidyctl clean run cache --dry-run
        tidyctl clean run duplicate --path ~/Downloads --min-size 1MB
        tidyctl clean run build-artifact -p ~/src -y --json
    """
    config = require_config()
    orchestrator = CleanupOrchestrator.from_config(config)
    plan = orchestrator.preview(_build_target(config, target, path, min_size))

    if json_output and dry_run:
        console.print_json(json.dumps({"dry_run": True, **plan.to_dict()}))
        return

    if not json_output:
        if plan.is_empty:
            print_scan_errors(list(plan.errors))
            print_success(f"Nothing to clean for {target.value}.")
            return

        _print_plan(plan, dry_run=dry_run)

        if dry_run:
            print_info(
                f"Dry-run: {len(plan.candidates)} file(s) ({format_size(plan.total_size)}) "
                "would be archived and removed."
            )
            return

    days = retention_days if retention_days is not None else config.retention_days

    def _confirm(p: CleanupPlan) -> bool:
        return typer.confirm(
            f"\nArchive and remove {len(p.candidates)} file(s) "
            f"({format_size(p.total_size)}), restorable for {days} day(s)?",
            default=False,
            err=json_output,
        )

    outcome = orchestrator.execute_plan(
        plan,
        days,
        None if yes else _confirm,
        source=f"tidyctl clean run {target.value}",
    )

    if json_output:
        console.print_json(json.dumps(outcome.to_dict()))
    else:
        _report(outcome)

    if outcome.status.exit_code:
        raise typer.Exit(code=outcome.status.exit_code)


def _report(outcome: CleanupOutcome) -> None:
    if outcome.status is OutcomeStatus.DECLINED:
        print_info("Aborted.")
        return

    stage = outcome.stage
    if outcome.status is OutcomeStatus.FAILED or stage is None or stage.manifest is None:
        error = stage.error if stage is not None else None
        print_error(f"Cleanup aborted: {error}")
        print_info("No files were removed.")
        return

    print_deletion_summary(list(stage.deletions))
    console.print(
        f"\nReclaimed [reclaim]{format_size(outcome.reclaimed_size)}[/reclaim]. "
        f"Recovery id: [bold]{stage.manifest.id}[/bold]"
    )
    print_info(f"Undo with: tidyctl recover restore {stage.manifest.id}")
