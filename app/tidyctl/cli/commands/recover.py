"""Recovery store commands.

Provides `tidyctl recover` subcommands to list, inspect, restore and
purge the archived batches created by `tidyctl clean run`.
"""

import json
from datetime import UTC, datetime
from typing import Annotated

import typer

from tidyctl.cli.display import (
    create_manifest_table,
    create_recoveries_table,
    create_restore_table,
)
from tidyctl.cli.types import DryRunOption, JsonOption, YesOption
from tidyctl.core.config import require_config
from tidyctl.errors import IoFailure, ManifestCorrupt, RecoveryNotFound
from tidyctl.recovery.manager import RecoveryManager
from tidyctl.recovery.models import (
    RecoveryManifest,
    RecoverySummary,
    RestoreResult,
    RestoreStatus,
)
from tidyctl.utils.formatting import (
    console,
    format_size,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="List, restore and purge archived cleanups.",
    no_args_is_help=True,
)


def _manager() -> RecoveryManager:
    return RecoveryManager.from_config(require_config())


def _require_manifest(manager: RecoveryManager, manifest_id: str) -> RecoveryManifest:
    """Load a manifest or exit with a helpful error message."""
    try:
        return manager.load_manifest(manifest_id)
    except RecoveryNotFound as e:
        print_error(str(e))
        print_info("Run 'tidyctl recover list' to see available recoveries.")
        raise typer.Exit(code=1) from e
    except ManifestCorrupt as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


@app.command("list")
def list_recoveries(json_output: JsonOption = False) -> None:
    """List archived cleanups, newest first."""
    entries = _manager().list_recoveries()

    if json_output:
        data = [
            {"id": manifest_id, **summary.model_dump(mode="json")}
            for manifest_id, summary in entries
        ]
        console.print_json(json.dumps(data))
        return

    if not entries:
        print_info("No recoveries found.")
        return

    console.print(create_recoveries_table(entries))
    total = sum(summary.total_size for _, summary in entries)
    console.print(f"\n[dim]{len(entries)} recovery(ies), {format_size(total)} archived[/dim]")


@app.command()
def show(
    manifest_id: Annotated[str, typer.Argument(help="Recovery id.")],
    json_output: JsonOption = False,
) -> None:
    """Show the files archived by one cleanup."""
    manifest = _require_manifest(_manager(), manifest_id)

    if json_output:
        console.print_json(manifest.model_dump_json())
        return

    console.print(create_manifest_table(manifest))
    console.print(
        f"\n[dim]{len(manifest.items)} item(s), {format_size(manifest.total_size)}, "
        f"restorable until {manifest.retention_until.astimezone():%Y-%m-%d %H:%M}[/dim]"
    )


@app.command()
def restore(
    manifest_id: Annotated[str, typer.Argument(help="Recovery id.")],
    yes: YesOption = False,
    json_output: JsonOption = False,
) -> None:
    """Restore the files of an archived cleanup.

    Files whose original location now holds different content are written
    next to it as <name>.restored-<id><suffix>; nothing is overwritten.
    """
    manager = _manager()
    manifest = _require_manifest(manager, manifest_id)

    pending = len(manifest.items) - manifest.restored_count
    if pending == 0:
        if json_output:
            console.print_json(json.dumps(RestoreResult(manifest_id=manifest_id).to_dict()))
        else:
            print_info(f"Every item of {manifest_id} has already been restored.")
        return

    if not yes:
        confirmed = typer.confirm(
            f"Restore {pending} file(s) from {manifest_id}?",
            default=False,
            err=json_output,
        )
        if not confirmed:
            if json_output:
                console.print_json(
                    json.dumps({"id": manifest_id, "status": "declined", "items": []})
                )
            else:
                print_info("Aborted.")
            raise typer.Exit(code=0)

    try:
        result = manager.restore(manifest_id)
    except (RecoveryNotFound, ManifestCorrupt) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if json_output:
        console.print_json(json.dumps(result.to_dict()))
    else:
        _print_restore(result)

    if result.status.exit_code:
        raise typer.Exit(code=result.status.exit_code)


def _print_restore(result: RestoreResult) -> None:
    items = [r for r in result.items if r.status is not RestoreStatus.SKIPPED]
    console.print(create_restore_table(items))

    conflicts = sum(1 for r in items if r.status is RestoreStatus.CONFLICT)
    failures = sum(1 for r in items if not r.success)
    if conflicts:
        print_warning(f"{conflicts} file(s) restored beside a changed original.")
    if failures:
        console.print(
            f"\n[success]{len(items) - failures} restored[/success], "
            f"[error]{failures} failed[/error]"
        )
    else:
        print_success(f"All {len(items)} file(s) restored.")


def _purge_report(
    eligible: list[tuple[str, RecoverySummary]],
    purged: list[str],
    *,
    dry_run: bool,
    aborted: bool = False,
) -> str:
    """JSON document describing a purge."""
    done = set(purged)
    return json.dumps(
        {
            "dry_run": dry_run,
            "aborted": aborted,
            "eligible": [mid for mid, _ in eligible],
            "total_size": sum(summary.total_size for _, summary in eligible),
            "purged": purged,
            "failed": [
                mid for mid, _ in eligible if mid not in done and not (dry_run or aborted)
            ],
        }
    )


@app.command()
def purge(
    manifest_id: Annotated[
        str | None,
        typer.Argument(help="Purge only this recovery (must be expired or restored)."),
    ] = None,
    restored: Annotated[
        bool,
        typer.Option("--restored", help="Also purge fully restored recoveries."),
    ] = False,
    dry_run: DryRunOption = False,
    yes: YesOption = False,
    json_output: JsonOption = False,
) -> None:
    """Permanently delete recoveries past their retention period."""
    manager = _manager()

    if manifest_id is not None:
        _purge_one(manager, manifest_id, dry_run=dry_run, yes=yes, json_output=json_output)
        return

    now = datetime.now(UTC)
    eligible = [
        (mid, summary)
        for mid, summary in manager.list_recoveries()
        if summary.is_expired(now) or (restored and summary.fully_restored)
    ]
    total = sum(summary.total_size for _, summary in eligible)

    if not json_output:
        if not eligible:
            print_info("No recoveries are eligible for purging.")
            return
        console.print(create_recoveries_table(eligible))

    if dry_run or not eligible:
        if json_output:
            console.print_json(_purge_report(eligible, [], dry_run=dry_run))
        else:
            print_info(
                f"Dry-run: {len(eligible)} recovery(ies) ({format_size(total)}) would be purged."
            )
        return

    if not yes:
        confirmed = typer.confirm(
            f"\nPermanently delete {len(eligible)} recovery(ies) ({format_size(total)})?",
            default=False,
            err=json_output,
        )
        if not confirmed:
            if json_output:
                console.print_json(_purge_report(eligible, [], dry_run=False, aborted=True))
            else:
                print_info("Aborted.")
            raise typer.Exit(code=0)

    purged = manager.purge_expired(now, include_restored=restored)
    if json_output:
        console.print_json(_purge_report(eligible, purged, dry_run=False))
    else:
        print_success(f"Purged {len(purged)} recovery(ies).")
    if len(purged) < len(eligible):
        print_warning(f"{len(eligible) - len(purged)} recovery(ies) could not be purged.")
        raise typer.Exit(code=2)


def _purge_one(
    manager: RecoveryManager,
    manifest_id: str,
    *,
    dry_run: bool,
    yes: bool,
    json_output: bool,
) -> None:
    summary = next((s for mid, s in manager.list_recoveries() if mid == manifest_id), None)
    if summary is None:
        print_error(f"Recovery not found: {manifest_id}")
        raise typer.Exit(code=1)
    if not (summary.is_expired() or summary.fully_restored):
        print_error(
            f"{manifest_id} is retained until "
            f"{summary.retention_until.astimezone():%Y-%m-%d %H:%M}; restore it first."
        )
        raise typer.Exit(code=1)

    eligible = [(manifest_id, summary)]
    if dry_run:
        if json_output:
            console.print_json(_purge_report(eligible, [], dry_run=True))
        else:
            print_info(
                f"Dry-run: {manifest_id} ({format_size(summary.total_size)}) would be purged."
            )
        return
    if not yes and not typer.confirm(
        f"Permanently delete {manifest_id}?", default=False, err=json_output
    ):
        if json_output:
            console.print_json(_purge_report(eligible, [], dry_run=False, aborted=True))
        else:
            print_info("Aborted.")
        raise typer.Exit(code=0)

    purged = manager.purge(manifest_id)
    if json_output:
        console.print_json(_purge_report(eligible, [manifest_id] if purged else [], dry_run=False))
    elif purged:
        print_success(f"Purged {manifest_id}.")
    if not purged:
        print_error(f"Could not purge {manifest_id}.")
        raise typer.Exit(code=1)


@app.command()
def reindex() -> None:
    """Rebuild the recovery index from the manifest files."""
    manager = _manager()
    try:
        count, corrupt = manager.rebuild_index()
    except IoFailure as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    for manifest_id in corrupt:
        print_warning(f"Skipped corrupt manifest: {manifest_id}")
    print_success(f"Indexed {count} recovery(ies).")
    if corrupt:
        raise typer.Exit(code=2)
