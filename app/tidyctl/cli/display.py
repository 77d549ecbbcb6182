"""Shared Rich display functions for scans, plans and recoveries.

Provides reusable table builders and summary printers used across the
dupes, clean and recover commands.
"""

from datetime import UTC, datetime

from rich.table import Table

from tidyctl.cleanup.orchestrator import CleanupPlan
from tidyctl.dedup.models import DuplicateGroup, ScanError
from tidyctl.recovery.models import (
    DeletionResult,
    RecoveryManifest,
    RecoverySummary,
    RestoreItemResult,
    RestoreStatus,
)
from tidyctl.utils.formatting import console, format_size, print_success, print_warning

_RESTORE_STYLES: dict[RestoreStatus, str] = {
    RestoreStatus.RESTORED: "restored",
    RestoreStatus.CONFLICT: "warning",
    RestoreStatus.ALREADY_PRESENT: "muted",
    RestoreStatus.SKIPPED: "muted",
    RestoreStatus.FAILED: "error",
}


def _table(title: str) -> Table:
    return Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )


def format_timestamp(value: datetime) -> str:
    """Format a UTC timestamp in local time for display."""
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def create_groups_table(groups: list[DuplicateGroup]) -> Table:
    """Create a Rich table listing duplicate groups.

    The kept member of each group is shown first and highlighted; removal
    candidates follow it.

    Args:
        groups: Groups to display, in display order.

    Returns:
        Rich Table configured for duplicate display.
    """
    table = _table("Duplicate Files")
    table.add_column("#", justify="right", width=4)
    table.add_column("Digest", style="muted", no_wrap=True)
    table.add_column("Path")
    table.add_column("Size", justify="right", width=10)
    table.add_column("Reclaimable", justify="right", width=12)

    for number, group in enumerate(groups, start=1):
        table.add_row(
            str(number),
            group.digest[:12],
            f"[keep]{group.keep.path}[/keep]",
            format_size(group.size),
            f"[reclaim]{format_size(group.reclaimable_size)}[/reclaim]",
        )
        for member in group.removal_candidates:
            table.add_row("", "", f"[muted]{member.path}[/muted]", format_size(member.size), "")

    return table


def create_plan_table(plan: CleanupPlan, dry_run: bool = False) -> Table:
    """Create a Rich table of the files a cleanup would remove.

    Args:
        plan: Cleanup plan to display.
        dry_run: Whether this is a dry-run (changes table title).

    Returns:
        Rich Table configured for plan display.
    """
    label = plan.target.category.label
    title = f"Planned Cleanup: {label} (Dry Run)" if dry_run else f"Planned Cleanup: {label}"
    table = _table(title)
    table.add_column("Path", no_wrap=True)
    table.add_column("Size", justify="right", width=10)
    table.add_column("Modified", width=16)

    for candidate in sorted(plan.candidates, key=lambda c: (-c.size, c.path)):
        table.add_row(
            candidate.path,
            format_size(candidate.size),
            format_timestamp(datetime.fromtimestamp(candidate.mtime, UTC)),
        )

    return table


def create_recoveries_table(entries: list[tuple[str, RecoverySummary]]) -> Table:
    """Create a Rich table listing recovery manifests."""
    now = datetime.now(UTC)
    table = _table("Recoveries")
    table.add_column("ID", no_wrap=True)
    table.add_column("Created", width=16)
    table.add_column("Items", justify="right")
    table.add_column("Size", justify="right", width=10)
    table.add_column("Retained Until", width=16)
    table.add_column("State")

    for manifest_id, summary in entries:
        if summary.fully_restored:
            state = "[restored]restored[/restored]"
        elif summary.is_expired(now):
            state = "[expired]expired[/expired]"
        elif summary.restored_count:
            state = f"[warning]{summary.restored_count} restored[/warning]"
        else:
            state = "[success]retained[/success]"
        table.add_row(
            manifest_id,
            format_timestamp(summary.timestamp),
            str(summary.item_count),
            format_size(summary.total_size),
            format_timestamp(summary.retention_until),
            state,
        )

    return table


def create_manifest_table(manifest: RecoveryManifest) -> Table:
    """Create a Rich table of the items in one manifest."""
    table = _table(f"Recovery {manifest.id}")
    table.add_column("Original Path", no_wrap=True)
    table.add_column("Category")
    table.add_column("Size", justify="right", width=10)
    table.add_column("Checksum", style="muted")
    table.add_column("Restored", justify="center")

    for item in manifest.items:
        table.add_row(
            item.original_path,
            item.category,
            format_size(item.size),
            item.checksum[:12],
            "[restored]yes[/restored]" if item.restored else "[muted]no[/muted]",
        )

    return table


def create_restore_table(results: list[RestoreItemResult]) -> Table:
    """Create a Rich table of per-item restore outcomes."""
    table = _table("Restore Results")
    table.add_column("Status", width=16)
    table.add_column("Original Path", no_wrap=True)
    table.add_column("Details")

    for result in results:
        style = _RESTORE_STYLES[result.status]
        if result.error is not None:
            detail = str(result.error)
        elif result.status is RestoreStatus.CONFLICT:
            detail = f"written to {result.restored_path}"
        else:
            detail = ""
        table.add_row(
            f"[{style}]{result.status.value}[/{style}]",
            result.original_path,
            f"[muted]{detail}[/muted]",
        )

    return table


def print_deletion_summary(deletions: list[DeletionResult]) -> None:
    """Print failed unlinks, or a success line when every file was removed."""
    failures = [d for d in deletions if not d.success]
    if not failures:
        print_success(f"All {len(deletions)} file(s) archived and removed.")
        return
    for failure in failures:
        print_warning(f"Not removed: {failure.path} ({failure.error})")
    console.print(
        f"\n[success]{len(deletions) - len(failures)} removed[/success], "
        f"[error]{len(failures)} failed[/error] (all remain restorable)"
    )


def print_scan_errors(errors: list[ScanError], limit: int = 10) -> None:
    """Print per-path errors collected while scanning."""
    if not errors:
        return
    for error in errors[:limit]:
        print_warning(f"{error.path}: {error.message}")
    if len(errors) > limit:
        console.print(f"[dim](+{len(errors) - limit} more unreadable paths)[/dim]")
