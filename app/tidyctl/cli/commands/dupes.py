"""Duplicate file scanning command.

Provides the `tidyctl dupes scan` command, which reports groups of files
with identical content and the space their redundant copies occupy.
Scanning never modifies anything; use `tidyctl clean run duplicate` to
archive and remove the redundant copies.
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer

from tidyctl.cleanup.orchestrator import CleanupOrchestrator
from tidyctl.cli.display import create_groups_table, print_scan_errors
from tidyctl.core.config import require_config
from tidyctl.dedup.detector import DuplicateDetector
from tidyctl.dedup.hasher import HashAlgorithm
from tidyctl.dedup.models import DuplicateGroup, DuplicateScanResult
from tidyctl.recovery.manager import RecoveryManager
from tidyctl.utils.formatting import (
    console,
    format_size,
    parse_size,
    print_error,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Find files with identical content.",
    no_args_is_help=True,
)

# Exit code of a scan stopped with Ctrl-C.
EXIT_CANCELLED = 130


class OutputFormat(str, Enum):
    """Output format options for duplicate scan."""

    TABLE = "table"
    JSON = "json"


def _parse_min_size(value: str) -> int:
    try:
        return parse_size(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.command()
def scan(
    path: Annotated[
        Path,
        typer.Argument(help="Directory to scan."),
    ] = Path("."),
    min_size: Annotated[
        str,
        typer.Option(
            "--min-size",
            "-m",
            help="Ignore files smaller than this (e.g. 1MB, 512K).",
        ),
    ] = "1",
    algorithm: Annotated[
        HashAlgorithm | None,
        typer.Option(
            "--algorithm",
            "-a",
            help="Digest algorithm. Default: from config (sha256).",
            case_sensitive=False,
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
    limit: Annotated[
        int | None,
        typer.Option(
            "--limit",
            "-l",
            help="Limit number of groups shown.",
        ),
    ] = None,
) -> None:
    """Scan a directory tree for duplicate files.

    Files are grouped by size first; only files sharing a size are hashed.
    In each group the oldest file is kept and the others are reported as
    reclaimable.

    Examples:
        tidyctl dupes scan ~/Pictures
        tidyctl dupes scan . --min-size 1MB --format json
    """
    config = require_config()
    size_threshold = _parse_min_size(min_size)
    detector = DuplicateDetector(
        algorithm=algorithm or HashAlgorithm(config.hash_algorithm),
        workers=config.workers,
    )
    orchestrator = CleanupOrchestrator(RecoveryManager.from_config(config), detector)

    try:
        result = _scan_interruptible(orchestrator, path, size_threshold)
    except (FileNotFoundError, NotADirectoryError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if result.cancelled:
        print_warning("Scan cancelled.")
        raise typer.Exit(code=EXIT_CANCELLED)

    groups = list(result.groups[:limit] if limit else result.groups)

    if output_format == OutputFormat.JSON:
        _print_json(result, groups)
        return

    print_scan_errors(list(result.errors))

    if not result.groups:
        print_success(f"No duplicates found among {result.files_scanned} file(s).")
        return

    console.print(create_groups_table(groups))
    console.print(
        f"\n[dim]{len(result.groups)} group(s), {result.duplicate_count} redundant file(s), "
        f"{format_size(result.reclaimable_size)} reclaimable "
        f"({result.files_hashed} of {result.files_scanned} files hashed)[/dim]"
    )
    if limit and len(groups) < len(result.groups):
        console.print(
            f"[dim](showing {len(groups)} of {len(result.groups)}, limited to {limit})[/dim]"
        )


def _scan_interruptible(
    orchestrator: CleanupOrchestrator, path: Path, min_size: int
) -> DuplicateScanResult:
    """Run a scan on a helper thread so Ctrl-C can cancel it cleanly."""
    cancel_event = threading.Event()
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="tidyctl-scan") as executor:
        future = executor.submit(orchestrator.scan_duplicates, path, min_size, cancel_event)
        try:
            while True:
                try:
                    return future.result(timeout=0.2)
                except TimeoutError:
                    continue
        except KeyboardInterrupt:
            cancel_event.set()
            return future.result()


def _print_json(result: DuplicateScanResult, groups: list[DuplicateGroup]) -> None:
    """Display scan results as JSON."""
    data = {
        "root": result.root,
        "files_scanned": result.files_scanned,
        "files_hashed": result.files_hashed,
        "reclaimable_size": result.reclaimable_size,
        "groups": [
            {
                "digest": group.digest,
                "size": group.size,
                "reclaimable_size": group.reclaimable_size,
                "keep": group.keep.path,
                "duplicates": [member.path for member in group.removal_candidates],
            }
            for group in groups
        ],
        "errors": [{"path": e.path, "message": e.message} for e in result.errors],
    }
    console.print_json(json.dumps(data))
