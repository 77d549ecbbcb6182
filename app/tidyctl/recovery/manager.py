"""Recovery archive manager.

This module provides the RecoveryManager class, the only component that
deletes user files. Every deletion is preceded by a verified, durable
archive copy and a committed manifest:

1. Pre-flight checks reject protected, non-regular and missing candidates.
2. Each candidate is hashed (SHA-256), copied into the store and the copy
   is re-hashed. Any failure aborts the batch and removes its archive
   directory; no original is touched.
3. The manifest is written atomically, then the index is updated.
4. Only then are the originals unlinked. Unlink failures are reported per
   file and leave the manifest valid.
"""

import logging
import os
import re
import signal
import stat
import threading
from collections.abc import Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from tidyctl.core.config import TidyConfig
from tidyctl.core.paths import get_recovery_root
from tidyctl.dedup.hasher import HashAlgorithm, default_workers, hash_file
from tidyctl.errors import (
    ChecksumMismatch,
    InsufficientSpace,
    IoFailure,
    ManifestCorrupt,
    ProtectedPathError,
    RecoveryError,
    RecoveryNotFound,
)
from tidyctl.recovery.index import RecoveryIndex
from tidyctl.recovery.models import (
    DeletionResult,
    RecoveryItem,
    RecoveryManifest,
    RecoverySummary,
    RestoreItemResult,
    RestoreResult,
    RestoreStatus,
    StageResult,
    create_run_id,
    retention_deadline,
)
from tidyctl.recovery.protected import is_protected_path, is_within
from tidyctl.recovery.store import ArchiveStore, copy_durable, write_text_atomic

logger = logging.getLogger(__name__)

# Run ids are generated by create_run_id; anything else is never a valid lookup.
_MANIFEST_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

# Categories name a directory under archives/<run_id>/.
_CATEGORY_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


@contextmanager
def deferred_interrupts() -> Iterator[None]:
    """Hold back SIGINT until the enclosed block has finished.

    Only effective on the main thread, where signal handlers can be set.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    received: list[int] = []

    def _handler(signum: int, frame: object) -> None:
        received.append(signum)
        logger.warning("Interrupt received; finishing the current batch first")

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
    if received:
        logger.warning("Batch completed after a deferred interrupt")


class RecoveryManager:
    """Stages files into the recovery store, restores and purges them.

    Directories are created lazily by the first staging batch, so reading
    an empty store never writes to disk.

    Args:
        root: Recovery root. Default: ~/.local/state/tidyctl/recovery
        workers: Pool size for hashing, copying and unlinking.
        copy_retries: Extra attempts for transient archive write failures.
        reserve_bytes: Free space that staging must leave on the volume.
    """

    def __init__(
        self,
        root: Path | None = None,
        *,
        workers: int | None = None,
        copy_retries: int = 3,
        reserve_bytes: int = 0,
    ) -> None:
        self._root = (root if root is not None else get_recovery_root()).absolute()
        self._store = ArchiveStore(self._root, copy_retries=copy_retries)
        self._index = RecoveryIndex(self._store.index_path, self._store.lock_path)
        self._workers = workers or default_workers()
        self._reserve_bytes = reserve_bytes
        self._loaded = False

    @classmethod
    def from_config(cls, config: TidyConfig) -> "RecoveryManager":
        """Create a manager from user configuration."""
        return cls(
            config.effective_recovery_root,
            workers=config.workers,
            copy_retries=config.copy_retries,
            reserve_bytes=config.reserve_bytes,
        )

    @property
    def root(self) -> Path:
        """Recovery root directory."""
        return self._root

    @property
    def store(self) -> ArchiveStore:
        """Underlying archive store."""
        return self._store

    # -- index ---------------------------------------------------------------

    def _ensure_loaded(self) -> None:
        """Load the index once, rebuilding it from manifests when needed."""
        if self._loaded:
            return
        try:
            present = self._index.load()
        except ManifestCorrupt as e:
            logger.warning("%s; rebuilding from manifests", e)
            self.rebuild_index()
        else:
            if not present and self._has_manifests():
                logger.warning("Recovery index missing; rebuilding from manifests")
                self.rebuild_index()
        self._loaded = True

    def _has_manifests(self) -> bool:
        manifests_dir = self._store.manifests_dir
        return manifests_dir.is_dir() and any(manifests_dir.glob("*.json"))

    def rebuild_index(self) -> tuple[int, list[str]]:
        """Recreate index.json from the manifest files on disk.

        Unparseable manifests are left out of the index and reported.

        Returns:
            Tuple of (number of indexed manifests, ids of corrupt manifests).

        Raises:
            IoFailure: If the index cannot be written.
        """
        summaries: dict[str, RecoverySummary] = {}
        corrupt: list[str] = []
        manifests_dir = self._store.manifests_dir
        paths = sorted(manifests_dir.glob("*.json")) if manifests_dir.is_dir() else []
        for path in paths:
            manifest_id = path.stem
            try:
                summaries[manifest_id] = self._read_manifest(manifest_id, path).summary()
            except ManifestCorrupt as e:
                logger.warning("Skipping manifest during rebuild: %s", e)
                corrupt.append(manifest_id)

        self._store.initialize()
        try:
            with self._index.transaction(fresh=True) as entries:
                entries.update(summaries)
        except OSError as e:
            raise IoFailure(self._index.path, e.strerror or str(e)) from e

        self._loaded = True
        logger.info("Rebuilt recovery index with %d manifest(s)", len(summaries))
        return len(summaries), corrupt

    def list_recoveries(self) -> list[tuple[str, RecoverySummary]]:
        """List all manifests, newest first.

        Returns:
            List of (manifest id, summary) tuples.
        """
        self._ensure_loaded()
        entries = self._index.entries()
        return sorted(entries.items(), key=lambda kv: (kv[1].timestamp, kv[0]), reverse=True)

    def load_manifest(self, manifest_id: str) -> RecoveryManifest:
        """Load a manifest by id.

        Raises:
            RecoveryNotFound: If no manifest with this id exists.
            ManifestCorrupt: If the manifest exists but cannot be parsed.
        """
        if not _MANIFEST_ID_RE.match(manifest_id) or manifest_id.startswith("."):
            raise RecoveryNotFound(manifest_id)
        path = self._store.manifest_path(manifest_id)
        if not path.is_file():
            raise RecoveryNotFound(manifest_id)
        return self._read_manifest(manifest_id, path)

    @staticmethod
    def _read_manifest(manifest_id: str, path: Path) -> RecoveryManifest:
        try:
            raw = path.read_text(encoding="utf-8")
            manifest = RecoveryManifest.model_validate_json(raw)
        except OSError as e:
            raise ManifestCorrupt(manifest_id, e.strerror or str(e)) from e
        except ValidationError as e:
            raise ManifestCorrupt(manifest_id, f"{e.error_count()} validation error(s)") from e
        if manifest.id != manifest_id:
            raise ManifestCorrupt(manifest_id, f"id field is {manifest.id!r}")
        return manifest

    def _write_manifest(self, manifest: RecoveryManifest) -> None:
        write_text_atomic(
            self._store.manifest_path(manifest.id),
            manifest.model_dump_json(indent=2) + "\n",
        )

    # -- staging -------------------------------------------------------------

    def stage_and_delete(
        self,
        candidates: Iterable[str | Path],
        category: str,
        source: str = "",
        *,
        retention_days: int = 30,
        can_regenerate: bool = False,
    ) -> StageResult:
        """Archive candidates, commit a manifest, then delete the originals.

        Nothing is deleted unless every candidate was archived and verified
        and the manifest was committed. Errors never escape: an aborted
        batch is reported through ``StageResult.error``.

        Args:
            candidates: Files to clean up. Duplicated paths are staged once.
            category: Category label recorded on each item.
            source: Free-text origin of the cleanup.
            retention_days: Days before the batch may be purged.
            can_regenerate: Whether the files are trivially regenerable.

        Returns:
            StageResult with the manifest and one deletion result per file.

        Raises:
            ValueError: If no candidates were given or the category is not a
                plain lowercase name.
        """
        if not _CATEGORY_RE.fullmatch(category):
            msg = f"Invalid category label: {category!r}"
            raise ValueError(msg)
        paths = list(dict.fromkeys(os.path.abspath(str(c)) for c in candidates))
        if not paths:
            msg = "No candidates to stage"
            raise ValueError(msg)

        started = datetime.now(UTC)
        run_id = create_run_id(started)
        deadline = retention_deadline(started, retention_days)

        with deferred_interrupts():
            try:
                self._ensure_loaded()
                stats = self._preflight(paths)
                self._check_space(sum(st.st_size for st in stats.values()))
                self._store.initialize()
                items = self._archive_all(paths, run_id, category, source, can_regenerate)
                manifest = RecoveryManifest(
                    id=run_id,
                    timestamp=datetime.now(UTC),
                    total_size=sum(item.size for item in items),
                    items=tuple(items),
                    retention_until=deadline,
                )
                self._commit(manifest)
            except RecoveryError as e:
                logger.error("Staging batch %s aborted: %s", run_id, e)
                self._rollback(run_id)
                return StageResult(manifest=None, error=e)
            except BaseException:
                self._rollback(run_id)
                raise

            logger.info(
                "Committed recovery %s: %d item(s), %d bytes",
                run_id,
                len(manifest.items),
                manifest.total_size,
            )
            deletions = self._unlink_originals(manifest, stats)

        return StageResult(manifest=manifest, deletions=tuple(deletions))

    def _preflight(self, paths: list[str]) -> dict[str, os.stat_result]:
        """Validate every candidate before anything is written.

        Raises:
            ProtectedPathError: If a candidate is protected or inside the store.
            IoFailure: If a candidate is missing or not a regular file.
        """
        stats: dict[str, os.stat_result] = {}
        for path in paths:
            if is_within(path, self._root) or is_protected_path(path):
                raise ProtectedPathError(path)
            try:
                st = os.lstat(path)
            except OSError as e:
                raise IoFailure(path, e.strerror or str(e)) from e
            if not stat.S_ISREG(st.st_mode):
                raise IoFailure(path, "not a regular file")
            stats[path] = st
        return stats

    def _check_space(self, required: int) -> None:
        """Raise InsufficientSpace if staging ``required`` bytes would not fit."""
        try:
            free = self._store.free_space()
        except OSError as e:
            raise IoFailure(self._root, e.strerror or str(e)) from e
        available = max(0, free - self._reserve_bytes)
        if required > available:
            raise InsufficientSpace(required, available)

    def _archive_all(
        self,
        paths: list[str],
        run_id: str,
        category: str,
        source: str,
        can_regenerate: bool,
    ) -> list[RecoveryItem]:
        """Archive candidates in parallel; stop at the first failure."""

        def _archive_one(path: str) -> RecoveryItem:
            checksum = hash_file(path, HashAlgorithm.SHA256)
            blob, size = self._store.archive_file(Path(path), run_id, category, checksum)
            return RecoveryItem(
                original_path=path,
                archive_path=str(blob),
                size=size,
                checksum=checksum,
                category=category,
                source=source,
                can_regenerate=can_regenerate,
            )

        failure: RecoveryError | None = None
        items: list[RecoveryItem] = []
        with ThreadPoolExecutor(
            max_workers=self._workers, thread_name_prefix="tidyctl-stage"
        ) as executor:
            futures: list[Future[RecoveryItem]] = [
                executor.submit(_archive_one, path) for path in paths
            ]
            for future in futures:
                if failure is not None:
                    break
                try:
                    items.append(future.result())
                except RecoveryError as e:
                    failure = e
                    for pending in futures:
                        pending.cancel()

        if failure is not None:
            raise failure
        return items

    def _commit(self, manifest: RecoveryManifest) -> None:
        """Write the manifest, then record it in the index.

        Raises:
            IoFailure: If either write fails. A manifest written before an
                index failure is removed again.
        """
        manifest_path = self._store.manifest_path(manifest.id)
        try:
            self._write_manifest(manifest)
        except OSError as e:
            raise IoFailure(manifest_path, e.strerror or str(e)) from e

        try:
            with self._index.transaction() as entries:
                entries[manifest.id] = manifest.summary()
        except (OSError, ManifestCorrupt) as e:
            reason = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
            raise IoFailure(self._index.path, reason) from e

    def _rollback(self, run_id: str) -> None:
        """Remove everything an aborted batch wrote."""
        try:
            self._store.remove_run(run_id)
            self._store.remove_manifest(run_id)
        except OSError as e:
            logger.error("Rollback of %s incomplete: %s", run_id, e)

    def _unlink_originals(
        self, manifest: RecoveryManifest, stats: dict[str, os.stat_result]
    ) -> list[DeletionResult]:
        """Remove originals whose manifest entry is committed."""

        def _unlink_one(item: RecoveryItem) -> DeletionResult:
            path = item.original_path
            before = stats[path]
            try:
                current = os.lstat(path)
            except OSError as e:
                return DeletionResult(path, False, IoFailure(path, e.strerror or str(e)))
            if (current.st_size, current.st_mtime_ns) != (before.st_size, before.st_mtime_ns):
                reason = "modified since it was archived"
                logger.warning("Not deleting %s: %s", path, reason)
                return DeletionResult(path, False, IoFailure(path, reason))
            try:
                os.unlink(path)
            except OSError as e:
                logger.warning("Cannot delete %s: %s", path, e.strerror or e)
                return DeletionResult(path, False, IoFailure(path, e.strerror or str(e)))
            return DeletionResult(path, True)

        with ThreadPoolExecutor(
            max_workers=self._workers, thread_name_prefix="tidyctl-unlink"
        ) as executor:
            return list(executor.map(_unlink_one, manifest.items))

    # -- restore -------------------------------------------------------------

    def restore(self, manifest_id: str) -> RestoreResult:
        """Restore every not-yet-restored item of a manifest.

        Each archived copy is verified before it is written back. An
        original path holding different content is left alone and the
        item is written to a conflict path next to it.

        Raises:
            RecoveryNotFound: If the manifest does not exist.
            ManifestCorrupt: If the manifest cannot be parsed.
        """
        self._ensure_loaded()
        manifest = self.load_manifest(manifest_id)

        def _restore_one(item: RecoveryItem) -> RestoreItemResult:
            if item.restored:
                return RestoreItemResult(item.original_path, RestoreStatus.SKIPPED)
            return self._restore_item(item, manifest.id)

        with ThreadPoolExecutor(
            max_workers=self._workers, thread_name_prefix="tidyctl-restore"
        ) as executor:
            results = list(executor.map(_restore_one, manifest.items))

        updated = tuple(
            item.model_copy(update={"restored": True})
            if result.success and not item.restored
            else item
            for item, result in zip(manifest.items, results, strict=True)
        )
        if updated != manifest.items:
            self._mark_restored(manifest.model_copy(update={"items": updated}))

        return RestoreResult(manifest_id=manifest.id, items=tuple(results))

    def _restore_item(self, item: RecoveryItem, run_id: str) -> RestoreItemResult:
        blob = Path(item.archive_path)
        try:
            self._store.verify(blob, item.checksum)
        except (IoFailure, ChecksumMismatch) as e:
            logger.error("Archived copy of %s unusable: %s", item.original_path, e)
            return RestoreItemResult(item.original_path, RestoreStatus.FAILED, error=e)

        target = Path(item.original_path)
        status = RestoreStatus.RESTORED
        if target.exists() or target.is_symlink():
            if _holds_content(target, item.checksum):
                return RestoreItemResult(
                    item.original_path, RestoreStatus.ALREADY_PRESENT, str(target)
                )
            target = conflict_path(target, run_id)
            status = RestoreStatus.CONFLICT
            logger.warning(
                "%s exists with other content; restoring to %s", item.original_path, target
            )

        try:
            copy_durable(blob, target)
        except OSError as e:
            error = IoFailure(target, e.strerror or str(e))
            return RestoreItemResult(item.original_path, RestoreStatus.FAILED, error=error)
        return RestoreItemResult(item.original_path, status, str(target))

    def _mark_restored(self, manifest: RecoveryManifest) -> None:
        """Persist restored markers. Failures are logged; a rerun repairs them."""
        try:
            self._write_manifest(manifest)
            with self._index.transaction() as entries:
                entries[manifest.id] = manifest.summary()
        except (OSError, ManifestCorrupt) as e:
            logger.error("Could not record restore of %s: %s", manifest.id, e)

    # -- retention -----------------------------------------------------------

    def purge_expired(
        self, now: datetime | None = None, *, include_restored: bool = False
    ) -> list[str]:
        """Delete manifests past retention, with their archived bytes.

        Args:
            now: Reference time. Default: current UTC time.
            include_restored: Also purge fully restored manifests.

        Returns:
            Ids of purged manifests, sorted.
        """
        self._ensure_loaded()
        now = now or datetime.now(UTC)
        eligible = sorted(
            manifest_id
            for manifest_id, summary in self._index.entries().items()
            if summary.is_expired(now) or (include_restored and summary.fully_restored)
        )
        return self._purge_ids(eligible)

    def purge(self, manifest_id: str, now: datetime | None = None) -> bool:
        """Purge one manifest if it is expired or fully restored.

        Returns:
            True if the manifest was purged, False if it is still retained.

        Raises:
            RecoveryNotFound: If the manifest is not in the index.
        """
        self._ensure_loaded()
        summary = self._index.get(manifest_id)
        if summary is None:
            raise RecoveryNotFound(manifest_id)
        if not (summary.is_expired(now) or summary.fully_restored):
            return False
        return bool(self._purge_ids([manifest_id]))

    def _purge_ids(self, manifest_ids: list[str]) -> list[str]:
        purged: list[str] = []
        for manifest_id in manifest_ids:
            try:
                self._store.remove_run(manifest_id)
                self._store.remove_manifest(manifest_id)
            except OSError as e:
                logger.error("Cannot purge %s: %s", manifest_id, e)
                continue
            purged.append(manifest_id)

        if purged:
            try:
                with self._index.transaction() as entries:
                    for manifest_id in purged:
                        entries.pop(manifest_id, None)
            except (OSError, ManifestCorrupt) as e:
                logger.error("Index update after purge failed: %s; rebuilding", e)
                self.rebuild_index()
            logger.info("Purged %d recovery manifest(s)", len(purged))
        return purged


def conflict_path(target: Path, run_id: str) -> Path:
    """Free path beside ``target`` for restoring conflicting content.

    ``report.txt`` becomes ``report.restored-<run_id>.txt``, with a
    numeric suffix added if that name is taken as well.
    """
    base = f"{target.stem}.restored-{run_id}"
    candidate = target.with_name(f"{base}{target.suffix}")
    counter = 1
    while candidate.exists() or candidate.is_symlink():
        candidate = target.with_name(f"{base}-{counter}{target.suffix}")
        counter += 1
    return candidate


def _holds_content(path: Path, checksum: str) -> bool:
    if path.is_symlink() or not path.is_file():
        return False
    try:
        return hash_file(path, HashAlgorithm.SHA256) == checksum
    except IoFailure:
        return False
