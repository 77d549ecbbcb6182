"""Duplicate file detection.

Finds files with identical content under a directory tree using a
two-stage filter: files are bucketed by exact size first, and only
buckets with two or more members are hashed. Hashing dominates the cost
of a scan, so files with a unique size are never read.
"""

import logging
import os
import stat
import threading
from collections import defaultdict
from collections.abc import Sequence
from pathlib import Path

from tidyctl.dedup.hasher import HashAlgorithm, hash_files
from tidyctl.dedup.models import DuplicateGroup, DuplicateScanResult, FileRecord, ScanError

logger = logging.getLogger(__name__)


class DuplicateDetector:
    """Groups files with identical content.

    The detector only reads: it never modifies the scanned tree. Errors on
    individual files are collected into the result and never abort a scan.

    Args:
        algorithm: Digest algorithm used to compare content.
        workers: Hashing pool size. None means CPU count.
    """

    def __init__(
        self,
        *,
        algorithm: HashAlgorithm = HashAlgorithm.SHA256,
        workers: int | None = None,
    ) -> None:
        self._algorithm = algorithm
        self._workers = workers

    @property
    def algorithm(self) -> HashAlgorithm:
        """Digest algorithm used by this detector."""
        return self._algorithm

    def scan(
        self,
        root: str | Path,
        min_size: int = 0,
        cancel_event: threading.Event | None = None,
        exclude: Sequence[str | Path] = (),
    ) -> DuplicateScanResult:
        """Scan a directory tree for duplicate files.

        Args:
            root: Directory to scan.
            min_size: Files smaller than this many bytes are ignored.
            cancel_event: Optional event that stops the scan early.
            exclude: Directories that are not descended into. Files under
                them never become group members, not even the keep.

        Returns:
            DuplicateScanResult with groups ordered by descending
            reclaimable size.

        Raises:
            FileNotFoundError: If root does not exist.
            NotADirectoryError: If root is not a directory.
        """
        root_path = Path(root).expanduser().absolute()
        if not root_path.exists():
            msg = f"Path does not exist: {root_path}"
            raise FileNotFoundError(msg)
        if not root_path.is_dir():
            msg = f"Not a directory: {root_path}"
            raise NotADirectoryError(msg)

        errors: list[ScanError] = []
        records = self.collect_files(root_path, min_size, errors, cancel_event, exclude)

        if _is_cancelled(cancel_event):
            return self._cancelled(root_path, errors, len(records), min_size)

        buckets = self.bucket_by_size(records)
        to_hash = [record.path for bucket in buckets.values() for record in bucket]
        logger.debug(
            "Scanned %d files under %s, hashing %d in %d size buckets",
            len(records),
            root_path,
            len(to_hash),
            len(buckets),
        )

        outcomes = hash_files(
            to_hash,
            self._algorithm,
            workers=self._workers,
            cancel_event=cancel_event,
        )
        if _is_cancelled(cancel_event):
            return self._cancelled(root_path, errors, len(records), min_size)

        digests: dict[str, str] = {}
        for outcome in outcomes:
            if outcome.digest is not None:
                digests[outcome.path] = outcome.digest
            elif outcome.error is not None:
                errors.append(ScanError(path=outcome.path, message=outcome.error.reason))

        groups: list[DuplicateGroup] = []
        for bucket in buckets.values():
            groups.extend(self._group_bucket(bucket, digests))

        groups.sort(key=lambda g: (-g.reclaimable_size, g.digest))

        return DuplicateScanResult(
            root=str(root_path),
            groups=tuple(groups),
            errors=tuple(errors),
            files_scanned=len(records),
            files_hashed=len(digests),
            min_size=min_size,
        )

    def collect_files(
        self,
        root: Path,
        min_size: int,
        errors: list[ScanError],
        cancel_event: threading.Event | None = None,
        exclude: Sequence[str | Path] = (),
    ) -> list[FileRecord]:
        """Walk ``root`` and record every regular file of at least ``min_size`` bytes.

        Symbolic links are neither followed nor recorded, which rules out
        cycles and double counting. Directories under ``exclude`` are pruned.
        Unreadable directories and entries are appended to ``errors``.
        """
        excluded = {Path(p).resolve(strict=False) for p in exclude}
        if _under_any(root, excluded):
            logger.debug("Scan root %s is excluded", root)
            return []

        def _on_walk_error(error: OSError) -> None:
            logger.warning("Cannot read directory %s: %s", error.filename, error.strerror)
            errors.append(ScanError(path=str(error.filename), message=error.strerror or str(error)))

        records: list[FileRecord] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_walk_error):
            if _is_cancelled(cancel_event):
                break
            if excluded:
                dirnames[:] = [d for d in dirnames if not _under_any(Path(dirpath, d), excluded)]
            dirnames.sort()
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                try:
                    st = os.lstat(path)
                except OSError as e:
                    errors.append(ScanError(path=path, message=e.strerror or str(e)))
                    continue
                if not stat.S_ISREG(st.st_mode) or st.st_size < min_size:
                    continue
                records.append(FileRecord(path=path, size=st.st_size, mtime=st.st_mtime))

        return records

    @staticmethod
    def bucket_by_size(records: list[FileRecord]) -> dict[int, list[FileRecord]]:
        """Partition records by exact size, dropping singleton buckets.

        A file whose size is unique cannot have a duplicate, so it is
        discarded here without ever being read.
        """
        buckets: dict[int, list[FileRecord]] = defaultdict(list)
        for record in records:
            buckets[record.size].append(record)
        return {size: bucket for size, bucket in buckets.items() if len(bucket) > 1}

    @staticmethod
    def _group_bucket(bucket: list[FileRecord], digests: dict[str, str]) -> list[DuplicateGroup]:
        """Split a size bucket into duplicate groups by digest."""
        by_digest: dict[str, list[FileRecord]] = defaultdict(list)
        for record in bucket:
            digest = digests.get(record.path)
            if digest is None:
                continue
            by_digest[digest].append(
                FileRecord(path=record.path, size=record.size, mtime=record.mtime, digest=digest)
            )
        return [
            DuplicateGroup.from_records(digest, members)
            for digest, members in by_digest.items()
            if len(members) > 1
        ]

    @staticmethod
    def _cancelled(
        root: Path, errors: list[ScanError], files_scanned: int, min_size: int
    ) -> DuplicateScanResult:
        logger.info("Duplicate scan of %s cancelled", root)
        return DuplicateScanResult(
            root=str(root),
            errors=tuple(errors),
            files_scanned=files_scanned,
            cancelled=True,
            min_size=min_size,
        )


def _is_cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _under_any(path: Path, roots: set[Path]) -> bool:
    resolved = path.resolve(strict=False)
    return resolved in roots or any(parent in roots for parent in resolved.parents)
