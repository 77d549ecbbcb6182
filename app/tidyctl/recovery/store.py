"""On-disk layout and durable file operations of the recovery store.

Layout under the recovery root::

    index.json
    index.lock
    manifests/<run_id>.json
    archives/<run_id>/<category>/<digest[:2]>/<digest>

Every write goes to a temporary file in the destination directory, is
fsynced, and is then renamed into place, so a crash never leaves a torn
file visible under its final name.
"""

import errno
import logging
import os
import shutil
import tempfile
from pathlib import Path

from tidyctl.core.paths import ensure_recovery_root
from tidyctl.dedup.hasher import CHUNK_SIZE, HashAlgorithm, hash_file
from tidyctl.errors import ChecksumMismatch, IoFailure

logger = logging.getLogger(__name__)

# errno values worth another attempt; anything else fails the copy at once.
_TRANSIENT_ERRNOS = frozenset({errno.EINTR, errno.EAGAIN, errno.EIO, errno.EBUSY, errno.ETIMEDOUT})


class ShortWriteError(OSError):
    """Fewer bytes reached the destination than the source holds."""

    def __init__(self, path: str | Path, written: int, expected: int) -> None:
        super().__init__(errno.EIO, f"short write: {written} of {expected} bytes", str(path))
        self.written = written
        self.expected = expected


def is_transient(error: OSError) -> bool:
    """Check whether an archive write failure may succeed on retry."""
    return isinstance(error, ShortWriteError) or error.errno in _TRANSIENT_ERRNOS


def fsync_dir(directory: Path) -> None:
    """Fsync a directory so a rename inside it is durable."""
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError as e:
        logger.debug("Cannot open %s for fsync: %s", directory, e)
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.debug("Directory fsync not supported for %s: %s", directory, e)
    finally:
        os.close(fd)


def copy_durable(source: Path, dest: Path) -> int:
    """Copy ``source`` to ``dest`` through a fsynced temporary file.

    Parent directories of ``dest`` are created. Mode and timestamps are
    copied from the source.

    Returns:
        Number of bytes written.

    Raises:
        ShortWriteError: If the byte count does not match the source size.
        OSError: On any other read or write failure.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    expected = os.stat(source).st_size
    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        written = 0
        with open(source, "rb") as rf, os.fdopen(fd, "wb") as wf:
            while chunk := rf.read(CHUNK_SIZE):
                written += wf.write(chunk)
            wf.flush()
            os.fsync(wf.fileno())
        if written != expected:
            raise ShortWriteError(dest, written, expected)
        shutil.copystat(source, tmp_path)
        os.replace(tmp_path, dest)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    fsync_dir(dest.parent)
    return written


def write_text_atomic(path: Path, content: str) -> None:
    """Write a text file atomically and durably.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(str(tmp_path), str(path))
    except BaseException:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise

    fsync_dir(path.parent)


class ArchiveStore:
    """Paths and content-addressed blob storage of one recovery root.

    Args:
        root: Recovery root directory.
        copy_retries: Extra attempts for transient archive write failures.
    """

    INDEX_FILENAME = "index.json"
    LOCK_FILENAME = "index.lock"

    def __init__(self, root: Path, *, copy_retries: int = 3) -> None:
        self._root = root
        self._copy_retries = copy_retries

    @property
    def root(self) -> Path:
        """Recovery root directory."""
        return self._root

    @property
    def manifests_dir(self) -> Path:
        """Directory holding one JSON manifest per run."""
        return self._root / "manifests"

    @property
    def archives_dir(self) -> Path:
        """Directory holding archived bytes grouped by run."""
        return self._root / "archives"

    @property
    def index_path(self) -> Path:
        """Path to index.json."""
        return self._root / self.INDEX_FILENAME

    @property
    def lock_path(self) -> Path:
        """Path to the index writer lock file."""
        return self._root / self.LOCK_FILENAME

    def initialize(self) -> None:
        """Create the directory structure.

        Raises:
            IoFailure: If a directory cannot be created.
        """
        try:
            ensure_recovery_root(self._root)
        except RuntimeError as e:
            raise IoFailure(self._root, str(e)) from e

    def manifest_path(self, manifest_id: str) -> Path:
        """Location of a run's manifest."""
        return self.manifests_dir / f"{manifest_id}.json"

    def run_dir(self, run_id: str) -> Path:
        """Archive directory of a run."""
        return self.archives_dir / run_id

    def blob_path(self, run_id: str, category: str, digest: str) -> Path:
        """Content-addressed location of archived bytes."""
        return self.run_dir(run_id) / category / digest[:2] / digest

    def free_space(self) -> int:
        """Free bytes on the volume holding the recovery root."""
        existing = self._root
        while not existing.exists() and existing != existing.parent:
            existing = existing.parent
        return shutil.disk_usage(existing).free

    def archive_file(
        self, source: Path, run_id: str, category: str, checksum: str
    ) -> tuple[Path, int]:
        """Copy a file into the store and verify the archived copy.

        Content already archived under the same run and category is
        verified and reused instead of copied again.

        Args:
            source: File to archive (left in place).
            run_id: Run the copy belongs to.
            category: Category label used in the archive path.
            checksum: SHA-256 of the source computed beforehand.

        Returns:
            Tuple of (archived path, archived size).

        Raises:
            IoFailure: If the copy fails permanently or exhausts its retries.
            ChecksumMismatch: If the archived bytes differ from ``checksum``.
        """
        blob = self.blob_path(run_id, category, checksum)
        if blob.exists():
            self.verify(blob, checksum, source=source)
            return blob, blob.stat().st_size

        attempts = self._copy_retries + 1
        written = 0
        for attempt in range(1, attempts + 1):
            try:
                written = copy_durable(source, blob)
                break
            except OSError as e:
                reason = e.strerror or str(e)
                if not is_transient(e) or attempt == attempts:
                    raise IoFailure(source, f"archive copy failed: {reason}") from e
                logger.warning(
                    "Transient failure archiving %s (attempt %d/%d): %s",
                    source,
                    attempt,
                    attempts,
                    reason,
                )

        self.verify(blob, checksum, source=source)
        return blob, written

    @staticmethod
    def verify(blob: Path, checksum: str, *, source: Path | None = None) -> None:
        """Re-read archived bytes and compare them to ``checksum``.

        Raises:
            IoFailure: If the blob cannot be read.
            ChecksumMismatch: If the digest differs.
        """
        actual = hash_file(blob, HashAlgorithm.SHA256)
        if actual != checksum:
            raise ChecksumMismatch(source or blob, checksum, actual)

    def remove_run(self, run_id: str) -> None:
        """Delete a run's archived bytes. Missing directories are ignored."""
        run_dir = self.run_dir(run_id)
        if run_dir.exists():
            shutil.rmtree(run_dir)

    def remove_manifest(self, manifest_id: str) -> None:
        """Delete a run's manifest file. A missing file is ignored."""
        self.manifest_path(manifest_id).unlink(missing_ok=True)
