"""Recovery index persistence.

This module provides the RecoveryIndex class, which keeps the summary of
every manifest in index.json so listings never load full manifests.
Writers are serialized by an in-process lock plus an advisory file lock,
and every write reloads the file under the lock before mutating it.
"""

import fcntl
import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from tidyctl.errors import ManifestCorrupt
from tidyctl.recovery.models import IndexDocument, RecoverySummary
from tidyctl.recovery.store import write_text_atomic

logger = logging.getLogger(__name__)

INDEX_ID = "index"


@contextmanager
def _file_lock(lock_path: Path) -> Iterator[None]:
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a") as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class RecoveryIndex:
    """Summaries of all manifests, keyed by manifest id.

    Args:
        index_path: Location of index.json.
        lock_path: Location of the advisory writer lock file.
    """

    def __init__(self, index_path: Path, lock_path: Path) -> None:
        self._index_path = index_path
        self._lock_path = lock_path
        self._entries: dict[str, RecoverySummary] = {}
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Location of index.json."""
        return self._index_path

    def load(self) -> bool:
        """Load the index from disk.

        Returns:
            True if the file existed and was loaded, False if it is missing
            (the in-memory index is then empty).

        Raises:
            ManifestCorrupt: If the file exists but cannot be parsed.
        """
        with self._lock:
            if not self._index_path.exists():
                self._entries = {}
                return False
            self._entries = self._read()
            return True

    def entries(self) -> dict[str, RecoverySummary]:
        """Snapshot of the loaded entries."""
        with self._lock:
            return dict(self._entries)

    def get(self, manifest_id: str) -> RecoverySummary | None:
        """Look up the summary of a manifest."""
        with self._lock:
            return self._entries.get(manifest_id)

    def __contains__(self, manifest_id: object) -> bool:
        with self._lock:
            return manifest_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @contextmanager
    def transaction(self, *, fresh: bool = False) -> Iterator[dict[str, RecoverySummary]]:
        """Mutate the index under the writer lock.

        The on-disk index is reloaded first so concurrent writers are never
        overwritten. Yields a mutable copy of the entries; it is persisted
        atomically when the block exits normally and discarded if it raises.

        Args:
            fresh: Start from an empty mapping instead of the file contents.

        Raises:
            ManifestCorrupt: If the file cannot be parsed (only without ``fresh``).
            OSError: If the index cannot be written.
        """
        with self._lock, _file_lock(self._lock_path):
            if fresh or not self._index_path.exists():
                current: dict[str, RecoverySummary] = {}
            else:
                current = self._read()
            working = dict(current)
            yield working
            self._persist(working)
            self._entries = working

    def _read(self) -> dict[str, RecoverySummary]:
        try:
            raw = self._index_path.read_text(encoding="utf-8")
            document = IndexDocument.model_validate_json(raw)
        except OSError as e:
            raise ManifestCorrupt(INDEX_ID, e.strerror or str(e)) from e
        except ValidationError as e:
            raise ManifestCorrupt(INDEX_ID, f"{e.error_count()} validation error(s)") from e
        return dict(document.recoveries)

    def _persist(self, entries: dict[str, RecoverySummary]) -> None:
        document = IndexDocument(recoveries=dict(sorted(entries.items())))
        payload = json.dumps(document.model_dump(mode="json"), indent=2)
        write_text_atomic(self._index_path, payload + "\n")
        logger.debug("Wrote recovery index with %d entries", len(entries))
