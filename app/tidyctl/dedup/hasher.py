"""Streaming content hashing.

Digests are computed incrementally in fixed-size chunks, so memory use
does not depend on file size. The same primitive groups duplicates and
addresses archived copies in the recovery store.
"""

import hashlib
import logging
import os
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from tidyctl.errors import IoFailure

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# Upper bound for the default pool; hashing is I/O bound past this point.
_MAX_DEFAULT_WORKERS = 32


class HashAlgorithm(str, Enum):
    """Available content digest algorithms.

    Both are cryptographically strong; collisions are treated as
    negligible and are never verified by byte comparison.

    Attributes:
        SHA256: SHA-256, 64 hex characters. Used for archive checksums.
        BLAKE2B: BLAKE2b, 128 hex characters. Faster on 64-bit CPUs.
    """

    SHA256 = "sha256"
    BLAKE2B = "blake2b"

    def new(self) -> "hashlib._Hash":
        """Create a fresh hash object for this algorithm."""
        return hashlib.new(self.value)


@dataclass(frozen=True, slots=True)
class HashOutcome:
    """Digest of one file, or the error that prevented it.

    Attributes:
        path: File that was hashed.
        digest: Hex digest, None on failure.
        error: Failure for this specific path, None on success.
    """

    path: str
    digest: str | None = None
    error: IoFailure | None = None

    @property
    def success(self) -> bool:
        """Check if the file was hashed."""
        return self.digest is not None


def default_workers() -> int:
    """Worker count near the number of CPU cores."""
    return max(1, min(os.cpu_count() or 1, _MAX_DEFAULT_WORKERS))


def hash_stream(
    stream: BinaryIO,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    chunk_size: int = CHUNK_SIZE,
) -> str:
    """Hash a binary stream to a hex digest, reading it in chunks."""
    hasher = algorithm.new()
    while chunk := stream.read(chunk_size):
        hasher.update(chunk)
    return hasher.hexdigest()


def hash_file(
    path: str | Path,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    chunk_size: int = CHUNK_SIZE,
) -> str:
    """Hash a file's content.

    Args:
        path: File to hash.
        algorithm: Digest algorithm.
        chunk_size: Bytes read per iteration.

    Returns:
        Hex digest of the file content.

    Raises:
        IoFailure: If the file cannot be opened or read.
    """
    try:
        with open(path, "rb") as f:
            return hash_stream(f, algorithm, chunk_size)
    except OSError as e:
        raise IoFailure(path, e.strerror or str(e)) from e


def hash_files(
    paths: Iterable[str],
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    *,
    workers: int | None = None,
    cancel_event: threading.Event | None = None,
) -> list[HashOutcome]:
    """Hash many files on a bounded thread pool.

    A failure on one path is recorded in its outcome and never affects
    the others. When ``cancel_event`` is set, queued files are dropped and
    only outcomes completed so far are returned.

    Args:
        paths: Files to hash.
        algorithm: Digest algorithm.
        workers: Pool size. Defaults to :func:`default_workers`.
        cancel_event: Optional event that stops the batch early.

    Returns:
        Outcomes in input order (truncated to completed files if cancelled).
    """
    path_list = list(paths)
    if not path_list:
        return []

    def _hash_one(path: str) -> HashOutcome | None:
        if cancel_event is not None and cancel_event.is_set():
            return None
        try:
            return HashOutcome(path=path, digest=hash_file(path, algorithm))
        except IoFailure as e:
            logger.warning("Cannot hash %s: %s", path, e.reason)
            return HashOutcome(path=path, error=e)

    pool_size = workers or default_workers()
    with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="tidyctl-hash") as executor:
        futures: list[Future[HashOutcome | None]] = [
            executor.submit(_hash_one, path) for path in path_list
        ]
        outcomes: list[HashOutcome] = []
        for future in futures:
            if cancel_event is not None and cancel_event.is_set():
                for pending in futures:
                    pending.cancel()
                break
            outcome = future.result()
            if outcome is not None:
                outcomes.append(outcome)

    return outcomes
