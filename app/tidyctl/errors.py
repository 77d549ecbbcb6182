"""Typed errors for hashing, archival and restore.

Batch operations (scans, staging, unlinks, restores) never let these
escape: they are caught at the batch boundary and carried inside result
objects. Single lookups such as loading a manifest raise them directly.
"""

from pathlib import Path


class RecoveryError(Exception):
    """Base exception for recovery store errors."""


class IoFailure(RecoveryError):
    """Read, write or copy failure on a specific path."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"I/O failure on {self.path}: {reason}")


class ChecksumMismatch(RecoveryError):
    """Archived copy does not match its source."""

    def __init__(self, path: str | Path, expected: str, actual: str) -> None:
        self.path = str(path)
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {self.path}: expected {expected[:12]}, got {actual[:12]}"
        )


class ManifestCorrupt(RecoveryError):
    """Durable manifest failed to parse or validate."""

    def __init__(self, manifest_id: str, reason: str) -> None:
        self.manifest_id = manifest_id
        self.reason = reason
        super().__init__(f"Recovery manifest {manifest_id} is corrupt: {reason}")


class InsufficientSpace(RecoveryError):
    """Recovery store lacks capacity for staging."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient space in recovery store: need {required} bytes, {available} available"
        )


class RecoveryNotFound(RecoveryError):
    """Restore/show requested for an unknown manifest."""

    def __init__(self, manifest_id: str) -> None:
        self.manifest_id = manifest_id
        super().__init__(f"Recovery not found: {manifest_id}")


class ProtectedPathError(RecoveryError):
    """Candidate is protected and must never be staged or deleted."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        super().__init__(f"Protected path cannot be cleaned: {self.path}")
