"""Recovery store models.

This module defines the persisted JSON documents of the recovery store
(manifests and the index) as Pydantic models, and the in-memory result
types returned by archival, unlink and restore operations.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from tidyctl.errors import RecoveryError

INDEX_VERSION = 1


class RecoveryItem(BaseModel):
    """A single file staged into the recovery store.

    Immutable once created; the only transition is to ``restored=True``,
    done by creating an updated copy.

    Attributes:
        original_path: Absolute path the file was removed from.
        archive_path: Content-addressed location of the archived bytes.
        size: Size in bytes.
        checksum: SHA-256 hex digest of the content.
        category: Cleanup category label (cache, duplicate, ...).
        source: Free-text origin of the cleanup (e.g. the command).
        can_regenerate: Whether the data is trivially regenerable.
        restored: Terminal marker set once the file has been restored.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    original_path: Annotated[str, Field(min_length=1, description="Original absolute path")]
    archive_path: Annotated[str, Field(min_length=1, description="Archived copy location")]
    size: Annotated[int, Field(ge=0, description="Size in bytes")]
    checksum: Annotated[str, Field(min_length=64, max_length=64, description="SHA-256 hex")]
    category: Annotated[str, Field(description="Cleanup category label")]
    source: Annotated[str, Field(description="Origin of the cleanup")] = ""
    can_regenerate: Annotated[bool, Field(description="Trivially regenerable")] = False
    restored: Annotated[bool, Field(description="Restored to disk")] = False


class RecoveryManifest(BaseModel):
    """Durable record of one archived cleanup batch.

    Attributes:
        id: Run identifier (start time plus random suffix).
        timestamp: When the batch was committed.
        total_size: Sum of item sizes in bytes.
        items: Archived files in staging order.
        retention_until: Deadline after which the batch may be purged.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: Annotated[str, Field(min_length=1, description="Run identifier")]
    timestamp: Annotated[datetime, Field(description="Commit time (UTC)")]
    total_size: Annotated[int, Field(ge=0, description="Total staged bytes")]
    items: Annotated[tuple[RecoveryItem, ...], Field(description="Archived items")]
    retention_until: Annotated[datetime, Field(description="Retention deadline (UTC)")]

    @property
    def restored_count(self) -> int:
        """Number of items already restored."""
        return sum(1 for item in self.items if item.restored)

    @property
    def fully_restored(self) -> bool:
        """True when every item has been restored (eligible for early purge)."""
        return bool(self.items) and all(item.restored for item in self.items)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the retention deadline has passed."""
        return self.retention_until < (now or datetime.now(UTC))

    def summary(self) -> "RecoverySummary":
        """Build the lightweight index summary for this manifest."""
        return RecoverySummary(
            timestamp=self.timestamp,
            total_size=self.total_size,
            retention_until=self.retention_until,
            item_count=len(self.items),
            restored_count=self.restored_count,
        )


class RecoverySummary(BaseModel):
    """Index entry describing a manifest without loading its items."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    timestamp: datetime
    total_size: Annotated[int, Field(ge=0)]
    retention_until: datetime
    item_count: Annotated[int, Field(ge=0)] = 0
    restored_count: Annotated[int, Field(ge=0)] = 0

    @property
    def fully_restored(self) -> bool:
        """True when every item of the manifest has been restored."""
        return self.item_count > 0 and self.restored_count >= self.item_count

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the retention deadline has passed."""
        return self.retention_until < (now or datetime.now(UTC))


class IndexDocument(BaseModel):
    """On-disk shape of index.json."""

    model_config = ConfigDict(extra="forbid")

    version: int = INDEX_VERSION
    recoveries: Annotated[
        dict[str, RecoverySummary],
        Field(default_factory=dict, description="Manifest id to summary"),
    ]


def create_run_id(now: datetime | None = None) -> str:
    """Create a collision-resistant run identifier.

    The identifier starts with the run's start time so listings sort
    chronologically; the random suffix keeps concurrent runs apart.
    """
    started = now or datetime.now(UTC)
    return f"{started.strftime('%Y-%m-%d_%H-%M-%S')}-{uuid.uuid4().hex[:6]}"


def retention_deadline(start: datetime, retention_days: int) -> datetime:
    """Compute the retention deadline for a batch started at ``start``."""
    if retention_days < 0:
        msg = f"Retention days cannot be negative, got {retention_days}"
        raise ValueError(msg)
    return start + timedelta(days=retention_days)


class BatchStatus(str, Enum):
    """Outcome of a batch operation at the command boundary.

    Attributes:
        SUCCESS: Every item succeeded.
        PARTIAL: Some items failed but the batch is consistent.
        FAILED: Nothing durable changed.
    """

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        """Process exit code for this status."""
        return {BatchStatus.SUCCESS: 0, BatchStatus.FAILED: 1, BatchStatus.PARTIAL: 2}[self]


@dataclass(frozen=True, slots=True)
class DeletionResult:
    """Result of unlinking one original after its manifest was committed.

    Attributes:
        path: Original path.
        success: Whether the file was removed.
        error: Error if the unlink failed, None otherwise.
    """

    path: str
    success: bool
    error: RecoveryError | None = None


@dataclass(frozen=True, slots=True)
class StageResult:
    """Result of a ``stage_and_delete`` batch.

    Attributes:
        manifest: Committed manifest, None if the batch aborted.
        deletions: One result per original, empty if the batch aborted.
        error: The error that aborted staging, None on commit.
    """

    manifest: RecoveryManifest | None
    deletions: tuple[DeletionResult, ...] = ()
    error: RecoveryError | None = None

    @property
    def status(self) -> BatchStatus:
        """Summarize the batch as success, partial or failed."""
        if self.manifest is None:
            return BatchStatus.FAILED
        if any(not d.success for d in self.deletions):
            return BatchStatus.PARTIAL
        return BatchStatus.SUCCESS

    @property
    def deleted_size(self) -> int:
        """Bytes actually removed from their original locations."""
        if self.manifest is None:
            return 0
        deleted = {d.path for d in self.deletions if d.success}
        return sum(item.size for item in self.manifest.items if item.original_path in deleted)


class RestoreStatus(str, Enum):
    """Per-item outcome of a restore.

    Attributes:
        RESTORED: Bytes written back to the original path.
        CONFLICT: Original path held different content; written beside it.
        ALREADY_PRESENT: Original path already holds identical content.
        SKIPPED: Item was restored by an earlier run.
        FAILED: Item could not be restored.
    """

    RESTORED = "restored"
    CONFLICT = "conflict"
    ALREADY_PRESENT = "already_present"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RestoreItemResult:
    """Result of restoring a single item.

    Attributes:
        original_path: Where the file lived before cleanup.
        status: Outcome classification.
        restored_path: Where the bytes were written (conflict path on conflict).
        error: Error if the restore failed.
    """

    original_path: str
    status: RestoreStatus
    restored_path: str | None = None
    error: RecoveryError | None = None

    @property
    def success(self) -> bool:
        """Check if the item is on disk after this restore."""
        return self.status is not RestoreStatus.FAILED


@dataclass(frozen=True, slots=True)
class RestoreResult:
    """Result of restoring a whole manifest."""

    manifest_id: str
    items: tuple[RestoreItemResult, ...] = field(default_factory=tuple)

    @property
    def status(self) -> BatchStatus:
        """Summarize the restore as success, partial or failed."""
        if not self.items:
            return BatchStatus.SUCCESS
        failures = sum(1 for r in self.items if not r.success)
        if failures == 0:
            return BatchStatus.SUCCESS
        if failures == len(self.items):
            return BatchStatus.FAILED
        return BatchStatus.PARTIAL

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.manifest_id,
            "status": self.status.value,
            "items": [
                {
                    "original_path": r.original_path,
                    "status": r.status.value,
                    "restored_path": r.restored_path,
                    "error": str(r.error) if r.error is not None else None,
                }
                for r in self.items
            ],
        }
