"""Duplicate detection models.

This module defines the ephemeral data structures of one duplicate scan:
file records, duplicate groups with their canonical keep, per-path scan
errors and the overall scan result. None of these are persisted.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FileRecord:
    """A regular file discovered during a scan.

    Attributes:
        path: Absolute file path.
        size: Size in bytes.
        mtime: Last modification time (seconds since the epoch).
        digest: Content digest, None until the file is hashed.
    """

    path: str
    size: int
    mtime: float
    digest: str | None = None

    def __post_init__(self) -> None:
        """Validate record data after initialization."""
        if not self.path:
            msg = "Path cannot be empty"
            raise ValueError(msg)
        if self.size < 0:
            msg = f"Size cannot be negative, got {self.size}"
            raise ValueError(msg)

    @property
    def keep_key(self) -> tuple[float, str]:
        """Sort key of the canonical-keep policy: oldest first, then path."""
        return (self.mtime, self.path)


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """Files sharing identical content.

    ``members[0]`` is the canonical keep; the remaining members are
    removal candidates, ordered by (mtime, path).

    Attributes:
        digest: Content digest shared by every member.
        size: Size in bytes of each member.
        members: At least two records with identical size and digest.
    """

    digest: str
    size: int
    members: tuple[FileRecord, ...]

    def __post_init__(self) -> None:
        """Validate group invariants after initialization."""
        if len(self.members) < 2:
            msg = f"Duplicate group needs at least two members, got {len(self.members)}"
            raise ValueError(msg)
        for member in self.members:
            if member.size != self.size or member.digest != self.digest:
                msg = f"Member {member.path} does not match group size/digest"
                raise ValueError(msg)

    @classmethod
    def from_records(cls, digest: str, records: list[FileRecord]) -> "DuplicateGroup":
        """Build a group, ordering members so the canonical keep comes first."""
        ordered = tuple(sorted(records, key=lambda r: r.keep_key))
        return cls(digest=digest, size=ordered[0].size, members=ordered)

    @property
    def keep(self) -> FileRecord:
        """The member preserved in place."""
        return self.members[0]

    @property
    def removal_candidates(self) -> tuple[FileRecord, ...]:
        """Members that may be removed."""
        return self.members[1:]

    @property
    def reclaimable_size(self) -> int:
        """Bytes freed by removing every non-kept member."""
        return self.size * (len(self.members) - 1)


@dataclass(frozen=True, slots=True)
class ScanError:
    """A path that could not be examined during a scan.

    Attributes:
        path: Path that failed.
        message: Human-readable reason.
    """

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class DuplicateScanResult:
    """Outcome of a duplicate scan.

    Attributes:
        root: Directory that was scanned.
        groups: Duplicate groups, highest reclaimable size first.
        errors: Per-path failures collected during traversal and hashing.
        files_scanned: Regular files that passed the size filter.
        files_hashed: Files whose content was hashed.
        cancelled: True if the scan stopped early; groups are then empty.
        min_size: Size threshold the scan was run with.
    """

    root: str
    groups: tuple[DuplicateGroup, ...] = ()
    errors: tuple[ScanError, ...] = ()
    files_scanned: int = 0
    files_hashed: int = 0
    cancelled: bool = False
    min_size: int = 0

    @property
    def reclaimable_size(self) -> int:
        """Total bytes freed by removing every removal candidate."""
        return sum(group.reclaimable_size for group in self.groups)

    @property
    def duplicate_count(self) -> int:
        """Number of removal candidates across all groups."""
        return sum(len(group.removal_candidates) for group in self.groups)
