"""Cleanup categories and candidate location.

Each category knows its default search roots and which files under them
are candidates. Protected paths and excluded roots (the recovery store)
are never returned.
"""

import logging
import os
import re
import stat
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tidyctl.core.config import TidyConfig
from tidyctl.dedup.detector import DuplicateDetector
from tidyctl.dedup.models import ScanError
from tidyctl.recovery.protected import is_protected_path, is_within

logger = logging.getLogger(__name__)

# Directory names whose whole content is a build artifact.
BUILD_ARTIFACT_DIRS: frozenset[str] = frozenset(
    {
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".tox",
        "node_modules",
    }
)
BUILD_ARTIFACT_SUFFIXES: frozenset[str] = frozenset({".pyc", ".pyo"})

_LOG_NAME_RE = re.compile(r"\.log(\.\d+)?(\.gz)?$")

# Never descended into while locating candidates.
_SKIP_DIRS: frozenset[str] = frozenset({".git", ".hg", ".svn"})


class CleanupCategory(str, Enum):
    """Kinds of files a cleanup can target.

    Attributes:
        CACHE: Application caches.
        LOGS: Log files, including rotated and compressed ones.
        TEMP: User-owned files in the temp directories.
        BUILD_ARTIFACT: Bytecode, tool caches and dependency folders.
        DUPLICATE: Redundant copies found by the duplicate detector.
    """

    CACHE = "cache"
    LOGS = "logs"
    TEMP = "temp"
    BUILD_ARTIFACT = "build-artifact"
    DUPLICATE = "duplicate"

    @property
    def label(self) -> str:
        """Human-readable name."""
        return {
            CleanupCategory.CACHE: "Caches",
            CleanupCategory.LOGS: "Logs",
            CleanupCategory.TEMP: "Temporary files",
            CleanupCategory.BUILD_ARTIFACT: "Build artifacts",
            CleanupCategory.DUPLICATE: "Duplicates",
        }[self]

    @property
    def can_regenerate(self) -> bool:
        """Whether files of this category are trivially regenerable."""
        return self in (
            CleanupCategory.CACHE,
            CleanupCategory.TEMP,
            CleanupCategory.BUILD_ARTIFACT,
        )

    @property
    def config_key(self) -> str:
        """Field name of this category in the ``[roots]`` config table."""
        return self.value.replace("-", "_")

    def default_roots(self) -> tuple[Path, ...]:
        """Built-in search roots for this category."""
        home = Path.home()
        if self is CleanupCategory.CACHE:
            return (home / ".cache",)
        if self is CleanupCategory.LOGS:
            return (home / ".local" / "state", home / ".cache")
        if self is CleanupCategory.TEMP:
            return (Path("/tmp"), Path("/var/tmp"))
        return (Path.cwd(),)


@dataclass(frozen=True, slots=True)
class CleanupCandidate:
    """A file selected for cleanup.

    Attributes:
        path: Absolute file path.
        size: Size in bytes.
        mtime: Last modification time (seconds since the epoch).
        category: Category that selected the file.
    """

    path: str
    size: int
    mtime: float
    category: CleanupCategory


@dataclass(frozen=True, slots=True)
class CleanupTarget:
    """A category applied to a set of roots.

    Attributes:
        category: What to look for.
        roots: Directories to search.
        min_size: Files smaller than this many bytes are ignored.
        temp_min_age_hours: Minimum age of temp files.
        exclude: Directories whose content is never returned.
    """

    category: CleanupCategory
    roots: tuple[Path, ...]
    min_size: int = 0
    temp_min_age_hours: int = 24
    exclude: tuple[Path, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate target data after initialization."""
        if not self.roots:
            msg = f"Cleanup target {self.category.value} needs at least one root"
            raise ValueError(msg)
        if self.min_size < 0:
            msg = f"Minimum size cannot be negative, got {self.min_size}"
            raise ValueError(msg)

    @classmethod
    def for_category(
        cls,
        category: CleanupCategory,
        config: TidyConfig | None = None,
        paths: Sequence[str | Path] | None = None,
        min_size: int = 0,
    ) -> "CleanupTarget":
        """Build a target from explicit paths, configured roots or defaults.

        Args:
            category: Category to clean.
            config: User configuration with optional root overrides.
            paths: Explicit roots; take precedence over configuration.
            min_size: Minimum candidate size in bytes.
        """
        config = config or TidyConfig()
        if paths:
            roots = tuple(Path(p).expanduser().absolute() for p in paths)
        else:
            configured = getattr(config.roots, category.config_key)
            if configured:
                roots = tuple(Path(p).expanduser().absolute() for p in configured)
            else:
                roots = category.default_roots()
        return cls(
            category=category,
            roots=roots,
            min_size=min_size,
            temp_min_age_hours=config.temp_min_age_hours,
        )

    def excluding(self, *paths: Path) -> "CleanupTarget":
        """Copy of this target that never returns anything under ``paths``."""
        return CleanupTarget(
            category=self.category,
            roots=self.roots,
            min_size=self.min_size,
            temp_min_age_hours=self.temp_min_age_hours,
            exclude=(*self.exclude, *paths),
        )

    def locate(
        self, detector: DuplicateDetector
    ) -> tuple[list[CleanupCandidate], list[ScanError]]:
        """Find the candidates of this target.

        Missing roots are skipped. Duplicates of the same path reached
        through overlapping roots are returned once.

        Args:
            detector: Used by the duplicate category only.

        Returns:
            Tuple of (candidates, per-path errors).
        """
        errors: list[ScanError] = []
        found: dict[str, CleanupCandidate] = {}
        for root in self.roots:
            if not root.is_dir():
                logger.debug("Skipping missing root %s", root)
                continue
            if self.category is CleanupCategory.DUPLICATE:
                located = self._locate_duplicates(root, detector, errors)
            else:
                located = self._walk(root, errors)
            for candidate in located:
                if self.allows(candidate.path):
                    found.setdefault(candidate.path, candidate)

        return list(found.values()), errors

    def allows(self, path: str) -> bool:
        """Check that a path is neither protected nor excluded."""
        if is_protected_path(path):
            return False
        return not any(is_within(path, excluded) for excluded in self.exclude)

    def _locate_duplicates(
        self, root: Path, detector: DuplicateDetector, errors: list[ScanError]
    ) -> list[CleanupCandidate]:
        result = detector.scan(root, min_size=self.min_size, exclude=self.exclude)
        errors.extend(result.errors)
        return [
            CleanupCandidate(
                path=record.path,
                size=record.size,
                mtime=record.mtime,
                category=self.category,
            )
            for group in result.groups
            for record in group.removal_candidates
        ]

    def _walk(self, root: Path, errors: list[ScanError]) -> Iterable[CleanupCandidate]:
        def _on_walk_error(error: OSError) -> None:
            errors.append(
                ScanError(path=str(error.filename), message=error.strerror or str(error))
            )

        cutoff = time.time() - self.temp_min_age_hours * 3600
        uid = os.getuid()
        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_walk_error):
            dirnames[:] = sorted(
                d
                for d in dirnames
                if d not in _SKIP_DIRS
                and not any(is_within(os.path.join(dirpath, d), ex) for ex in self.exclude)
            )
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                try:
                    st = os.lstat(path)
                except OSError as e:
                    errors.append(ScanError(path=path, message=e.strerror or str(e)))
                    continue
                if not stat.S_ISREG(st.st_mode) or st.st_size < self.min_size:
                    continue
                if not self._matches(root, path, st, uid, cutoff):
                    continue
                yield CleanupCandidate(
                    path=path,
                    size=st.st_size,
                    mtime=st.st_mtime,
                    category=self.category,
                )

    def _matches(
        self, root: Path, path: str, st: os.stat_result, uid: int, cutoff: float
    ) -> bool:
        if self.category is CleanupCategory.CACHE:
            return True
        if self.category is CleanupCategory.LOGS:
            return bool(_LOG_NAME_RE.search(os.path.basename(path)))
        if self.category is CleanupCategory.TEMP:
            return st.st_uid == uid and st.st_mtime < cutoff
        if self.category is CleanupCategory.BUILD_ARTIFACT:
            return is_build_artifact(Path(path).relative_to(root))
        return False


def is_build_artifact(relative: Path) -> bool:
    """Check whether a path relative to its search root is a build artifact."""
    if relative.suffix in BUILD_ARTIFACT_SUFFIXES:
        return True
    return any(
        part in BUILD_ARTIFACT_DIRS or part.endswith(".egg-info") for part in relative.parts[:-1]
    )
