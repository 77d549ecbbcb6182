"""Cleanup orchestration.

Sequences a cleanup: locate candidates for a target, build a plan, ask
for confirmation, then hand the candidates to the recovery manager. The
orchestrator holds no state of its own and never deletes anything itself.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from tidyctl.cleanup.targets import CleanupCandidate, CleanupTarget
from tidyctl.core.config import TidyConfig
from tidyctl.dedup.detector import DuplicateDetector
from tidyctl.dedup.hasher import HashAlgorithm
from tidyctl.dedup.models import DuplicateScanResult, ScanError
from tidyctl.recovery.manager import RecoveryManager
from tidyctl.recovery.models import (
    BatchStatus,
    RecoveryManifest,
    RecoverySummary,
    RestoreResult,
    StageResult,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CleanupPlan:
    """What a cleanup would remove.

    Attributes:
        target: The target the plan was built for.
        candidates: Files that would be archived and deleted.
        errors: Paths that could not be examined.
    """

    target: CleanupTarget
    candidates: tuple[CleanupCandidate, ...] = ()
    errors: tuple[ScanError, ...] = ()

    @property
    def total_size(self) -> int:
        """Bytes the cleanup would reclaim."""
        return sum(c.size for c in self.candidates)

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to clean."""
        return not self.candidates

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "target": self.target.category.value,
            "roots": [str(root) for root in self.target.roots],
            "total_size": self.total_size,
            "candidates": [
                {"path": c.path, "size": c.size, "mtime": c.mtime} for c in self.candidates
            ],
            "errors": [{"path": e.path, "message": e.message} for e in self.errors],
        }


class OutcomeStatus(str, Enum):
    """How a cleanup execution ended.

    Attributes:
        NOTHING_TO_DO: The plan was empty.
        DECLINED: Confirmation was refused; nothing changed.
        SUCCESS: Every candidate was archived and deleted.
        PARTIAL: Archived, but some originals could not be deleted.
        FAILED: Staging aborted; nothing changed.
    """

    NOTHING_TO_DO = "nothing-to-do"
    DECLINED = "declined"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        """Process exit code for this status."""
        if self is OutcomeStatus.FAILED:
            return 1
        if self is OutcomeStatus.PARTIAL:
            return 2
        return 0


@dataclass(frozen=True, slots=True)
class CleanupOutcome:
    """Result of executing a cleanup.

    Attributes:
        plan: The plan that was executed (or declined).
        status: Overall outcome.
        stage: Recovery manager result, None if staging never started.
    """

    plan: CleanupPlan
    status: OutcomeStatus
    stage: StageResult | None = None

    @property
    def manifest(self) -> RecoveryManifest | None:
        """Committed manifest, if any."""
        return self.stage.manifest if self.stage is not None else None

    @property
    def reclaimed_size(self) -> int:
        """Bytes actually removed from their original locations."""
        return self.stage.deleted_size if self.stage is not None else 0

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization.

        ``recovery_id`` is the id to pass to ``tidyctl recover restore``; it
        is None when nothing was committed.
        """
        stage = self.stage
        manifest = self.manifest
        return {
            "status": self.status.value,
            "recovery_id": manifest.id if manifest is not None else None,
            "reclaimed_size": self.reclaimed_size,
            "retention_until": (
                manifest.retention_until.isoformat() if manifest is not None else None
            ),
            "error": str(stage.error) if stage is not None and stage.error is not None else None,
            "deletions": [
                {
                    "path": d.path,
                    "deleted": d.success,
                    "error": str(d.error) if d.error is not None else None,
                }
                for d in (stage.deletions if stage is not None else ())
            ],
            "plan": self.plan.to_dict(),
        }


_STATUS_FROM_BATCH = {
    BatchStatus.SUCCESS: OutcomeStatus.SUCCESS,
    BatchStatus.PARTIAL: OutcomeStatus.PARTIAL,
    BatchStatus.FAILED: OutcomeStatus.FAILED,
}


class CleanupOrchestrator:
    """Runs previews and cleanups on top of the recovery manager.

    Args:
        manager: Recovery manager that archives and deletes.
        detector: Duplicate detector used for scans and the duplicate category.
    """

    def __init__(self, manager: RecoveryManager, detector: DuplicateDetector) -> None:
        self._manager = manager
        self._detector = detector

    @classmethod
    def from_config(cls, config: TidyConfig) -> "CleanupOrchestrator":
        """Create an orchestrator with manager and detector built from settings."""
        detector = DuplicateDetector(
            algorithm=HashAlgorithm(config.hash_algorithm),
            workers=config.workers,
        )
        return cls(RecoveryManager.from_config(config), detector)

    @property
    def manager(self) -> RecoveryManager:
        """Underlying recovery manager."""
        return self._manager

    def scan_duplicates(
        self,
        path: str | Path,
        min_size: int = 0,
        cancel_event: threading.Event | None = None,
    ) -> DuplicateScanResult:
        """Scan a directory for duplicates without changing anything.

        The recovery root is never scanned, so archived copies are not
        reported as duplicates of the files they came from.
        """
        return self._detector.scan(
            path,
            min_size=min_size,
            cancel_event=cancel_event,
            exclude=(self._manager.root,),
        )

    def preview(self, target: CleanupTarget) -> CleanupPlan:
        """Build the plan for a target. Has no side effects."""
        scoped = target.excluding(self._manager.root)
        candidates, errors = scoped.locate(self._detector)
        logger.debug(
            "Preview of %s: %d candidate(s), %d error(s)",
            target.category.value,
            len(candidates),
            len(errors),
        )
        return CleanupPlan(target=target, candidates=tuple(candidates), errors=tuple(errors))

    def execute(
        self,
        target: CleanupTarget,
        retention_days: int,
        confirm: Callable[[CleanupPlan], bool] | None = None,
        *,
        source: str = "",
    ) -> CleanupOutcome:
        """Archive and delete the candidates of a target.

        Args:
            target: What to clean.
            retention_days: Days the archived files stay restorable.
            confirm: Called with the plan; returning False cancels the run.
                None means confirmed.
            source: Free-text origin recorded in the manifest.

        Returns:
            CleanupOutcome describing what happened.
        """
        plan = self.preview(target)
        return self.execute_plan(plan, retention_days, confirm, source=source)

    def execute_plan(
        self,
        plan: CleanupPlan,
        retention_days: int,
        confirm: Callable[[CleanupPlan], bool] | None = None,
        *,
        source: str = "",
    ) -> CleanupOutcome:
        """Execute an already built plan (see :meth:`execute`)."""
        if plan.is_empty:
            return CleanupOutcome(plan=plan, status=OutcomeStatus.NOTHING_TO_DO)
        if confirm is not None and not confirm(plan):
            logger.info("Cleanup of %s declined", plan.target.category.value)
            return CleanupOutcome(plan=plan, status=OutcomeStatus.DECLINED)

        category = plan.target.category
        stage = self._manager.stage_and_delete(
            [c.path for c in plan.candidates],
            category.value,
            source or f"clean {category.value}",
            retention_days=retention_days,
            can_regenerate=category.can_regenerate,
        )
        return CleanupOutcome(plan=plan, status=_STATUS_FROM_BATCH[stage.status], stage=stage)

    def list_recoveries(self) -> list[tuple[str, RecoverySummary]]:
        """List recoveries, newest first."""
        return self._manager.list_recoveries()

    def show_recovery(self, manifest_id: str) -> RecoveryManifest:
        """Load one recovery manifest."""
        return self._manager.load_manifest(manifest_id)

    def restore_recovery(self, manifest_id: str) -> RestoreResult:
        """Restore every item of a recovery manifest."""
        return self._manager.restore(manifest_id)

    def purge_expired(
        self, now: datetime | None = None, *, include_restored: bool = False
    ) -> list[str]:
        """Purge recoveries past retention."""
        return self._manager.purge_expired(now, include_restored=include_restored)
