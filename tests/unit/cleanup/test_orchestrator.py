"""Unit tests for CleanupOrchestrator.

Runs previews and cleanups end to end against temporary trees and an
isolated recovery store.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from tidyctl.cleanup.orchestrator import CleanupOrchestrator, CleanupPlan, OutcomeStatus
from tidyctl.cleanup.targets import CleanupCategory, CleanupTarget
from tidyctl.core.config import TidyConfig
from tidyctl.dedup.detector import DuplicateDetector
from tidyctl.errors import IoFailure
from tidyctl.recovery.manager import RecoveryManager
from tidyctl.recovery.models import StageResult


@pytest.fixture
def orchestrator(manager: RecoveryManager) -> CleanupOrchestrator:
    """Orchestrator on an isolated store."""
    return CleanupOrchestrator(manager, DuplicateDetector(workers=2))


@pytest.fixture
def cache_dir(work_dir: Path, make_file: Callable[..., Path]) -> Path:
    """Cache root holding three files of 100, 200 and 300 bytes."""
    for name, size in (("a.bin", 100), ("b.bin", 200), ("sub/c.bin", 300)):
        make_file(work_dir / name, b"\0" * size)
    return work_dir


def _cache_target(root: Path) -> CleanupTarget:
    return CleanupTarget(category=CleanupCategory.CACHE, roots=(root,))


class TestPreview:
    """Tests for CleanupOrchestrator.preview."""

    def test_preview_has_no_side_effects(
        self, orchestrator: CleanupOrchestrator, cache_dir: Path
    ) -> None:
        """Previewing lists candidates and changes nothing."""
        before = sorted(p for p in cache_dir.rglob("*"))

        plan = orchestrator.preview(_cache_target(cache_dir))

        assert len(plan.candidates) == 3
        assert plan.total_size == 600
        assert sorted(p for p in cache_dir.rglob("*")) == before
        assert not orchestrator.manager.root.exists()

    def test_preview_excludes_recovery_store(
        self, tmp_path: Path, make_file: Callable[..., Path]
    ) -> None:
        """A target containing the recovery store never lists archived files."""
        root = tmp_path / "area"
        manager = RecoveryManager(root / "recovery", workers=1)
        orchestrator = CleanupOrchestrator(manager, DuplicateDetector(workers=1))
        make_file(root / "junk", "x")
        make_file(root / "recovery" / "archives" / "run" / "blob", "x")

        plan = orchestrator.preview(_cache_target(root))

        assert [Path(c.path).name for c in plan.candidates] == ["junk"]


class TestExecute:
    """Tests for CleanupOrchestrator.execute."""

    def test_execute_commits_one_manifest(
        self, orchestrator: CleanupOrchestrator, cache_dir: Path
    ) -> None:
        """A confirmed cleanup archives everything in one manifest."""
        outcome = orchestrator.execute(_cache_target(cache_dir), retention_days=30)

        assert outcome.status is OutcomeStatus.SUCCESS
        assert outcome.status.exit_code == 0
        manifest = outcome.manifest
        assert manifest is not None
        assert manifest.total_size == 600
        assert outcome.reclaimed_size == 600
        assert {item.category for item in manifest.items} == {"cache"}
        assert all(item.can_regenerate for item in manifest.items)
        assert all(item.source == "clean cache" for item in manifest.items)
        assert list(cache_dir.rglob("*.bin")) == []
        assert len(orchestrator.list_recoveries()) == 1

    def test_declined(self, orchestrator: CleanupOrchestrator, cache_dir: Path) -> None:
        """Refusing confirmation changes nothing."""
        seen: list[CleanupPlan] = []

        def _decline(plan: CleanupPlan) -> bool:
            seen.append(plan)
            return False

        outcome = orchestrator.execute(_cache_target(cache_dir), 30, _decline)

        assert outcome.status is OutcomeStatus.DECLINED
        assert outcome.manifest is None
        assert seen[0].total_size == 600
        assert len(list(cache_dir.rglob("*.bin"))) == 3
        assert orchestrator.list_recoveries() == []

    def test_nothing_to_do(self, orchestrator: CleanupOrchestrator, work_dir: Path) -> None:
        """An empty plan never asks for confirmation."""
        confirm = MagicMock(return_value=True)

        outcome = orchestrator.execute(_cache_target(work_dir), 30, confirm)

        assert outcome.status is OutcomeStatus.NOTHING_TO_DO
        confirm.assert_not_called()

    def test_failed_staging(self, cache_dir: Path) -> None:
        """An aborted batch maps to FAILED with exit code 1."""
        manager = MagicMock(spec=RecoveryManager)
        manager.root = cache_dir.parent / "recovery"
        manager.stage_and_delete.return_value = StageResult(
            manifest=None, error=IoFailure("/x", "boom")
        )
        orchestrator = CleanupOrchestrator(manager, DuplicateDetector(workers=1))

        outcome = orchestrator.execute(_cache_target(cache_dir), 30)

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.status.exit_code == 1
        assert outcome.reclaimed_size == 0
        kwargs = manager.stage_and_delete.call_args.kwargs
        assert kwargs == {"retention_days": 30, "can_regenerate": True}

    def test_duplicates_then_restore(
        self, orchestrator: CleanupOrchestrator, work_dir: Path, make_file: Callable[..., Path]
    ) -> None:
        """Cleaning duplicates keeps the oldest copy; restore brings the rest back."""
        keep = make_file(work_dir / "a.txt", "x" * 100, mtime=1_000)
        dup = make_file(work_dir / "b.txt", "x" * 100, mtime=2_000)
        target = CleanupTarget(category=CleanupCategory.DUPLICATE, roots=(work_dir,))

        outcome = orchestrator.execute(target, 30)

        assert outcome.status is OutcomeStatus.SUCCESS
        assert keep.exists()
        assert not dup.exists()
        assert outcome.manifest is not None
        assert outcome.manifest.items[0].can_regenerate is False

        result = orchestrator.restore_recovery(outcome.manifest.id)

        assert result.status.exit_code == 0
        assert dup.read_text() == "x" * 100
        assert orchestrator.show_recovery(outcome.manifest.id).fully_restored is True

    def test_archived_copy_never_kept_in_place_of_live_file(
        self, tmp_path: Path, make_file: Callable[..., Path]
    ) -> None:
        """An older archived blob inside the scanned tree is not a group member."""
        home = tmp_path / "home"
        manager = RecoveryManager(home / ".recovery", workers=1, copy_retries=0)
        orchestrator = CleanupOrchestrator(manager, DuplicateDetector(workers=1))
        old = make_file(home / "old.txt", "same content", mtime=1_000)
        staged = manager.stage_and_delete([old], "cache", "test", retention_days=1)
        assert staged.manifest is not None
        live = make_file(home / "live.txt", "same content", mtime=2_000)
        target = CleanupTarget(category=CleanupCategory.DUPLICATE, roots=(home,))

        outcome = orchestrator.execute(target, 30)
        orchestrator.purge_expired(datetime.now(UTC) + timedelta(days=2))

        assert outcome.status is OutcomeStatus.NOTHING_TO_DO
        assert live.read_text() == "same content"

    def test_scan_duplicates_skips_recovery_store(
        self, tmp_path: Path, make_file: Callable[..., Path]
    ) -> None:
        """Archived blobs are not reported as duplicates of live files."""
        root = tmp_path / "area"
        manager = RecoveryManager(root / "recovery", workers=1)
        orchestrator = CleanupOrchestrator(manager, DuplicateDetector(workers=1))
        make_file(root / "a.txt", "payload", mtime=2_000)
        make_file(root / "recovery" / "archives" / "run" / "blob", "payload", mtime=1_000)

        result = orchestrator.scan_duplicates(root)

        assert result.groups == ()
        assert result.files_scanned == 1


class TestRetention:
    """Tests for purge delegation."""

    def test_purge_expired(self, orchestrator: CleanupOrchestrator, cache_dir: Path) -> None:
        """Expired recoveries are purged."""
        outcome = orchestrator.execute(_cache_target(cache_dir), retention_days=1)
        assert outcome.manifest is not None

        later = datetime.now(UTC) + timedelta(days=2)

        assert orchestrator.purge_expired() == []
        assert orchestrator.purge_expired(later) == [outcome.manifest.id]
        assert orchestrator.list_recoveries() == []


class TestFromConfig:
    """Tests for CleanupOrchestrator.from_config."""

    def test_uses_configured_root(self, tmp_path: Path) -> None:
        """The recovery root comes from the settings."""
        config = TidyConfig(recovery_root=tmp_path / "store", hash_algorithm="blake2b")

        orchestrator = CleanupOrchestrator.from_config(config)

        assert orchestrator.manager.root == tmp_path / "store"
