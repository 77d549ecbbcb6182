"""Recovery archive: verified staging before deletion, restore and retention.

This module provides the RecoveryManager and the persisted manifest and
index models of the recovery store.
"""

from tidyctl.recovery.manager import RecoveryManager, conflict_path
from tidyctl.recovery.models import (
    BatchStatus,
    DeletionResult,
    RecoveryItem,
    RecoveryManifest,
    RecoverySummary,
    RestoreItemResult,
    RestoreResult,
    RestoreStatus,
    StageResult,
)
from tidyctl.recovery.protected import is_protected_path

__all__ = [
    "BatchStatus",
    "DeletionResult",
    "RecoveryItem",
    "RecoveryManager",
    "RecoveryManifest",
    "RecoverySummary",
    "RestoreItemResult",
    "RestoreResult",
    "RestoreStatus",
    "StageResult",
    "conflict_path",
    "is_protected_path",
]
