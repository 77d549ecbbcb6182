"""Cleanup targets and orchestration.

This module locates cleanup candidates per category and runs previews and
recovery-backed cleanups through the RecoveryManager.
"""

from tidyctl.cleanup.orchestrator import (
    CleanupOrchestrator,
    CleanupOutcome,
    CleanupPlan,
    OutcomeStatus,
)
from tidyctl.cleanup.targets import CleanupCandidate, CleanupCategory, CleanupTarget

__all__ = [
    "CleanupCandidate",
    "CleanupCategory",
    "CleanupOrchestrator",
    "CleanupOutcome",
    "CleanupPlan",
    "CleanupTarget",
    "OutcomeStatus",
]
