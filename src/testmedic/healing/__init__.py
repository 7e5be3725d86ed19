"""Test healing pipeline: backends, backup/apply/verify and the orchestrator."""

from testmedic.healing.models import (
    AnalysisResult,
    Backup,
    HealingOutcome,
    HealingResult,
    HealingSessionSummary,
    HealingState,
    SanitizedTestData,
)
from testmedic.healing.orchestrator import HealerOrchestrator, save_session

__all__ = [
    "AnalysisResult",
    "Backup",
    "HealerOrchestrator",
    "HealingOutcome",
    "HealingResult",
    "HealingSessionSummary",
    "HealingState",
    "SanitizedTestData",
    "save_session",
]
