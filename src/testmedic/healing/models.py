"""Domain models for the healing pipeline."""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from testmedic.classification.models import ClassifiedError


class HealingState(str, Enum):
    """States a single test passes through during healing."""

    DISCOVERED = "discovered"
    CLASSIFIED = "classified"
    SKIPPED = "skipped"
    SANITIZED = "sanitized"
    ANALYZED = "analyzed"
    ANALYSIS_FAILED = "analysis_failed"
    EXTRACTION_FAILED = "extraction_failed"
    CODE_EXTRACTED = "code_extracted"
    VALIDATION_FAILED = "validation_failed"
    VALIDATED = "validated"
    BACKUP_FAILED = "backup_failed"
    BACKED_UP = "backed_up"
    APPLY_FAILED = "apply_failed"
    APPLIED = "applied"
    VERIFICATION_FAILED = "verification_failed"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"
    VERIFIED = "verified"
    FAILED = "failed"
    REPORTED = "reported"


class HealingOutcome(str, Enum):
    """Why a test ended where it did. Exactly one per HealingResult."""

    SKIPPED = "skipped"
    ANALYSIS_FAILED = "analysis_failed"
    EXTRACTION_FAILED = "extraction_failed"
    VALIDATION_FAILED = "validation_failed"
    BACKUP_FAILED = "backup_failed"
    APPLY_FAILED = "apply_failed"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"
    VERIFIED = "verified"
    ERROR = "error"


# Terminal state recorded for each outcome
OUTCOME_STATES: dict[HealingOutcome, HealingState] = {
    HealingOutcome.SKIPPED: HealingState.SKIPPED,
    HealingOutcome.ANALYSIS_FAILED: HealingState.ANALYSIS_FAILED,
    HealingOutcome.EXTRACTION_FAILED: HealingState.EXTRACTION_FAILED,
    HealingOutcome.VALIDATION_FAILED: HealingState.VALIDATION_FAILED,
    HealingOutcome.BACKUP_FAILED: HealingState.BACKUP_FAILED,
    HealingOutcome.APPLY_FAILED: HealingState.APPLY_FAILED,
    HealingOutcome.ROLLED_BACK: HealingState.ROLLED_BACK,
    HealingOutcome.ROLLBACK_FAILED: HealingState.ROLLBACK_FAILED,
    HealingOutcome.VERIFIED: HealingState.VERIFIED,
    HealingOutcome.ERROR: HealingState.FAILED,
}


@dataclass(frozen=True)
class SanitizedTestData:
    """Outbound payload for the reasoning service. Everything here is already sanitized."""

    __test__ = False

    error_type: str
    error_message: str
    test_code: str
    file_path: str
    language: str = "typescript"
    classification_context: str = ""


@dataclass(frozen=True)
class AnalysisResult:
    """What came back from the reasoning service."""

    code: str | None
    explanation: str
    confidence: int
    attempts: int = 1


@dataclass(frozen=True)
class Backup:
    """Snapshot of a test file taken before it is modified."""

    original_path: str
    backup_path: str
    created_at: float
    size: int = 0


@dataclass
class HealingResult:
    """Final verdict for one test."""

    test_name: str
    file_path: str
    error_summary: str
    outcome: HealingOutcome
    success: bool = False
    classification: ClassifiedError | None = None
    applied_fix: str | None = None
    reason: str = ""
    confidence: int | None = None
    backup_path: str | None = None
    attempts: int = 0
    injection_flagged: bool = False
    states: list[HealingState] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "test_name": self.test_name,
            "file_path": self.file_path,
            "error_summary": self.error_summary,
            "outcome": self.outcome.value,
            "success": self.success,
            "classification": self.classification.to_dict() if self.classification else None,
            "applied_fix": self.applied_fix,
            "reason": self.reason,
            "confidence": self.confidence,
            "backup_path": self.backup_path,
            "attempts": self.attempts,
            "injection_flagged": self.injection_flagged,
            "states": [s.value for s in self.states],
            "timestamp": self.timestamp,
            "duration_ms": self.duration_ms,
        }


@dataclass
class HealingSessionSummary:
    """One healing session: a HealingResult per failing test, in input order."""

    results: list[HealingResult] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def healed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def success_rate(self) -> float:
        return self.healed / self.total if self.total else 0.0

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return max(0.0, end - self.started_at)

    def by_outcome(self) -> dict[str, int]:
        counts = Counter(r.outcome.value for r in self.results)
        return {outcome.value: counts.get(outcome.value, 0) for outcome in HealingOutcome}

    def by_kind(self) -> dict[str, int]:
        return dict(Counter(r.classification.kind.value for r in self.results if r.classification))

    def by_severity(self) -> dict[str, int]:
        return dict(Counter(r.classification.severity.value for r in self.results if r.classification))

    def to_dict(self) -> dict:
        return {
            "started_at": datetime.fromtimestamp(self.started_at, timezone.utc).isoformat(),
            "finished_at": (
                datetime.fromtimestamp(self.finished_at, timezone.utc).isoformat() if self.finished_at else None
            ),
            "duration_seconds": round(self.duration_seconds, 3),
            "total": self.total,
            "healed": self.healed,
            "success_rate": round(self.success_rate, 4),
            "by_outcome": self.by_outcome(),
            "by_kind": self.by_kind(),
            "by_severity": self.by_severity(),
            "results": [r.to_dict() for r in self.results],
        }
