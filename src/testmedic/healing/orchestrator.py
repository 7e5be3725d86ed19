"""Healer orchestrator: drives one failing test at a time through the healing states.

Flow per test::

    Discovered -> Classified -> (Skipped | Sanitized) -> Analyzed
      -> (ExtractionFailed | CodeExtracted) -> (ValidationFailed | Validated)
      -> BackedUp -> Applied -> (VerificationFailed -> RolledBack | Verified)
      -> Reported

Every test ends in exactly one HealingResult and one terminal audit entry.
No failure of one test stops the session. The test file is only ever in its
original state or a verified-passing state once its run is over.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from testmedic.audit.logger import AuditLogger
from testmedic.classification.classifier import ErrorClassifier
from testmedic.classification.models import ClassifiedError
from testmedic.healing.applier import FileApplier, write_atomic
from testmedic.healing.backends.base import HealingBackend
from testmedic.healing.backup import BackupManager
from testmedic.healing.models import (
    OUTCOME_STATES,
    Backup,
    HealingOutcome,
    HealingResult,
    HealingSessionSummary,
    HealingState,
    SanitizedTestData,
)
from testmedic.healing.syntax import check_syntax, language_for
from testmedic.results.models import TestFailure
from testmedic.security.validator import SecurityValidator
from testmedic.shared.domain.exceptions import (
    CodeExtractionFailure,
    CodeValidationFailure,
    PromptInjectionFlagged,
    RollbackFailure,
    TestMedicError,
    TestVerificationFailure,
)
from testmedic.shared.infrastructure.config import Settings
from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Audit actions
ERROR_CLASSIFIED = "ERROR_CLASSIFIED"
HEAL_SKIPPED = "HEAL_SKIPPED"
PROMPT_INJECTION_FLAGGED = "PROMPT_INJECTION_FLAGGED"
CODE_TRUNCATED = "CODE_TRUNCATED"
BACKUP_CREATED = "BACKUP_CREATED"
FILE_MODIFIED = "FILE_MODIFIED"
FILE_ROLLED_BACK = "FILE_ROLLED_BACK"
ROLLBACK_FAILED = "ROLLBACK_FAILED"
HEAL_SUCCESS = "HEAL_SUCCESS"
HEAL_FAILED = "HEAL_FAILED"

SESSION_FILE_PREFIX = "healing-session-"


@dataclass
class _Run:
    """Mutable bookkeeping for one test's trip through the states."""

    failure: TestFailure
    started: float = field(default_factory=time.perf_counter)
    states: list[HealingState] = field(default_factory=lambda: [HealingState.DISCOVERED])
    classified: ClassifiedError | None = None
    backup: Backup | None = None
    applied_fix: str | None = None
    applied: bool = False
    confidence: int | None = None
    attempts: int = 0
    injection_flagged: bool = False

    def enter(self, state: HealingState) -> None:
        self.states.append(state)
        logger.debug("healing_state", test=self.failure.test_name, state=state.value)


class HealerOrchestrator:
    """Sequential healing of failing tests with backup, apply, verify and rollback."""

    def __init__(
        self,
        backend: HealingBackend,
        audit: AuditLogger,
        backups: BackupManager,
        validator: SecurityValidator | None = None,
        classifier: ErrorClassifier | None = None,
        applier: FileApplier | None = None,
        abort_on_injection: bool = False,
    ) -> None:
        self._backend = backend
        self._audit = audit
        self._backups = backups
        self._validator = validator or SecurityValidator()
        self._classifier = classifier or ErrorClassifier()
        self._applier = applier or FileApplier()
        self._abort_on_injection = abort_on_injection

    @classmethod
    def from_settings(cls, settings: Settings, backend: HealingBackend) -> HealerOrchestrator:
        return cls(
            backend=backend,
            audit=AuditLogger(settings.audit_log_path),
            backups=BackupManager(
                settings.backup_dir,
                retention_days=settings.backup_retention_days,
                max_count=settings.backup_max_count,
            ),
            validator=SecurityValidator(
                max_prompt_length=settings.max_prompt_length,
                max_error_length=settings.max_error_length,
                max_code_size=settings.max_code_size,
            ),
            abort_on_injection=settings.abort_on_injection,
        )

    async def heal_all(self, failures: list[TestFailure]) -> HealingSessionSummary:
        """Heal each failure in input order; one result per failure."""
        summary = HealingSessionSummary()
        if not failures:
            logger.info("healing_session_empty")
            summary.finished_at = time.time()
            return summary

        self._backups.enforce_retention()
        logger.info("healing_session_started", failures=len(failures), backend=self._backend.name)

        for index, failure in enumerate(failures, start=1):
            logger.info("healing_test", index=index, total=len(failures), test=failure.test_name)
            summary.results.append(await self.heal_failure(failure))

        summary.finished_at = time.time()
        logger.info(
            "healing_session_finished",
            total=summary.total,
            healed=summary.healed,
            outcomes={k: v for k, v in summary.by_outcome().items() if v},
        )
        return summary

    async def heal_failure(self, failure: TestFailure) -> HealingResult:
        """Run one test through the state machine. Never raises."""
        run = _Run(failure=failure)
        try:
            return await self._run(run)
        except TestMedicError as e:
            if run.applied:
                return self._roll_back(run, str(e))
            return self._fail(run, HealingOutcome(e.outcome), str(e))
        except Exception as e:
            logger.exception("healing_unexpected_error", test=failure.test_name, error=str(e))
            if run.applied:
                return self._roll_back(run, f"Unexpected error after apply: {e}")
            return self._fail(run, HealingOutcome.ERROR, f"Unexpected error: {e}")

    async def _run(self, run: _Run) -> HealingResult:
        failure = run.failure
        path = Path(failure.file_path)

        run.classified = failure.classified or self._classifier.classify(failure.error_message, failure.error_stack)
        run.enter(HealingState.CLASSIFIED)
        self._audit.log_warning(
            ERROR_CLASSIFIED,
            path,
            f"{failure.test_name}: {run.classified.kind.value} ({run.classified.severity.value})",
        )

        if self._classifier.is_infrastructure_failure(failure.error_message, failure.error_stack):
            return self._skip(run, "Infrastructure failure; editing the test cannot fix it")

        original = self._read_test_file(path)

        raw_error = f"{failure.error_message}\n{failure.error_stack or ''}"
        if self._validator.detect_prompt_injection(raw_error):
            run.injection_flagged = True
            self._audit.log_warning(
                PROMPT_INJECTION_FLAGGED,
                path,
                "Error text contains instruction-like phrases"
                + ("; aborting by policy" if self._abort_on_injection else "; proceeding by policy"),
            )
            if self._abort_on_injection:
                raise PromptInjectionFlagged("Prompt injection flagged in error text", {"path": str(path)})

        data = self._sanitize(run, path, original)
        run.enter(HealingState.SANITIZED)

        analysis = await self._backend.analyze_failure(data)
        run.enter(HealingState.ANALYZED)
        run.attempts = analysis.attempts
        run.confidence = analysis.confidence

        if analysis.code is None:
            raise CodeExtractionFailure("No fenced code block with test code in the response")
        run.enter(HealingState.CODE_EXTRACTED)

        self._validate(analysis.code, original, path)
        run.enter(HealingState.VALIDATED)

        run.backup = self._backups.create(path)
        run.enter(HealingState.BACKED_UP)
        self._audit.log_success(BACKUP_CREATED, path, run.backup.backup_path)

        self._applier.apply(path, analysis.code)
        run.applied = True
        run.applied_fix = analysis.code
        run.enter(HealingState.APPLIED)
        self._audit.log_success(FILE_MODIFIED, path, f"confidence={analysis.confidence}")

        verification = await self._backend.verify_fix(path)
        if not verification.passed:
            run.enter(HealingState.VERIFICATION_FAILED)
            raise TestVerificationFailure(
                f"Verification failed: {verification.summary}",
                {"exit_code": verification.exit_code, "output_tail": verification.output_tail},
            )

        return self._succeed(run, verification.summary)

    def _read_test_file(self, path: Path) -> str:
        if not path.is_file():
            raise TestMedicError(f"Test file not found: {path}", {"path": str(path)})
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TestMedicError(f"Test file unreadable: {e}", {"path": str(path)}) from e
        if not content.strip():
            raise TestMedicError("Test file is empty", {"path": str(path)})
        return content

    def _sanitize(self, run: _Run, path: Path, original: str) -> SanitizedTestData:
        failure = run.failure
        code = original
        size = self._validator.validate_test_code_size(original)
        if not size.valid and size.truncated is not None:
            code = size.truncated
            self._audit.log_warning(CODE_TRUNCATED, path, size.error or "")

        context = ErrorClassifier.build_ai_context(run.classified)
        return SanitizedTestData(
            error_type=run.classified.kind.value,
            error_message=self._validator.sanitize_error_message(failure.error_message),
            test_code=self._validator.sanitize_source(code),
            file_path=path.name,
            language=language_for(path),
            classification_context=self._validator.sanitize_context(context),
        )

    def _validate(self, code: str, original: str, path: Path) -> None:
        issues: list[str] = []
        screening = self._validator.validate_generated_code(code)
        issues += [f"dangerous operation: {name}" for name in screening.issues]
        issues += check_syntax(code, path)
        leaked = self._validator.find_leaked_placeholders(code, original)
        issues += [f"sanitization placeholder leaked: {token}" for token in leaked]
        if code == original:
            issues.append("generated code is identical to the current file")
        if issues:
            raise CodeValidationFailure("; ".join(issues), {"issues": issues})

    def _roll_back(self, run: _Run, reason: str) -> HealingResult:
        path = run.failure.file_path
        try:
            self._backups.restore(run.backup)
        except RollbackFailure as e:
            self._audit.log_failure(ROLLBACK_FAILED, path, str(e))
            return self._fail(run, HealingOutcome.ROLLBACK_FAILED, f"{reason}; {e}", audited=True)

        run.applied = False
        self._audit.log_success(FILE_ROLLED_BACK, path, f"restored from {run.backup.backup_path}")
        return self._fail(run, HealingOutcome.ROLLED_BACK, f"{reason}; original restored")

    def _result(self, run: _Run, outcome: HealingOutcome, reason: str) -> HealingResult:
        run.enter(OUTCOME_STATES[outcome])
        run.enter(HealingState.REPORTED)
        failure = run.failure
        success = outcome is HealingOutcome.VERIFIED
        return HealingResult(
            test_name=failure.test_name,
            file_path=failure.file_path,
            error_summary=run.classified.message if run.classified else failure.error_message[:200],
            outcome=outcome,
            success=success,
            classification=run.classified,
            applied_fix=run.applied_fix if success else None,
            reason=reason,
            confidence=run.confidence,
            backup_path=run.backup.backup_path if run.backup else None,
            attempts=run.attempts,
            injection_flagged=run.injection_flagged,
            states=list(run.states),
            duration_ms=int((time.perf_counter() - run.started) * 1000),
        )

    def _skip(self, run: _Run, reason: str) -> HealingResult:
        self._audit.log_warning(HEAL_SKIPPED, run.failure.file_path, f"{run.failure.test_name}: {reason}")
        logger.info("healing_skipped", test=run.failure.test_name, reason=reason)
        return self._result(run, HealingOutcome.SKIPPED, reason)

    def _succeed(self, run: _Run, detail: str) -> HealingResult:
        self._audit.log_success(HEAL_SUCCESS, run.failure.file_path, f"{run.failure.test_name}: {detail}")
        logger.info("healing_verified", test=run.failure.test_name, confidence=run.confidence)
        return self._result(run, HealingOutcome.VERIFIED, detail)

    def _fail(self, run: _Run, outcome: HealingOutcome, reason: str, audited: bool = False) -> HealingResult:
        if not audited:
            self._audit.log_failure(
                HEAL_FAILED, run.failure.file_path, f"{run.failure.test_name}: {outcome.value}: {reason}"
            )
        logger.warning("healing_failed", test=run.failure.test_name, outcome=outcome.value, reason=reason)
        return self._result(run, outcome, reason)


def save_session(summary: HealingSessionSummary, session_dir: str | Path) -> Path:
    """Write the session summary as healing-session-<timestamp>.json."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    path = Path(session_dir) / f"{SESSION_FILE_PREFIX}{stamp}.json"
    write_atomic(path, json.dumps(summary.to_dict(), indent=2).encode("utf-8"))
    logger.info("healing_session_saved", path=str(path))
    return path
