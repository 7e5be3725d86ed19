"""
Domain exceptions for TestMedic.

All application errors inherit from TestMedicError. Errors raised inside a
single test's healing run carry the terminal outcome they map to, so the
orchestrator can convert any of them into one HealingResult.
"""


class TestMedicError(Exception):
    """Base class for all TestMedic exceptions."""

    __test__ = False  # not a pytest test class

    outcome: str = "error"

    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(TestMedicError):
    """Raised when configuration is invalid or corrupt."""

    pass


class PromptInjectionFlagged(TestMedicError):
    """Raised when policy says a flagged injection attempt must abort the test."""

    outcome = "validation_failed"


class ApiTimeoutError(TestMedicError):
    """Raised when the reasoning service does not answer within budget."""

    outcome = "analysis_failed"

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Operation '{operation}' timed out after {timeout_seconds}s",
            {"operation": operation, "timeout_seconds": timeout_seconds},
        )


class ApiFailureAfterRetries(TestMedicError):
    """Raised when every attempt against the reasoning service failed."""

    outcome = "analysis_failed"

    def __init__(self, operation: str, attempts: int, last_error: str):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Operation '{operation}' failed after {attempts} attempts: {last_error}",
            {"operation": operation, "attempts": attempts},
        )


class CodeExtractionFailure(TestMedicError):
    """Raised when the model response holds no usable code block."""

    outcome = "extraction_failed"


class CodeValidationFailure(TestMedicError):
    """Raised when generated code is dangerous or malformed. Nothing is written."""

    outcome = "validation_failed"


class BackupFailure(TestMedicError):
    """Raised when the pre-write backup could not be created and verified."""

    outcome = "backup_failed"


class WriteVerificationFailure(TestMedicError):
    """Raised when the staged write does not read back byte-identical."""

    outcome = "apply_failed"


class TestVerificationFailure(TestMedicError):
    """Raised when the re-run of a patched test does not pass."""

    outcome = "rolled_back"


class RollbackFailure(TestMedicError):
    """Raised when restoring a file from its backup failed."""

    outcome = "rollback_failed"
