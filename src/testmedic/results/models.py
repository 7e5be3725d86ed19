"""Domain models for parsed test results."""

from __future__ import annotations

from dataclasses import dataclass, field

from testmedic.classification.models import ClassifiedError

FAILED_STATUSES = frozenset({"failed", "timedOut"})


@dataclass(frozen=True)
class TestRecord:
    """One test entry flattened out of a results document, any status."""

    __test__ = False  # not a pytest test class

    name: str
    status: str
    duration: float = 0.0
    error_message: str | None = None
    error_stack: str | None = None
    file: str | None = None

    @property
    def is_failed(self) -> bool:
        return self.status in FAILED_STATUSES


@dataclass(frozen=True)
class TestFailure:
    """A failed or timed-out test from a prior run, with its diagnosis."""

    __test__ = False

    test_name: str
    file_path: str
    error_message: str
    error_stack: str | None = None
    classified: ClassifiedError | None = None

    def to_dict(self) -> dict:
        return {
            "test_name": self.test_name,
            "file_path": self.file_path,
            "error_message": self.error_message,
            "error_stack": self.error_stack,
            "classified": self.classified.to_dict() if self.classified else None,
        }


@dataclass
class FailureSummary:
    """Aggregate counts, derived on demand from a list of failures."""

    total: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)
    by_severity: dict[str, int] = field(default_factory=dict)
    critical_count: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_kind": dict(self.by_kind),
            "by_severity": dict(self.by_severity),
            "critical_count": self.critical_count,
        }
