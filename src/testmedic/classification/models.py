"""Domain models for failure classification."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """What went wrong in a failing test."""

    TIMEOUT = "timeout"
    STRICT_MATCH_VIOLATION = "strict-match-violation"
    ASSERTION = "assertion"
    NOT_FOUND = "not-found"
    SELECTOR = "selector"
    NAVIGATION = "navigation"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ErrorCategory(str, Enum):
    """Coarse grouping used in reports."""

    TIMING = "TIMING"
    LOCATOR = "LOCATOR"
    VALIDATION = "VALIDATION"
    SELECTOR = "SELECTOR"
    NAVIGATION = "NAVIGATION"
    NETWORK = "NETWORK"
    UNKNOWN = "UNKNOWN"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ClassifiedError:
    """Categorized diagnosis of one test failure."""

    kind: ErrorKind
    category: ErrorCategory
    severity: Severity
    message: str
    hint: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "hint": self.hint,
            "context": dict(self.context),
        }
