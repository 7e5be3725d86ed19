"""
Healing backend interface.

The orchestrator only knows this capability interface; a concrete backend
decides which reasoning service answers and how a fix is re-verified.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from testmedic.healing.models import AnalysisResult, SanitizedTestData
from testmedic.healing.verification import VerificationResult


class HealingBackend(ABC):
    """Interface for reasoning backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key of this backend."""
        pass

    @abstractmethod
    async def analyze_failure(self, data: SanitizedTestData) -> AnalysisResult:
        """
        Ask for a corrected test.

        Returns:
            AnalysisResult; its code is None when the response held no usable block

        Raises:
            ApiTimeoutError: The last attempt did not answer within budget
            ApiFailureAfterRetries: Every attempt failed
        """
        pass

    @abstractmethod
    async def verify_fix(self, file_path: str | Path) -> VerificationResult:
        """Re-run the test file in isolation. Should NOT raise for a failing test."""
        pass
