"""Playwright results document parsing."""

from testmedic.results.models import FailureSummary, TestFailure, TestRecord
from testmedic.results.parser import ResultsJsonParser

__all__ = ["FailureSummary", "ResultsJsonParser", "TestFailure", "TestRecord"]
