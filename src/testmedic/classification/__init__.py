"""Failure classification for Playwright test errors."""

from testmedic.classification.classifier import ErrorClassifier
from testmedic.classification.models import ClassifiedError, ErrorCategory, ErrorKind, Severity

__all__ = ["ClassifiedError", "ErrorCategory", "ErrorClassifier", "ErrorKind", "Severity"]
