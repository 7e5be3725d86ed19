"""Resilience helpers: backoff retry and timeouts."""

from testmedic.shared.infrastructure.resilience.retry import (
    AttemptOutcome,
    RetryConfig,
    RetryResult,
    with_backoff_async,
)
from testmedic.shared.infrastructure.resilience.timeout import with_timeout_async

__all__ = [
    "AttemptOutcome",
    "RetryConfig",
    "RetryResult",
    "with_backoff_async",
    "with_timeout_async",
]
