"""Retry with exponential backoff.

Each attempt reports an explicit AttemptOutcome instead of raising, and the
loop returns a RetryResult. Backoff scheduling and exhaustion can be tested
by injecting a fake sleep.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based): base ** attempt, capped."""
        return min(self.base_delay**attempt, self.max_delay)


@dataclass
class AttemptOutcome(Generic[T]):
    """Outcome of one attempt."""

    ok: bool
    value: T | None = None
    error: str | None = None
    retryable: bool = True

    @classmethod
    def success(cls, value: T) -> "AttemptOutcome[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, retryable: bool = True) -> "AttemptOutcome[T]":
        return cls(ok=False, error=error, retryable=retryable)


@dataclass
class RetryResult(Generic[T]):
    """Final result of a retried operation."""

    ok: bool
    value: T | None = None
    last_error: str | None = None
    attempts: int = 0
    delays: list[float] = field(default_factory=list)


async def with_backoff_async(
    attempt_fn: Callable[[int], Awaitable[AttemptOutcome[T]]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryResult[T]:
    """
    Run ``attempt_fn(attempt)`` until it succeeds or the attempt budget is spent.

    Args:
        attempt_fn: Coroutine function receiving the 1-based attempt number
        config: Attempt budget and backoff shape
        operation_name: Name used in log events
        sleep: Awaitable delay, injectable for tests

    Returns:
        RetryResult with the value of the first successful attempt, or the
        last error when every attempt failed
    """
    config = config or RetryConfig()
    delays: list[float] = []
    attempt = 1

    while True:
        outcome = await attempt_fn(attempt)
        if outcome.ok:
            if attempt > 1:
                logger.info("retry_succeeded", operation=operation_name, attempt=attempt)
            return RetryResult(ok=True, value=outcome.value, attempts=attempt, delays=delays)

        if not outcome.retryable or attempt >= config.max_attempts:
            logger.error(
                "retry_exhausted",
                operation=operation_name,
                attempt=attempt,
                retryable=outcome.retryable,
                error=outcome.error,
            )
            return RetryResult(ok=False, last_error=outcome.error, attempts=attempt, delays=delays)

        delay = config.delay_for(attempt)
        delays.append(delay)
        logger.warning(
            "retry_attempt",
            operation=operation_name,
            attempt=attempt,
            max_attempts=config.max_attempts,
            delay=f"{delay:.2f}s",
            error=outcome.error,
        )
        await sleep(delay)
        attempt += 1
