"""
Backend driving any ILlmClient.

Owns the call discipline shared by all hosted models: rate-limiter admission
before every attempt, a per-attempt timeout and exponential backoff between
failed attempts. Provider request shaping stays in the client.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from testmedic.healing.backends.base import HealingBackend
from testmedic.healing.extraction import extract_code, score_confidence
from testmedic.healing.models import AnalysisResult, SanitizedTestData
from testmedic.healing.prompts import SYSTEM_PROMPT, build_healing_prompt
from testmedic.healing.verification import PlaywrightTestRunner, VerificationResult
from testmedic.llm.providers.base import ILlmClient
from testmedic.llm.rate_limiter import SlidingWindowRateLimiter
from testmedic.llm.types import LlmRequest, LlmResponse
from testmedic.shared.domain.exceptions import ApiFailureAfterRetries, ApiTimeoutError
from testmedic.shared.infrastructure.logging import get_logger
from testmedic.shared.infrastructure.resilience import (
    AttemptOutcome,
    RetryConfig,
    with_backoff_async,
    with_timeout_async,
)

logger = get_logger(__name__)


class LlmHealingBackend(HealingBackend):
    """HealingBackend over a hosted model client."""

    def __init__(
        self,
        client: ILlmClient,
        rate_limiter: SlidingWindowRateLimiter,
        runner: PlaywrightTestRunner,
        retry_config: RetryConfig | None = None,
        timeout_seconds: float = 60.0,
        model: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._rate_limiter = rate_limiter
        self._runner = runner
        self._retry_config = retry_config or RetryConfig()
        self._timeout_seconds = timeout_seconds
        self._model = model
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self._client.provider.value

    async def analyze_failure(self, data: SanitizedTestData) -> AnalysisResult:
        request = LlmRequest(
            system_prompt=SYSTEM_PROMPT,
            user_message=build_healing_prompt(data),
            model=self._model,
            timeout_seconds=self._timeout_seconds,
        )
        timed_out = False

        async def attempt(number: int) -> AttemptOutcome[LlmResponse]:
            nonlocal timed_out
            await self._rate_limiter.wait()
            try:
                response = await with_timeout_async(
                    self._client.send_async(request),
                    self._timeout_seconds,
                    f"{self.name}_generate",
                )
            except ApiTimeoutError as e:
                timed_out = True
                return AttemptOutcome.failure(str(e))

            timed_out = False
            if not response.success:
                return AttemptOutcome.failure(response.error_message or "empty response", response.retryable)
            return AttemptOutcome.success(response)

        result = await with_backoff_async(
            attempt,
            self._retry_config,
            operation_name=f"{self.name}_analyze_failure",
            sleep=self._sleep,
        )

        if not result.ok:
            if timed_out:
                raise ApiTimeoutError(f"{self.name}_generate", self._timeout_seconds)
            raise ApiFailureAfterRetries(f"{self.name}_analyze_failure", result.attempts, result.last_error or "")

        content = result.value.content
        code = extract_code(content)
        confidence = score_confidence(content)
        logger.info(
            "analysis_received",
            backend=self.name,
            attempts=result.attempts,
            code_found=code is not None,
            confidence=confidence,
        )
        return AnalysisResult(code=code, explanation=content, confidence=confidence, attempts=result.attempts)

    async def verify_fix(self, file_path: str | Path) -> VerificationResult:
        return await self._runner.run(file_path)
