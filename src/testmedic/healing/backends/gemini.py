"""
Gemini healing backend.

Binds the generic LLM backend to the Gemini REST client with settings-driven
rate limiting, retry budget, timeout and verification command.
"""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx

from testmedic.healing.backends.llm import LlmHealingBackend
from testmedic.healing.backends.registry import BackendRegistry
from testmedic.healing.verification import PlaywrightTestRunner
from testmedic.llm.providers.gemini import GeminiClient
from testmedic.llm.rate_limiter import SlidingWindowRateLimiter
from testmedic.llm.types import ProviderConfig
from testmedic.shared.domain.exceptions import ConfigurationError
from testmedic.shared.infrastructure.config import Settings
from testmedic.shared.infrastructure.resilience import RetryConfig


class GeminiHealingBackend(LlmHealingBackend):
    """Healing backend bound to a hosted Gemini model."""

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        runner: PlaywrightTestRunner | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cwd: str | Path | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> "GeminiHealingBackend":
        """
        Raises:
            ConfigurationError: If no API key is configured
        """
        config = ProviderConfig(api_key=settings.gemini_api_key, default_model=settings.gemini_model)
        problems = config.validate("gemini")
        if problems:
            raise ConfigurationError("; ".join(problems), {"provider": "gemini"})

        return cls(
            client=GeminiClient(config, transport=transport),
            rate_limiter=rate_limiter
            or SlidingWindowRateLimiter(settings.rate_limit_calls, settings.rate_limit_window_seconds),
            runner=runner
            or PlaywrightTestRunner(settings.verify_command, settings.verify_timeout_seconds, cwd=cwd),
            retry_config=RetryConfig(
                max_attempts=settings.max_retries,
                base_delay=settings.backoff_base_seconds,
                max_delay=settings.backoff_max_seconds,
            ),
            timeout_seconds=settings.api_timeout_seconds,
            model=settings.gemini_model,
            sleep=sleep,
        )


BackendRegistry.register("gemini", GeminiHealingBackend.from_settings)
