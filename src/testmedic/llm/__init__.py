"""Reasoning-service access: provider clients, registry and rate limiting."""

from testmedic.llm.types import LlmProvider, LlmRequest, LlmResponse, ProviderConfig
from testmedic.llm.registry import ProviderRegistry
from testmedic.llm.providers import gemini as _gemini  # noqa: F401  (self-registers)
from testmedic.llm.rate_limiter import SlidingWindowRateLimiter

__all__ = [
    "LlmProvider",
    "LlmRequest",
    "LlmResponse",
    "ProviderConfig",
    "ProviderRegistry",
    "SlidingWindowRateLimiter",
]
