"""
Provider Registry for LLM clients.

Providers self-register on module import.
"""

from collections.abc import Callable

from .providers.base import ILlmClient
from .types import LlmProvider, ProviderConfig


class ProviderRegistry:
    """Registry-based factory for LLM provider clients."""

    _providers: dict[LlmProvider, Callable[[ProviderConfig], ILlmClient]] = {}

    @classmethod
    def register(cls, provider: LlmProvider, factory: Callable[[ProviderConfig], ILlmClient]) -> None:
        """Register a provider factory, e.g. ``ProviderRegistry.register(LlmProvider.GEMINI, GeminiClient)``."""
        cls._providers[provider] = factory

    @classmethod
    def create(cls, provider: LlmProvider, config: ProviderConfig) -> ILlmClient:
        """
        Create a client instance using the registered factory.

        Raises:
            ValueError: If provider is not registered
        """
        if provider not in cls._providers:
            available = [p.value for p in cls.available()]
            raise ValueError(f"No provider registered for: {provider.value}. Available: {available}")
        return cls._providers[provider](config)

    @classmethod
    def available(cls) -> list[LlmProvider]:
        return list(cls._providers.keys())

    @classmethod
    def is_registered(cls, provider: LlmProvider) -> bool:
        return provider in cls._providers
