"""
Base LLM Client Interface

All provider implementations inherit from this interface.
"""

from abc import ABC, abstractmethod

from ..types import LlmProvider, LlmRequest, LlmResponse


class ILlmClient(ABC):
    """Interface for hosted model providers."""

    @property
    @abstractmethod
    def provider(self) -> LlmProvider:
        """The provider type."""
        pass

    @abstractmethod
    async def send_async(self, request: LlmRequest) -> LlmResponse:
        """
        Send a request to the provider.

        Returns:
            LlmResponse with content or error

        Raises:
            Should NOT raise exceptions - return LlmResponse with success=False instead
        """
        pass

    @abstractmethod
    async def is_available_async(self) -> bool:
        """
        Check if the provider is configured and reachable.

        Note:
            Should NOT raise exceptions - return False on any error
        """
        pass
