"""
LLM type definitions shared by provider clients and healing backends.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LlmProvider(str, Enum):
    """Supported hosted model providers."""
    GEMINI = "gemini"


@dataclass
class ProviderConfig:
    """
    Configuration for one provider.

    API keys come from the environment, never from code.
    """
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    default_model: Optional[str] = None

    def validate(self, provider_name: str) -> list[str]:
        """Return configuration problems (empty if valid)."""
        errors = []
        if not self.api_key:
            errors.append(f"{provider_name}: API key is required but not configured")
        elif len(self.api_key) < 10:
            errors.append(f"{provider_name}: API key appears invalid (too short)")
        return errors


@dataclass
class LlmRequest:
    """Request to an LLM provider."""
    user_message: str
    system_prompt: str = ""
    model: Optional[str] = None
    temperature: float = 0.2
    max_tokens: int = 8192
    timeout_seconds: float = 60.0


@dataclass
class LlmResponse:
    """Response from an LLM provider. Failures are values, not exceptions."""
    content: str
    success: bool
    error_message: Optional[str] = None
    provider: Optional[LlmProvider] = None
    model: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    duration_ms: int = 0
    retryable: bool = True

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "success": self.success,
            "errorMessage": self.error_message,
            "provider": self.provider.value if self.provider else None,
            "model": self.model,
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
            "durationMs": self.duration_ms,
        }
