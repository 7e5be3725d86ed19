"""
Gemini LLM Client

Direct integration with the Google Generative Language REST API via HTTPX.
"""

import time
from typing import Any

import httpx

from testmedic.shared.infrastructure.logging import get_logger

from ..registry import ProviderRegistry
from ..types import LlmProvider, LlmRequest, LlmResponse, ProviderConfig
from .base import ILlmClient

logger = get_logger(__name__)

BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiClient(ILlmClient):
    """
    Google Gemini LLM client (REST API).
    """

    def __init__(self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize Gemini client.

        Args:
            config: Provider configuration
            transport: Optional HTTPX transport (tests pass a MockTransport)
        """
        if not config.api_key:
            raise ValueError("Gemini API key is required")

        self._api_key = config.api_key
        self._default_model = config.default_model or DEFAULT_MODEL
        self._base_url = (config.endpoint or BASE_URL).rstrip("/")
        self._transport = transport

    @property
    def provider(self) -> LlmProvider:
        return LlmProvider.GEMINI

    def _payload(self, request: LlmRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": [{"parts": [{"text": request.user_message}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return payload

    async def send_async(self, request: LlmRequest) -> LlmResponse:
        """Send request to the generateContent endpoint."""
        start_time = time.time()
        model = request.model or self._default_model
        url = f"{self._base_url}/{model}:generateContent"

        def elapsed_ms() -> int:
            return int((time.time() - start_time) * 1000)

        try:
            # API key goes in a header, never in the URL
            headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key}

            async with httpx.AsyncClient(timeout=request.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=self._payload(request), headers=headers)
                response.raise_for_status()
                result = response.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("gemini_http_error", status=status, model=model)
            return LlmResponse(
                content="",
                success=False,
                error_message=f"HTTP {status}: {(e.response.text[:200] if e.response.text else 'No response body')}",
                provider=self.provider,
                model=model,
                duration_ms=elapsed_ms(),
                # 4xx other than throttling will not improve on retry
                retryable=status == 429 or status >= 500,
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("gemini_request_failed", model=model, error=str(e))
            return LlmResponse(
                content="",
                success=False,
                error_message=str(e) or type(e).__name__,
                provider=self.provider,
                model=model,
                duration_ms=elapsed_ms(),
            )

        # { candidates: [ { content: { parts: [ { text: "..." } ] } } ] }
        content = ""
        candidates = result.get("candidates") or []
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            content = "".join(p.get("text", "") for p in parts)

        if not content:
            block_reason = (result.get("promptFeedback") or {}).get("blockReason")
            return LlmResponse(
                content="",
                success=False,
                error_message=f"No content generated (block reason: {block_reason or 'none'})",
                provider=self.provider,
                model=model,
                duration_ms=elapsed_ms(),
            )

        usage = result.get("usageMetadata", {})
        return LlmResponse(
            content=content,
            success=True,
            provider=self.provider,
            model=model,
            prompt_tokens=usage.get("promptTokenCount"),
            completion_tokens=usage.get("candidatesTokenCount"),
            total_tokens=usage.get("totalTokenCount"),
            duration_ms=elapsed_ms(),
        )

    async def is_available_async(self) -> bool:
        """Check availability with a minimal request."""
        resp = await self.send_async(LlmRequest(user_message="ping", max_tokens=10, timeout_seconds=10))
        return resp.success


# Self-register with the registry
ProviderRegistry.register(LlmProvider.GEMINI, GeminiClient)
