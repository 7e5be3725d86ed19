"""Tests for the Gemini REST client using httpx.MockTransport."""

import json

import httpx
import pytest

from testmedic.llm import LlmProvider, LlmRequest, ProviderConfig, ProviderRegistry
from testmedic.llm.providers.gemini import BASE_URL, GeminiClient


def make_client(handler, **config):
    config.setdefault("api_key", "test-key-1234567890")
    return GeminiClient(ProviderConfig(**config), transport=httpx.MockTransport(handler))


def ok_body(text="```typescript\ntest('a', async () => {});\n```"):
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 30, "totalTokenCount": 42},
    }


class TestGeminiClient:
    @pytest.mark.asyncio
    async def test_successful_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=ok_body())

        client = make_client(handler)
        response = await client.send_async(LlmRequest(user_message="fix it", system_prompt="be careful"))

        assert response.success is True
        assert "test('a'" in response.content
        assert response.total_tokens == 42
        assert response.provider == LlmProvider.GEMINI
        assert seen["url"] == f"{BASE_URL}/gemini-2.5-flash:generateContent"
        assert seen["headers"]["x-goog-api-key"] == "test-key-1234567890"
        assert "key=" not in seen["url"]
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "fix it"
        assert seen["body"]["systemInstruction"]["parts"][0]["text"] == "be careful"

    @pytest.mark.asyncio
    async def test_request_model_overrides_default(self):
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(200, json=ok_body())

        client = make_client(handler, default_model="gemini-pro")
        await client.send_async(LlmRequest(user_message="x"))
        await client.send_async(LlmRequest(user_message="x", model="gemini-2.0"))
        assert urls[0].endswith("/gemini-pro:generateContent")
        assert urls[1].endswith("/gemini-2.0:generateContent")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,retryable", [(429, True), (500, True), (503, True), (400, False), (403, False)])
    async def test_http_errors_are_values(self, status, retryable):
        client = make_client(lambda request: httpx.Response(status, text="nope"))
        response = await client.send_async(LlmRequest(user_message="x"))
        assert response.success is False
        assert response.error_message.startswith(f"HTTP {status}")
        assert response.retryable is retryable

    @pytest.mark.asyncio
    async def test_transport_error_is_a_value(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        response = await make_client(handler).send_async(LlmRequest(user_message="x"))
        assert response.success is False
        assert "connection refused" in response.error_message
        assert response.retryable is True

    @pytest.mark.asyncio
    async def test_empty_candidates_reports_block_reason(self):
        body = {"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}}
        response = await make_client(lambda request: httpx.Response(200, json=body)).send_async(
            LlmRequest(user_message="x")
        )
        assert response.success is False
        assert "SAFETY" in response.error_message

    @pytest.mark.asyncio
    async def test_invalid_json_is_a_value(self):
        response = await make_client(lambda request: httpx.Response(200, text="<html>")).send_async(
            LlmRequest(user_message="x")
        )
        assert response.success is False

    def test_missing_key_rejected(self):
        with pytest.raises(ValueError):
            GeminiClient(ProviderConfig(api_key=None))


class TestProviderRegistry:
    def test_gemini_self_registers(self):
        assert ProviderRegistry.is_registered(LlmProvider.GEMINI)
        client = ProviderRegistry.create(LlmProvider.GEMINI, ProviderConfig(api_key="k" * 20))
        assert isinstance(client, GeminiClient)

    def test_config_validation(self):
        assert ProviderConfig(api_key=None).validate("gemini") == ["gemini: API key is required but not configured"]
        assert ProviderConfig(api_key="short").validate("gemini")
        assert ProviderConfig(api_key="a-long-enough-key").validate("gemini") == []
