"""
LLM Gateway Tests.

Tests: request payload, JSON mode flag, every failure surfaced as
ProviderUnavailable. The provider is replaced by httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from eduaudit.errors import ProviderUnavailable
from eduaudit.services.llm_gateway import LLMGateway

BASE_URL = "https://llm.test/v1"


def _completion(content) -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 120, "completion_tokens": 80},
    }


def _gateway(handler, api_key="sk-test", timeout=5.0) -> LLMGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return LLMGateway(api_key=api_key, base_url=BASE_URL, timeout=timeout, client=client)


async def _complete(gateway: LLMGateway, json_mode=False) -> str:
    return await gateway.complete(
        "system text",
        "user text",
        model="gpt-4o-mini",
        temperature=0.7,
        max_tokens=1500,
        json_mode=json_mode,
    )


class TestLLMGateway:
    @pytest.mark.asyncio
    async def test_sends_chat_completion_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion('{"ok": true}'))

        gateway = _gateway(handler)
        content = await _complete(gateway, json_mode=True)
        await gateway.aclose()

        assert content == '{"ok": true}'
        assert seen["url"] == f"{BASE_URL}/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        body = seen["body"]
        assert body["model"] == "gpt-4o-mini"
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 1500
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"] == [
            {"role": "system", "content": "system text"},
            {"role": "user", "content": "user text"},
        ]

    @pytest.mark.asyncio
    async def test_plain_mode_omits_response_format(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=_completion("prose"))

        assert await _complete(_gateway(handler)) == "prose"
        assert "response_format" not in bodies[0]

    @pytest.mark.asyncio
    async def test_missing_api_key_makes_no_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_completion("x"))

        with pytest.raises(ProviderUnavailable, match="OPENAI_API_KEY"):
            await _complete(_gateway(handler, api_key=""))
        assert calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 429, 500, 503])
    async def test_non_200_status(self, status):
        gateway = _gateway(lambda request: httpx.Response(status, json={"error": {"message": "nope"}}))
        with pytest.raises(ProviderUnavailable, match=str(status)):
            await _complete(gateway)

    @pytest.mark.asyncio
    async def test_transport_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(ProviderUnavailable, match="timed out"):
            await _complete(_gateway(handler))

    @pytest.mark.asyncio
    async def test_overall_deadline(self):
        async def handler(request):
            await asyncio.sleep(1.0)
            return httpx.Response(200, json=_completion("late"))

        with pytest.raises(ProviderUnavailable, match="timed out"):
            await _complete(_gateway(handler, timeout=0.05))

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderUnavailable):
            await _complete(_gateway(handler))

    @pytest.mark.asyncio
    async def test_unexpected_envelope(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={"choices": []}))
        with pytest.raises(ProviderUnavailable, match="missing message content"):
            await _complete(gateway)

    @pytest.mark.asyncio
    async def test_body_not_json(self):
        gateway = _gateway(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(ProviderUnavailable):
            await _complete(gateway)

    @pytest.mark.asyncio
    async def test_null_content(self):
        gateway = _gateway(lambda request: httpx.Response(200, json=_completion(None)))
        with pytest.raises(ProviderUnavailable, match="empty message"):
            await _complete(gateway)
