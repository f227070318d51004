"""
Tests for OpenAIWebSearchClient, driven through httpx.MockTransport.

No network access: every request is answered by a handler function.
"""

import json

import httpx
import pytest

from trendlens.exceptions import ProviderError, SearchError, SearchTimeoutError
from trendlens.tools import OpenAIWebSearchClient, SearchClient


def client_with(handler, **kwargs):
    kwargs.setdefault("api_key", "sk-test")
    return OpenAIWebSearchClient(transport=httpx.MockTransport(handler), **kwargs)


class TestFetch:
    @pytest.mark.asyncio
    async def test_returns_output_text(self):
        client = client_with(lambda request: httpx.Response(200, json={"output_text": "[]"}))

        assert await client.fetch("prompt", model="gpt-4o-mini", timeout_ms=5000) == "[]"

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"output_text": "ok"})

        client = client_with(handler, base_url="https://llm.example/v1/")
        await client.fetch("Search web for robotics", model="gpt-4o", timeout_ms=5000)

        assert seen["url"] == "https://llm.example/v1/responses"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"] == {
            "model": "gpt-4o",
            "input": "Search web for robotics",
            "tools": [{"type": "web_search_preview"}],
        }

    @pytest.mark.asyncio
    async def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"output_text": "ok"})

        client = OpenAIWebSearchClient(transport=httpx.MockTransport(handler))
        await client.fetch("p", model="m", timeout_ms=1000)

        assert seen["auth"] == "Bearer sk-env"

    @pytest.mark.asyncio
    async def test_error_status_becomes_provider_error(self):
        client = client_with(lambda request: httpx.Response(500, text="upstream exploded"))

        with pytest.raises(ProviderError) as exc_info:
            await client.fetch("p", model="m", timeout_ms=1000)

        assert exc_info.value.status_code == 500
        assert "upstream exploded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_becomes_search_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        client = client_with(handler)

        with pytest.raises(SearchTimeoutError) as exc_info:
            await client.fetch("p", model="m", timeout_ms=2500)

        assert exc_info.value.timeout == 2.5

    @pytest.mark.asyncio
    async def test_connection_failure_becomes_provider_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            await client_with(handler).fetch("p", model="m", timeout_ms=1000)

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_invalid_json_body(self):
        client = client_with(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(ProviderError):
            await client.fetch("p", model="m", timeout_ms=1000)

    @pytest.mark.asyncio
    async def test_empty_output_is_an_error(self):
        client = client_with(lambda request: httpx.Response(200, json={"output": []}))

        with pytest.raises(SearchError, match="No content"):
            await client.fetch("p", model="m", timeout_ms=1000)


class TestExtractText:
    def test_concatenates_message_parts(self):
        payload = {
            "output": [
                {"type": "web_search_call", "status": "completed"},
                {
                    "type": "message",
                    "content": [
                        {"type": "output_text", "text": "[{\"title\": "},
                        {"type": "refusal", "text": "ignored"},
                        {"type": "output_text", "text": "\"x\"}]"},
                    ],
                },
            ]
        }

        assert OpenAIWebSearchClient.extract_text(payload) == '[{"title": "x"}]'

    @pytest.mark.parametrize("payload", [None, [], {}, {"output": None}, {"output_text": ""}])
    def test_unexpected_shapes(self, payload):
        assert OpenAIWebSearchClient.extract_text(payload) == ""


def test_client_satisfies_protocol():
    assert isinstance(OpenAIWebSearchClient(api_key="k"), SearchClient)
