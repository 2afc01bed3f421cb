"""Tests for scoring providers against mocked HTTP transports."""

import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from src.pocket.classifier.providers import (
    ClaudeProvider,
    GeminiProvider,
    OllamaProvider,
    OpenRouterProvider,
    build_provider,
    parse_score,
)
from src.pocket.config import PipelineConfig


class TestParseScore:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("87", 87),
            (" 42\n", 42),
            ("100", 100),
            ("250", 100),
            ("-5", 0),
            ("95 - strong task markers", 95),
            ("Score: 80", 0),
            ("", 0),
            (None, 0),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_score(text) == expected


class TestOpenRouterProvider:
    @pytest.mark.asyncio
    async def test_score_returns_message_content(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            captured["auth"] = request.headers["Authorization"]
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": "88"}}],
                    "usage": {"prompt_tokens": 120, "completion_tokens": 1},
                },
            )

        provider = OpenRouterProvider(
            api_key="sk-test", model="test/model", transport=httpx.MockTransport(handler)
        )
        async with provider:
            assert await provider.score("prompt text") == "88"

        assert captured["url"] == "https://openrouter.ai/api/v1/chat/completions"
        assert captured["body"]["model"] == "test/model"
        assert captured["body"]["messages"][0]["content"] == "prompt text"
        assert captured["auth"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_http_error_becomes_connection_error(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(503))
        provider = OpenRouterProvider(api_key="sk-test", transport=transport)
        with pytest.raises(ConnectionError):
            await provider.score("p")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_timeout_becomes_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        provider = OpenRouterProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
        with pytest.raises(TimeoutError):
            await provider.score("p")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_malformed_body_becomes_value_error(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"choices": []}))
        provider = OpenRouterProvider(api_key="sk-test", transport=transport)
        with pytest.raises(ValueError):
            await provider.score("p")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_missing_key_is_unavailable(self):
        provider = OpenRouterProvider(api_key=None)
        assert provider.is_available() is False
        with pytest.raises(ConnectionError):
            await provider.score("p")
        await provider.aclose()


class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_score_and_embed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["key"] == "g-key"
            if request.url.path.endswith(":generateContent"):
                return httpx.Response(
                    200,
                    json={"candidates": [{"content": {"parts": [{"text": "73"}]}}]},
                )
            if request.url.path.endswith(":embedContent"):
                return httpx.Response(200, json={"embedding": {"values": [0.5] * 768}})
            return httpx.Response(404)

        provider = GeminiProvider(api_key="g-key", transport=httpx.MockTransport(handler))
        async with provider:
            assert await provider.score("p") == "73"
            vector = await provider.embed("some note text")

        assert len(vector) == 768

    @pytest.mark.asyncio
    async def test_request_paths(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"embedding": {"values": [1.0]}})

        provider = GeminiProvider(
            api_key="g-key",
            embedding_model="text-embedding-004",
            transport=httpx.MockTransport(handler),
        )
        await provider.embed("x")
        await provider.aclose()
        assert paths == ["/v1beta/models/text-embedding-004:embedContent"]

    @pytest.mark.asyncio
    async def test_no_candidates_is_value_error(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"candidates": []}))
        provider = GeminiProvider(api_key="g-key", transport=transport)
        with pytest.raises(ValueError):
            await provider.score("p")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_quota_error_is_connection_error(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(429))
        provider = GeminiProvider(api_key="g-key", transport=transport)
        with pytest.raises(ConnectionError) as exc_info:
            await provider.score("p")
        assert "g-key" not in str(exc_info.value)
        await provider.aclose()


class TestOllamaProvider:
    @pytest.mark.asyncio
    async def test_generate_and_embeddings(self):
        def handler(request):
            if request.url.path == "/api/generate":
                return httpx.Response(200, json={"response": "61"})
            return httpx.Response(200, json={"embedding": [0.0, 1.0]})

        provider = OllamaProvider(transport=httpx.MockTransport(handler))
        assert await provider.score("p") == "61"
        assert await provider.embed("x") == [0.0, 1.0]
        await provider.aclose()


class TestClaudeProvider:
    @pytest.mark.asyncio
    async def test_score_uses_messages_api(self):
        client = Mock()
        client.messages.create = AsyncMock(
            return_value=Mock(
                content=[Mock(type="text", text="91")],
                usage=Mock(input_tokens=100, output_tokens=1),
            )
        )
        client.close = AsyncMock()

        provider = ClaudeProvider(api_key=None, client=client)
        assert provider.is_available() is True
        assert await provider.score("p") == "91"
        client.messages.create.assert_awaited_once()
        await provider.aclose()
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_embed_not_supported(self):
        provider = ClaudeProvider(api_key=None, client=Mock())
        with pytest.raises(NotImplementedError):
            await provider.embed("x")

    def test_missing_key_is_unavailable(self):
        assert ClaudeProvider(api_key=None).is_available() is False


class TestBuildProvider:
    @pytest.mark.asyncio
    async def test_builds_configured_providers(self):
        config = PipelineConfig(_env_file=None, gemini_api_key="g-key")
        gemini = build_provider("gemini", config)
        assert isinstance(gemini, GeminiProvider)
        assert gemini.api_key == "g-key"
        ollama = build_provider("ollama", config)
        assert isinstance(ollama, OllamaProvider)
        await gemini.aclose()
        await ollama.aclose()

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_provider("nope", PipelineConfig(_env_file=None))
