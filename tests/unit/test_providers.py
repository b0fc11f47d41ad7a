"""Unit tests for the OpenAI and Anthropic adapters with their SDK clients mocked."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import openai
import pytest

from lectern.config.settings import Settings
from lectern.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from lectern.providers.llm.anthropic_provider import AnthropicLLMProvider
from lectern.providers.llm.openai_provider import OpenAILLMProvider
from lectern.utils.errors import LLMError, RAGError, RateLimitError

_REQUEST = httpx.Request("POST", "https://api.example.test/v1")


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"_env_file": None, "openai_api_key": "sk-test", "anthropic_api_key": "ak-test"}
    values.update(overrides)
    return Settings(**values)


def _chat_response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=42),
    )


# ======================================================================
# OpenAI LLM
# ======================================================================


class TestOpenAILLMProvider:
    @pytest.mark.asyncio
    async def test_json_mode_sets_response_format(self) -> None:
        provider = OpenAILLMProvider(_settings())
        create = AsyncMock(return_value=_chat_response('{"sections": []}'))
        provider._client = MagicMock()
        provider._client.chat.completions.create = create

        result = await provider.complete("sys", "user", temperature=0.0, max_tokens=100, json_mode=True)

        assert result == '{"sections": []}'
        kwargs = create.await_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    @pytest.mark.asyncio
    async def test_empty_content_raises(self) -> None:
        provider = OpenAILLMProvider(_settings())
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(return_value=_chat_response(None))

        with pytest.raises(LLMError):
            await provider.complete("sys", "user")

    @pytest.mark.asyncio
    async def test_rate_limit_maps_to_rate_limit_error(self) -> None:
        provider = OpenAILLMProvider(_settings())
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(
            side_effect=openai.RateLimitError(
                "quota exceeded",
                response=httpx.Response(429, request=_REQUEST),
                body=None,
            )
        )

        with pytest.raises(RateLimitError):
            await provider.complete("sys", "user")

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_llm_error(self) -> None:
        provider = OpenAILLMProvider(_settings())
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=_REQUEST)
        )

        with pytest.raises(LLMError) as exc_info:
            await provider.complete("sys", "user")
        assert exc_info.value.provider_name == "openai"

    def test_base_url_changes_label(self) -> None:
        provider = OpenAILLMProvider(_settings(openai_base_url="http://localhost:8001/v1"))
        assert provider.get_provider_name() == "openai-compatible"

    def test_availability_follows_key(self) -> None:
        assert OpenAILLMProvider(_settings()).is_available()
        assert not OpenAILLMProvider(_settings(openai_api_key="")).is_available()


# ======================================================================
# Anthropic LLM
# ======================================================================


class TestAnthropicLLMProvider:
    @pytest.mark.asyncio
    async def test_json_mode_prefills_brace(self) -> None:
        provider = AnthropicLLMProvider(_settings())
        create = AsyncMock(
            return_value=SimpleNamespace(
                content=[SimpleNamespace(type="text", text='"sections": []}')],
                usage=SimpleNamespace(input_tokens=10, output_tokens=5),
            )
        )
        provider._client = MagicMock()
        provider._client.messages.create = create

        result = await provider.complete("sys", "user", json_mode=True)

        assert result == '{"sections": []}'
        messages = create.await_args.kwargs["messages"]
        assert messages[-1] == {"role": "assistant", "content": "{"}

    @pytest.mark.asyncio
    async def test_no_text_blocks_raises(self) -> None:
        provider = AnthropicLLMProvider(_settings())
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[], usage=SimpleNamespace(input_tokens=1, output_tokens=0)
            )
        )

        with pytest.raises(LLMError):
            await provider.complete("sys", "user")

    @pytest.mark.asyncio
    async def test_api_error_maps_to_llm_error(self) -> None:
        provider = AnthropicLLMProvider(_settings())
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(
            side_effect=anthropic.APIConnectionError(request=_REQUEST)
        )

        with pytest.raises(LLMError):
            await provider.complete("sys", "user")


# ======================================================================
# OpenAI embeddings
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_returns_vectors_in_order(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings())
        provider._client = MagicMock()
        provider._client.embeddings.create = AsyncMock(
            return_value=SimpleNamespace(
                data=[SimpleNamespace(embedding=[0.1, 0.2]), SimpleNamespace(embedding=[0.3, 0.4])],
                usage=SimpleNamespace(total_tokens=8),
            )
        )

        vectors = await provider.embed(["a", "b"])

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings())
        provider._client = MagicMock()
        provider._client.embeddings.create = AsyncMock()

        assert await provider.embed([]) == []
        provider._client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_count_mismatch_raises(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings())
        provider._client = MagicMock()
        provider._client.embeddings.create = AsyncMock(
            return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1])], usage=None)
        )

        with pytest.raises(RAGError):
            await provider.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_api_error_maps_to_rag_error(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings())
        provider._client = MagicMock()
        provider._client.embeddings.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=_REQUEST)
        )

        with pytest.raises(RAGError):
            await provider.embed(["a"])

    def test_default_dimension(self) -> None:
        assert OpenAIEmbeddingProvider(_settings()).get_dimension() == 1536
