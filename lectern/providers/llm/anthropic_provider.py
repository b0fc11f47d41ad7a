"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Differences from the OpenAI adapter:
    - The system prompt is a top-level parameter, not a message.
    - Responses are a list of content blocks; text blocks are joined.
    - There is no JSON response format, so ``json_mode`` prefills the
      assistant turn with ``{`` and re-attaches it to the returned text.
"""

from __future__ import annotations

import anthropic
import httpx
import structlog

from lectern.config.settings import Settings
from lectern.interfaces.llm_provider import ILLMProvider
from lectern.utils.errors import LLMError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_JSON_PREFILL = "{"


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Messages API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key,
            timeout=settings.llm_timeout_seconds,
            http_client=http_client,
        )
        self._model = settings.anthropic_model or "claude-sonnet-4-20250514"

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> str:
        """Generate a completion via the Messages API."""
        messages: list[dict] = [{"role": "user", "content": user_prompt}]
        if json_mode:
            messages.append({"role": "assistant", "content": _JSON_PREFILL})

        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=messages,
                temperature=temperature,
            )
        except anthropic.RateLimitError as exc:
            raise RateLimitError(
                message=f"Anthropic rate limit: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        result = "\n".join(text_blocks)
        if json_mode:
            result = _JSON_PREFILL + result
        logger.info(
            "anthropic_completion",
            model=self._model,
            json_mode=json_mode,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return result

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
