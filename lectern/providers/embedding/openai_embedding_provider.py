"""Chunk embeddings through the OpenAI embeddings endpoint.

Works against OpenAI itself or any server exposing the same API
(``OPENAI_BASE_URL``).  The batch persister sends one request per batch
of knowledge points, so a call here carries only a handful of inputs.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from lectern.config.settings import Settings
from lectern.interfaces.embedding_provider import IEmbeddingProvider
from lectern.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "text-embedding-3-small"

_DIMENSIONS_BY_MODEL: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}
_FALLBACK_DIMENSION = 768

# Roughly 8k tokens; chunk content includes a whole knowledge point and
# its formulas, which can run long for dense slides.
_MAX_INPUT_CHARS = 24_000


def clip_for_embedding(content: str) -> str:
    """Cut *content* at a word boundary so it fits the model input."""
    if len(content) <= _MAX_INPUT_CHARS:
        return content
    return content[:_MAX_INPUT_CHARS].rsplit(" ", 1)[0]


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embeds chunk contents with ``OPENAI_EMBEDDING_MODEL``.

    Unknown models (typically self-hosted ones behind a compatible
    server) are assumed to produce 768-dimensional vectors.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._label = "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"

        kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(settings.llm_timeout_seconds, connect=5.0),
        }
        if settings.openai_base_url:
            kwargs["base_url"] = settings.openai_base_url
        if http_client is not None:
            kwargs["http_client"] = http_client
        self._client = openai.AsyncOpenAI(**kwargs)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            response = await self._client.embeddings.create(
                model=self._model,
                input=[clip_for_embedding(t) for t in texts],
            )
        except openai.APIError as exc:
            raise RAGError(
                message=f"Embedding request failed: {exc}",
                provider_name=self._label,
            ) from exc

        vectors = [item.embedding for item in response.data]
        logger.debug(
            "chunks_embedded",
            model=self._model,
            inputs=len(texts),
            tokens=getattr(response.usage, "total_tokens", None),
        )
        if len(vectors) != len(texts):
            raise RAGError(
                message=f"Expected {len(texts)} embeddings, got {len(vectors)}",
                provider_name=self._label,
            )
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        (vector,) = await self.embed([text])
        return vector

    def get_dimension(self) -> int:
        return _DIMENSIONS_BY_MODEL.get(self._model, _FALLBACK_DIMENSION)

    def get_provider_name(self) -> str:
        return self._label

    def is_available(self) -> bool:
        return bool(self._api_key)
