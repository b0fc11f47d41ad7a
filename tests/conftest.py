"""Shared pytest fixtures for the Lectern test suite."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import fitz
import pytest

from lectern.config.settings import Settings
from lectern.interfaces.embedding_provider import IEmbeddingProvider
from lectern.interfaces.llm_provider import ILLMProvider
from lectern.models.document import Page
from lectern.providers.storage.sqlite_database import SQLiteDatabase

# ---------------------------------------------------------------------------
# Sample model output
# ---------------------------------------------------------------------------


def _kp(title: str, pages: list[int], **extra: Any) -> dict[str, Any]:
    return {
        "title": title,
        "content": f"{title} explained with a definition and an example.",
        "sourcePages": pages,
        **extra,
    }


# Two sections, seven knowledge points in total.
SAMPLE_EXTRACTION: dict[str, Any] = {
    "sections": [
        {
            "title": "Limits",
            "summary": "Limits describe how a function behaves near a point.",
            "sourcePages": [1, 2],
            "knowledgePoints": [
                _kp("Definition of a limit", [1], keyConcepts=["limit", "epsilon-delta"]),
                _kp("One-sided limits", [1]),
                _kp("Limit laws", [2], keyFormulas=["\\lim (f+g) = \\lim f + \\lim g"]),
                _kp("Squeeze theorem", [2], examples=["\\lim_{x\\to0} x\\sin(1/x) = 0"]),
            ],
        },
        {
            "title": "Derivatives",
            "summary": "The derivative is the instantaneous rate of change.",
            "sourcePages": [3],
            "knowledgePoints": [
                _kp("Definition of the derivative", [3]),
                _kp("Power rule", [3], keyFormulas=["d/dx x^n = n x^{n-1}"]),
                _kp("Chain rule", [3]),
            ],
        },
    ]
}


@pytest.fixture
def sample_extraction() -> dict[str, Any]:
    return json.loads(json.dumps(SAMPLE_EXTRACTION))


@pytest.fixture
def sample_extraction_json(sample_extraction: dict[str, Any]) -> str:
    return json.dumps(sample_extraction)


@pytest.fixture
def sample_pages() -> list[Page]:
    return [
        Page(page=1, text="Limits. A limit describes behaviour near a point."),
        Page(page=2, text="Limit laws and the squeeze theorem."),
        Page(page=3, text="Derivatives. Power rule and chain rule."),
    ]


# ---------------------------------------------------------------------------
# Provider doubles
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm_provider(sample_extraction_json: str) -> ILLMProvider:
    """LLM double answering every call with the sample extraction."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value=sample_extraction_json)
    return mock


_EMBEDDING_DIM = 8


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic vector from the SHA-256 digest of *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [b / 255.0 for b in digest[:dim]]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider that records its calls."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


# ---------------------------------------------------------------------------
# PDFs
# ---------------------------------------------------------------------------


def build_pdf(page_texts: list[str]) -> bytes:
    """Render a PDF with one page per entry; empty strings give blank pages."""
    doc = fitz.open()
    try:
        for text in page_texts:
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text)
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def pdf_factory() -> Callable[[list[str]], bytes]:
    return build_pdf


@pytest.fixture
def lecture_pdf() -> bytes:
    return build_pdf(
        [
            "Limits. A limit describes behaviour near a point.",
            "Limit laws and the squeeze theorem.",
            "Derivatives. Power rule and chain rule.",
        ]
    )


# ---------------------------------------------------------------------------
# Settings & storage
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "lectern.db"


@pytest.fixture
def settings(db_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        app_env="test",
        enable_ratelimit=False,
        database_path=str(db_path),
        redis_url="",
        openai_api_key="",
        anthropic_api_key="",
    )


@pytest.fixture
def enforced_settings(settings: Settings) -> Settings:
    return settings.model_copy(
        update={
            "enable_ratelimit": True,
            "llm_limit_daily_free": 3,
            "llm_limit_daily_pro": 30,
            "rate_limit_llm_free_requests": 100,
            "rate_limit_llm_pro_requests": 100,
        }
    )


@pytest.fixture
async def database(db_path: Path) -> SQLiteDatabase:
    db = SQLiteDatabase(db_path)
    await db.initialize()
    return db
