"""Knowledge extraction models.

:class:`Section`, :class:`KnowledgePoint` and :class:`ExamQuestion` are what
the structured extractor validates model output into.  They are never
persisted directly; each knowledge point or exam question becomes one
:class:`Chunk` with an embedding.
"""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from lectern.models.base import DomainModel

_LENIENT_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
    str_strip_whitespace=True,
)


class KnowledgePoint(DomainModel):
    """An atomic, self-contained unit of academic content."""

    model_config = _LENIENT_CONFIG

    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    source_pages: list[int] = Field(default_factory=list)
    key_concepts: list[str] = Field(default_factory=list)
    key_formulas: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)

    @field_validator("source_pages", "key_concepts", "key_formulas", "examples", mode="before")
    @classmethod
    def none_to_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value


class Section(DomainModel):
    """A titled part of a document holding its knowledge points in order."""

    model_config = _LENIENT_CONFIG

    title: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    source_pages: list[int] = Field(default_factory=list)
    knowledge_points: list[KnowledgePoint] = Field(default_factory=list)

    @field_validator("source_pages", "knowledge_points", mode="before")
    @classmethod
    def none_to_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value


class ExamQuestion(DomainModel):
    """One question extracted from an exam paper.

    ``reference_answer`` is only filled when the paper ships its answers.
    """

    model_config = _LENIENT_CONFIG

    question_number: str = Field(min_length=1)
    content: str = Field(min_length=1)
    options: list[str] = Field(default_factory=list)
    reference_answer: str = ""
    score: float | None = None
    source_page: int | None = None

    @field_validator("question_number", mode="before")
    @classmethod
    def number_to_str(cls, value: Any) -> Any:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("options", mode="before")
    @classmethod
    def none_to_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("reference_answer", mode="before")
    @classmethod
    def none_to_empty_str(cls, value: Any) -> Any:
        return "" if value is None else value


class ChunkMetadata(DomainModel):
    """Searchable metadata stored next to a chunk's content."""

    title: str
    kind: str = "knowledge_point"
    section_title: str = ""
    key_concepts: list[str] = Field(default_factory=list)
    key_formulas: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)
    source_pages: list[int] = Field(default_factory=list)
    document_name: str | None = None
    options: list[str] = Field(default_factory=list)
    reference_answer: str = ""
    score: float | None = None


class Chunk(DomainModel):
    """The persisted, embeddable unit derived from one knowledge point or exam question.

    ``id`` is derived from the document id, the point's ordinal and its
    title, so re-ingesting the same document overwrites instead of
    duplicating.
    """

    id: str
    document_id: str
    content: str
    metadata: ChunkMetadata
    embedding: list[float] = Field(default_factory=list)
