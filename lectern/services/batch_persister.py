"""Embeds and stores knowledge points in small batches.

Each knowledge point becomes one :class:`~lectern.models.knowledge.Chunk`.
Chunks are embedded and written a batch at a time, and a
:class:`~lectern.models.events.BatchSavedEvent` is yielded after every
committed batch so the caller can show progress while later batches are
still being embedded.
Exam questions go through the same batches, one chunk per question.

A failing batch does not stop the run: it is reported as a non-fatal
:class:`~lectern.models.events.ErrorEvent` and the next batch proceeds.
Chunk ids are derived from the document id, the point's ordinal and its
title, so re-ingesting the same document overwrites the same rows, and
once every batch has committed any leftover rows from an earlier run are
removed.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass

from lectern.interfaces.embedding_provider import IEmbeddingProvider
from lectern.interfaces.storage_provider import IChunkStore, IOutlineStore
from lectern.models.document import Document
from lectern.models.events import BatchSavedEvent, ErrorEvent
from lectern.models.knowledge import Chunk, ChunkMetadata, ExamQuestion, KnowledgePoint, Section
from lectern.models.outline import DocumentOutline, OutlineSection
from lectern.models.pipeline import ErrorCode
from lectern.services.course_outline import CourseOutlineAggregator
from lectern.utils.errors import RAGError
from lectern.utils.logging import get_logger

_CHUNK_NAMESPACE = uuid.UUID("6f1c2d4e-8a3b-5c7d-9e0f-1a2b3c4d5e6f")

DEFAULT_BATCH_SIZE = 3


# ---------------------------------------------------------------------------
# Content builders
# ---------------------------------------------------------------------------

def build_chunk_content(point: KnowledgePoint, section: Section) -> str:
    """Text that is embedded and returned by retrieval for one knowledge point.

    Format::

        ## <point title>
        <section title>

        <point content>

        Key concepts: a, b
        Formulas: ...
        Examples: ...
    """
    lines = [f"## {point.title}", section.title, "", point.content]
    extras = [
        ("Key concepts", point.key_concepts),
        ("Formulas", point.key_formulas),
        ("Examples", point.examples),
    ]
    extra_lines = [f"{label}: {'; '.join(values)}" for label, values in extras if values]
    if extra_lines:
        lines.append("")
        lines.extend(extra_lines)
    return "\n".join(lines)


def build_question_content(question: ExamQuestion) -> str:
    """Text that is embedded for one exam question.

    The question text, lettered options for multiple choice, then the
    reference answer and score when the paper has them.
    """
    lines = [f"## Question {question.question_number}", "", question.content]
    if question.options:
        lines.append("")
        lines.extend(f"{chr(65 + i)}. {option}" for i, option in enumerate(question.options))
    if question.reference_answer:
        lines.extend(["", f"Answer: {question.reference_answer}"])
    if question.score is not None:
        lines.extend(["", f"Score: {question.score:g}"])
    return "\n".join(lines)


def chunk_id_for(document_id: str, ordinal: int, title: str) -> str:
    """Stable chunk id for the *ordinal*-th knowledge point or question of a document."""
    return str(uuid.uuid5(_CHUNK_NAMESPACE, f"{document_id}:{ordinal}:{title.casefold()}"))


def build_document_outline(document_id: str, sections: list[Section]) -> DocumentOutline:
    return DocumentOutline(
        document_id=document_id,
        sections=[
            OutlineSection(
                title=section.title,
                summary=section.summary,
                knowledge_points=[p.title for p in section.knowledge_points],
            )
            for section in sections
        ],
    )


def format_outline_markdown(outline: DocumentOutline, doc_name: str | None = None) -> str:
    """Render an outline as a Markdown bullet list, headed by *doc_name* when given."""
    lines: list[str] = []
    if doc_name:
        lines.extend([f"## {doc_name}", ""])

    if not outline.sections:
        return "\n".join(lines)

    lines.append("### Outline")
    for section in outline.sections:
        lines.append(f"- **{section.title}** - {section.summary}")
        lines.extend(f"  - {kp}" for kp in section.knowledge_points)
    lines.append("")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Persister
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _ChunkDraft:
    id: str
    content: str
    metadata: ChunkMetadata


class BatchPersister:
    """Writes the chunks and outline of one ingestion run.

    Parameters
    ----------
    embedding_provider:
        Embeds chunk contents, one call per batch.
    chunk_store:
        Durable chunk storage.
    outline_store:
        Durable document outline storage.
    aggregator:
        Rebuilds the course outline after the document outline changes.
    batch_size:
        Knowledge points per embed-and-write round trip.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        chunk_store: IChunkStore,
        outline_store: IOutlineStore,
        aggregator: CourseOutlineAggregator,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self._embedder = embedding_provider
        self._chunks = chunk_store
        self._outlines = outline_store
        self._aggregator = aggregator
        self._batch_size = batch_size
        self._logger = get_logger(__name__)

    async def persist(
        self,
        document: Document,
        sections: list[Section],
    ) -> AsyncIterator[BatchSavedEvent | ErrorEvent]:
        """Embed and store every knowledge point of *sections*, batch by batch.

        Yields one ``BatchSavedEvent`` per committed batch and one
        non-fatal ``ErrorEvent`` per failed batch, then at most one more
        non-fatal ``ErrorEvent`` if the outline could not be written.
        """
        points = [(section, point) for section in sections for point in section.knowledge_points]
        drafts = [
            _ChunkDraft(
                id=chunk_id_for(document.id, ordinal, point.title),
                content=build_chunk_content(point, section),
                metadata=ChunkMetadata(
                    title=point.title,
                    section_title=section.title,
                    key_concepts=point.key_concepts,
                    key_formulas=point.key_formulas,
                    examples=point.examples,
                    source_pages=point.source_pages,
                    document_name=document.name or None,
                ),
            )
            for ordinal, (section, point) in enumerate(points)
        ]
        async with aclosing(self._save_batches(document, drafts)) as events:
            async for event in events:
                yield event

        try:
            await self._outlines.save(build_document_outline(document.id, sections))
        except Exception as exc:
            self._logger.error("outline_save_failed", document_id=document.id, error=str(exc))
            yield ErrorEvent(
                message=f"Failed to save document outline: {exc}",
                code=ErrorCode.OUTLINE_ERROR,
                fatal=False,
            )
        else:
            await self._refresh_course_outline(document)

    async def persist_questions(
        self,
        document: Document,
        questions: list[ExamQuestion],
    ) -> AsyncIterator[BatchSavedEvent | ErrorEvent]:
        """Embed and store exam questions, batch by batch.

        Same events as :meth:`persist`; exam papers have no outline.
        """
        drafts = [
            _ChunkDraft(
                id=chunk_id_for(document.id, ordinal, f"question {question.question_number}"),
                content=build_question_content(question),
                metadata=ChunkMetadata(
                    title=f"Question {question.question_number}",
                    kind="question",
                    source_pages=[] if question.source_page is None else [question.source_page],
                    document_name=document.name or None,
                    options=question.options,
                    reference_answer=question.reference_answer,
                    score=question.score,
                ),
            )
            for ordinal, question in enumerate(questions)
        ]
        async with aclosing(self._save_batches(document, drafts)) as events:
            async for event in events:
                yield event

    async def _save_batches(
        self,
        document: Document,
        drafts: list[_ChunkDraft],
    ) -> AsyncIterator[BatchSavedEvent | ErrorEvent]:
        saved_ids: list[str] = []
        failed_batches = 0

        for batch_index, start in enumerate(range(0, len(drafts), self._batch_size)):
            batch = drafts[start : start + self._batch_size]
            code = ErrorCode.EMBEDDING_ERROR
            try:
                embeddings = await self._embedder.embed([draft.content for draft in batch])
                if len(embeddings) != len(batch):
                    raise RAGError(
                        message=f"Expected {len(batch)} embeddings, got {len(embeddings)}"
                    )

                code = ErrorCode.STORAGE_ERROR
                chunks = [
                    Chunk(
                        id=draft.id,
                        document_id=document.id,
                        content=draft.content,
                        metadata=draft.metadata,
                        embedding=embedding,
                    )
                    for draft, embedding in zip(batch, embeddings, strict=True)
                ]
                await self._chunks.upsert_many(chunks)
            except Exception as exc:
                failed_batches += 1
                self._logger.error(
                    "batch_failed",
                    document_id=document.id,
                    batch_index=batch_index,
                    code=code.value,
                    error=str(exc),
                )
                yield ErrorEvent(
                    message=f"Failed to save batch {batch_index}: {exc}",
                    code=code,
                    fatal=False,
                    batch_index=batch_index,
                )
                continue

            ids = [c.id for c in chunks]
            saved_ids.extend(ids)
            self._logger.info(
                "batch_saved",
                document_id=document.id,
                batch_index=batch_index,
                chunks=len(ids),
            )
            yield BatchSavedEvent(ids=ids, batch_index=batch_index)

        if failed_batches == 0:
            try:
                await self._chunks.delete_stale(document.id, saved_ids)
            except Exception as exc:
                self._logger.error("stale_chunk_cleanup_failed", document_id=document.id, error=str(exc))
                yield ErrorEvent(
                    message=f"Failed to remove stale chunks: {exc}",
                    code=ErrorCode.STORAGE_ERROR,
                    fatal=False,
                )

    async def _refresh_course_outline(self, document: Document) -> None:
        if document.course_id is None:
            return
        try:
            await self._aggregator.regenerate(document.course_id)
        except Exception as exc:
            self._logger.warning(
                "course_outline_refresh_failed",
                course_id=document.course_id,
                document_id=document.id,
                error=str(exc),
            )
