"""Central orchestrator for the document ingestion pipeline.

Coordinates text extraction, the quota check, structured extraction and
batch persistence into a single run whose progress is streamed to the
caller as it happens.

ARCHITECTURE NOTE:
    One ingestion run is one producer task.  The producer walks the stages
    in a fixed order and pushes typed events into a
    :class:`ProgressStreamer`; :meth:`IngestionOrchestrator.ingest` is an
    async generator that yields those events to the consumer.

        parsing_pdf   load document, validate upload, extract page text
        (quota)       consume one unit of the user's daily LLM quota
        extracting    one model call -> sections of knowledge points, or
                      exam questions for an exam paper
        embedding     stream every item, then persist in batches
        complete      document marked ready

    A failed stage ends the run with exactly one fatal ``error`` event.
    A failed batch or outline write is reported as a non-fatal ``error``
    event and the run still completes.  When the consumer stops iterating,
    or the ``abort`` event is set, the producer task is cancelled and the
    in-flight call receives ``CancelledError``; no later stage runs.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass

import structlog

from lectern.interfaces.storage_provider import IDocumentStore
from lectern.interfaces.text_extractor import ITextExtractor
from lectern.models.document import Document, DocumentStatus, DocumentType
from lectern.models.events import BatchSavedEvent, ErrorEvent, PipelineEvent
from lectern.models.knowledge import ExamQuestion, Section
from lectern.models.outline import CourseOutline
from lectern.models.pipeline import ErrorCode, ParseStage
from lectern.pipeline.progress_streamer import DEFAULT_BUFFER_SIZE, ProgressStreamer
from lectern.services.batch_persister import BatchPersister
from lectern.services.course_outline import CourseOutlineAggregator
from lectern.services.quota_gate import QuotaGate
from lectern.services.structured_extractor import StructuredExtractor
from lectern.utils.errors import (
    LecternError,
    QuotaExceededError,
    RateLimitError,
    TextExtractionError,
)
from lectern.utils.logging import get_logger

PDF_MAGIC = b"%PDF-"

_INGESTIBLE_TYPES = frozenset({DocumentType.LECTURE, DocumentType.EXAM})

# Provider messages that mean the upstream model quota, not ours, ran out.
_LLM_QUOTA_RE = re.compile(r"quota|rate.?limit|429|RESOURCE_EXHAUSTED", re.IGNORECASE)


@dataclass
class _RunState:
    """Mutable bookkeeping for one producer task; never exposed."""

    document_id: str
    document: Document | None = None
    processing: bool = False


def is_llm_quota_error(exc: BaseException) -> bool:
    return isinstance(exc, RateLimitError) or bool(_LLM_QUOTA_RE.search(str(exc)))


class IngestionOrchestrator:
    """Runs ingestion for one document at a time per call.

    Parameters
    ----------
    text_extractor:
        Turns PDF bytes into pages.
    structured_extractor:
        Turns pages into sections or exam questions with one model call.
    quota_gate:
        Guards the model call.
    batch_persister:
        Embeds and stores knowledge points or questions, writes the outline.
    document_store:
        Document records; the orchestrator is the only writer of their status.
    course_aggregator:
        Rebuilds course outlines on request.
    max_file_size_mb:
        Uploads above this size are rejected before any parsing.
    stream_buffer_size:
        Capacity of the event queue between producer and consumer.
    """

    def __init__(
        self,
        text_extractor: ITextExtractor,
        structured_extractor: StructuredExtractor,
        quota_gate: QuotaGate,
        batch_persister: BatchPersister,
        document_store: IDocumentStore,
        course_aggregator: CourseOutlineAggregator,
        *,
        max_file_size_mb: int = 10,
        stream_buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self._text = text_extractor
        self._extractor = structured_extractor
        self._quota = quota_gate
        self._persister = batch_persister
        self._documents = document_store
        self._aggregator = course_aggregator
        self._max_bytes = max_file_size_mb * 1024 * 1024
        self._buffer_size = stream_buffer_size
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        document_id: str,
        file_bytes: bytes,
        *,
        user_id: str | None = None,
        has_answers: bool = False,
        abort: asyncio.Event | None = None,
    ) -> AsyncIterator[PipelineEvent]:
        """Ingest *file_bytes* into *document_id*, yielding progress events.

        Parameters
        ----------
        document_id:
            An existing document record.
        file_bytes:
            The raw PDF upload.
        user_id:
            Whose quota pays for the model call; defaults to the owner.
        has_answers:
            Exam papers only: whether the paper includes reference answers.
        abort:
            Setting this event stops the run as if the consumer had left.
        """
        streamer = ProgressStreamer(document_id, maxsize=self._buffer_size)
        producer = asyncio.create_task(
            self._produce(streamer, document_id, file_bytes, user_id, has_answers),
            name=f"ingest:{document_id}",
        )
        abort_wait = asyncio.create_task(abort.wait()) if abort is not None else None
        events = streamer.__aiter__()
        next_event: asyncio.Future | None = None

        try:
            while abort is None or not abort.is_set():
                next_event = asyncio.ensure_future(events.__anext__())
                waiters = {next_event} if abort_wait is None else {next_event, abort_wait}
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                if next_event not in done:
                    next_event.cancel()
                    break
                try:
                    event = next_event.result()
                except StopAsyncIteration:
                    return
                yield event
            self._logger.info("ingest_aborted", document_id=document_id)
        finally:
            pending = [
                t for t in (producer, abort_wait, next_event) if t is not None and not t.done()
            ]
            for task in pending:
                task.cancel()
            # Wait for the producer so its cleanup runs before we return.
            await asyncio.gather(*pending, return_exceptions=True)

    async def regenerate_course_outline(self, course_id: str) -> CourseOutline | None:
        return await self._aggregator.regenerate(course_id)

    # ------------------------------------------------------------------
    # Producer
    # ------------------------------------------------------------------

    async def _produce(
        self,
        streamer: ProgressStreamer,
        document_id: str,
        file_bytes: bytes,
        user_id: str | None,
        has_answers: bool,
    ) -> None:
        run = _RunState(document_id=document_id)
        with structlog.contextvars.bound_contextvars(document_id=document_id):
            self._logger.info("ingest_started", bytes=len(file_bytes))
            try:
                await self._run(streamer, run, file_bytes, user_id, has_answers)
            except asyncio.CancelledError:
                self._logger.info("ingest_cancelled", stage=streamer.snapshot().status.value)
                await self._mark_failed(run)
                raise
            except Exception as exc:
                self._logger.exception("ingest_failed", error=str(exc))
                if not streamer.is_finished:
                    await streamer.error(
                        "Internal error while processing the document",
                        code=ErrorCode.INTERNAL_ERROR,
                    )
                await self._mark_failed(run)
            else:
                if streamer.snapshot().status is ParseStage.ERROR:
                    await self._mark_failed(run)
            finally:
                streamer.close()

    async def _run(
        self,
        streamer: ProgressStreamer,
        run: _RunState,
        file_bytes: bytes,
        user_id: str | None,
        has_answers: bool,
    ) -> None:
        # ----- parsing_pdf -----
        await streamer.status(ParseStage.PARSING_PDF, "Reading document...")

        document = await self._documents.get(run.document_id)
        if document is None:
            await streamer.error(f"Document not found: {run.document_id}", code=ErrorCode.NOT_FOUND)
            return
        run.document = document

        rejection = self._validate_upload(document, file_bytes)
        if rejection is not None:
            message, code = rejection
            self._logger.info("upload_rejected", code=code.value)
            await streamer.error(message, code=code)
            return

        try:
            pages = await self._text.extract(file_bytes)
        except TextExtractionError as exc:
            self._logger.warning("pdf_parse_failed", error=str(exc))
            await streamer.error("Failed to read text from the PDF", code=ErrorCode.PDF_PARSE_ERROR)
            return

        if not any(p.text.strip() for p in pages):
            self._logger.info("empty_pdf", pages=len(pages))
            await streamer.error(
                "No text could be extracted from the PDF", code=ErrorCode.EMPTY_PDF
            )
            return

        # ----- quota -----
        try:
            await self._quota.enforce(user_id or document.owner_id)
        except QuotaExceededError as exc:
            await streamer.error(
                exc.message,
                code=ErrorCode.QUOTA_EXCEEDED,
                usage=exc.usage,
                limit=exc.limit,
            )
            return

        # ----- extracting -----
        await self._documents.update_status(document.id, DocumentStatus.PROCESSING)
        run.processing = True
        await streamer.status(ParseStage.EXTRACTING, "AI extracting content...")

        is_exam = document.type is DocumentType.EXAM
        sections: list[Section] = []
        questions: list[ExamQuestion] = []
        try:
            if is_exam:
                questions = await self._extractor.extract_questions(pages, has_answers=has_answers)
            else:
                sections = await self._extractor.extract(pages)
        except LecternError as exc:
            if is_llm_quota_error(exc):
                self._logger.warning("llm_quota_exceeded", error=str(exc))
                await streamer.error(
                    "AI service quota exceeded. Please contact your administrator.",
                    code=ErrorCode.LLM_QUOTA_EXCEEDED,
                )
            else:
                self._logger.error("extraction_failed", error=str(exc))
                await streamer.error(
                    "Failed to extract content from PDF", code=ErrorCode.EXTRACTION_ERROR
                )
            return

        # ----- embedding -----
        persisting: AsyncIterator[BatchSavedEvent | ErrorEvent] | None = None
        if is_exam:
            total = len(questions)
            await streamer.status(ParseStage.EMBEDDING, "Saving questions...", total=total)
            for index, question in enumerate(questions):
                await streamer.item(index, "question", question.to_wire())
            if questions:
                persisting = self._persister.persist_questions(document, questions)
        else:
            total = sum(len(s.knowledge_points) for s in sections)
            await streamer.status(ParseStage.EMBEDDING, "Saving...", total=total)
            index = 0
            for section in sections:
                for point in section.knowledge_points:
                    data = {**point.to_wire(), "sectionTitle": section.title}
                    await streamer.item(index, "knowledge_point", data)
                    index += 1
            if sections:
                persisting = self._persister.persist(document, sections)

        failed_batches = 0
        if persisting is not None:
            async with contextlib.aclosing(persisting) as saved:
                async for event in saved:
                    if isinstance(event, ErrorEvent) and event.batch_index is not None:
                        failed_batches += 1
                    await streamer.emit(event)
        else:
            self._logger.info("nothing_extracted", document_type=document.type.value)

        # ----- complete -----
        await self._documents.update_status(document.id, DocumentStatus.READY)
        run.processing = False
        await streamer.complete(total, failed_batches=failed_batches)
        self._logger.info(
            "ingest_complete",
            document_type=document.type.value,
            items=total,
            failed_batches=failed_batches,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _validate_upload(
        self, document: Document, file_bytes: bytes
    ) -> tuple[str, ErrorCode] | None:
        if document.type not in _INGESTIBLE_TYPES:
            return (
                f"Only lecture and exam documents can be parsed, not {document.type.value}",
                ErrorCode.INVALID_FILE,
            )
        if len(file_bytes) > self._max_bytes:
            return (
                f"File exceeds the {self._max_bytes // (1024 * 1024)} MB limit",
                ErrorCode.FILE_TOO_LARGE,
            )
        if not file_bytes.startswith(PDF_MAGIC):
            return ("File is not a PDF", ErrorCode.INVALID_FILE)
        return None

    async def _mark_failed(self, run: _RunState) -> None:
        if not run.processing:
            return
        run.processing = False
        try:
            await self._documents.update_status(run.document_id, DocumentStatus.FAILED)
        except Exception as exc:
            self._logger.error("document_status_update_failed", error=str(exc))
