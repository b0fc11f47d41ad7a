"""Ingestion run state models.

:class:`ParseJob` is the ephemeral state of one ingestion run.  It lives
only as long as the :class:`~lectern.pipeline.progress_streamer.ProgressStreamer`
that owns it; the durable outcome of a run is the chunks and outline it
wrote.  Transitions produce new instances via ``model_copy(update={...})``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from lectern.models.base import DomainModel


class ParseStage(str, Enum):  # noqa: UP042
    """Stages of an ingestion run, in the only order they may occur.

        PARSING_PDF -> EXTRACTING -> EMBEDDING -> COMPLETE
                  \\-----------\\-----------\\---> ERROR
    """

    PARSING_PDF = "parsing_pdf"  # Reading page text out of the upload
    EXTRACTING = "extracting"    # The single billable model call
    EMBEDDING = "embedding"      # Streaming items, embedding + saving batches
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ParseStage.COMPLETE, ParseStage.ERROR)

    @property
    def rank(self) -> int:
        return _STAGE_RANK[self]


_STAGE_RANK = {
    ParseStage.PARSING_PDF: 0,
    ParseStage.EXTRACTING: 1,
    ParseStage.EMBEDDING: 2,
    ParseStage.COMPLETE: 3,
    ParseStage.ERROR: 3,
}


class ErrorCode(str, Enum):  # noqa: UP042
    """Machine-readable reason attached to ``error`` events."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_FILE = "INVALID_FILE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    PDF_PARSE_ERROR = "PDF_PARSE_ERROR"
    EMPTY_PDF = "EMPTY_PDF"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    LLM_QUOTA_EXCEEDED = "LLM_QUOTA_EXCEEDED"
    EXTRACTION_ERROR = "EXTRACTION_ERROR"
    EMBEDDING_ERROR = "EMBEDDING_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    OUTLINE_ERROR = "OUTLINE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class JobProgress(DomainModel):
    current: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)


class ParseJob(DomainModel):
    """Snapshot of one ingestion run."""

    document_id: str
    status: ParseStage = ParseStage.PARSING_PDF
    progress: JobProgress = Field(default_factory=JobProgress)
    error: str | None = None
