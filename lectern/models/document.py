"""Document and page models.

A :class:`Document` is the user's uploaded file record.  Its ``status`` is
changed only by the ingestion orchestrator.  :class:`Page` is the unit the
text extractor hands to the structured extractor.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from lectern.models.base import DomainModel, utc_now


class DocumentType(str, Enum):  # noqa: UP042
    """Kind of uploaded document; only lectures are split into knowledge points."""

    LECTURE = "lecture"
    EXAM = "exam"
    ASSIGNMENT = "assignment"


class DocumentStatus(str, Enum):  # noqa: UP042
    """Lifecycle of a document record."""

    DRAFT = "draft"            # Created, never ingested
    PROCESSING = "processing"  # Extraction running
    READY = "ready"            # Last ingestion completed
    FAILED = "failed"          # Last ingestion ended in error


class Document(DomainModel):
    """An uploaded document owned by one user."""

    id: str
    owner_id: str
    course_id: str | None = None
    name: str = ""
    type: DocumentType = DocumentType.LECTURE
    status: DocumentStatus = DocumentStatus.DRAFT
    created_at: datetime = Field(default_factory=utc_now)


class Page(DomainModel):
    """Plain text of one page, numbered from 1."""

    page: int = Field(ge=1)
    text: str = ""
