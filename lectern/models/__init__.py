"""Lectern domain models -- re-exports all public model classes.

    - document.py  -- Document records and extracted pages
    - knowledge.py -- Sections, knowledge points and persisted chunks
    - outline.py   -- Per-document and per-course outlines
    - pipeline.py  -- Ingestion run state (ParseJob) and error codes
    - events.py    -- Typed progress events streamed to the caller
    - quota.py     -- Quota checks, status and static limits
    - catalog.py   -- Universities and courses
"""

from __future__ import annotations

from lectern.models.catalog import Course, University
from lectern.models.document import Document, DocumentStatus, DocumentType, Page
from lectern.models.events import (
    BatchSavedEvent,
    CompleteEvent,
    ErrorEvent,
    ItemEvent,
    PipelineEvent,
    StatusEvent,
)
from lectern.models.knowledge import Chunk, ChunkMetadata, ExamQuestion, KnowledgePoint, Section
from lectern.models.outline import CourseOutline, CourseTopic, DocumentOutline, OutlineSection
from lectern.models.pipeline import ErrorCode, JobProgress, ParseJob, ParseStage
from lectern.models.quota import (
    QuotaCheckResult,
    QuotaRecord,
    QuotaStatus,
    RateLimitResult,
    SystemLimits,
)

__all__ = [
    "BatchSavedEvent",
    "Chunk",
    "ChunkMetadata",
    "CompleteEvent",
    "Course",
    "CourseOutline",
    "CourseTopic",
    "Document",
    "DocumentOutline",
    "DocumentStatus",
    "DocumentType",
    "ErrorCode",
    "ErrorEvent",
    "ExamQuestion",
    "ItemEvent",
    "JobProgress",
    "KnowledgePoint",
    "OutlineSection",
    "Page",
    "ParseJob",
    "ParseStage",
    "PipelineEvent",
    "QuotaCheckResult",
    "QuotaRecord",
    "QuotaStatus",
    "RateLimitResult",
    "Section",
    "StatusEvent",
    "SystemLimits",
    "University",
]
