"""Document and course outline models.

A :class:`DocumentOutline` is derived from one ingestion run and replaced
wholesale on re-ingestion.  A :class:`CourseOutline` is rebuilt in full
from every document outline of a course, never patched.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from lectern.models.base import DomainModel, utc_now


class OutlineSection(DomainModel):
    """One section of a document outline; knowledge points are listed by title."""

    title: str
    summary: str = ""
    knowledge_points: list[str] = Field(default_factory=list)


class DocumentOutline(DomainModel):
    document_id: str
    sections: list[OutlineSection] = Field(default_factory=list)


class CourseTopic(DomainModel):
    """A course-level topic; one per section of each document in the course."""

    topic: str
    subtopics: list[str] = Field(default_factory=list)
    related_documents: list[str] = Field(default_factory=list)
    knowledge_point_count: int = Field(default=0, ge=0)


class CourseOutline(DomainModel):
    course_id: str
    topics: list[CourseTopic] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utc_now)
