"""Abstract base classes for durable storage.

Each store is key-addressed by id and by foreign key (document id, course
id).  Concrete adapters map rows to domain models with one explicit
function per entity so that storage column names never leak into the
domain layer.  All methods raise :class:`~lectern.utils.errors.StorageError`
on backend failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from lectern.models.catalog import Course, University
from lectern.models.document import Document, DocumentStatus
from lectern.models.knowledge import Chunk
from lectern.models.outline import CourseOutline, DocumentOutline


# Concrete implementations: SQLite* stores in lectern/providers/storage/
class IDocumentStore(ABC):
    """Document records."""

    @abstractmethod
    async def create(self, document: Document) -> Document:
        """Insert a new document and return it."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` when it does not exist."""

    @abstractmethod
    async def update_status(self, document_id: str, status: DocumentStatus) -> None:
        """Set the lifecycle status of a document."""

    @abstractmethod
    async def delete(self, document_id: str) -> None:
        """Delete a document record (no-op when absent)."""


class IChunkStore(ABC):
    """Embedded knowledge chunks, addressed by stable id."""

    @abstractmethod
    async def upsert_many(self, chunks: list[Chunk]) -> None:
        """Insert or overwrite *chunks* in one transaction."""

    @abstractmethod
    async def get(self, chunk_id: str) -> Chunk | None:
        """Return a single chunk by id."""

    @abstractmethod
    async def find_by_document(self, document_id: str) -> list[Chunk]:
        """Return every chunk of a document in insertion order."""

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks of a document; returns the number removed."""

    @abstractmethod
    async def delete_stale(self, document_id: str, keep_ids: list[str]) -> int:
        """Delete chunks of a document whose id is not in *keep_ids*."""


class IOutlineStore(ABC):
    """Per-document outlines."""

    @abstractmethod
    async def save(self, outline: DocumentOutline) -> None:
        """Replace the outline of ``outline.document_id``."""

    @abstractmethod
    async def get(self, document_id: str) -> DocumentOutline | None:
        """Return a document's outline, or ``None``."""

    @abstractmethod
    async def find_by_course(self, course_id: str) -> list[DocumentOutline]:
        """Return outlines of every document in a course, oldest document first."""

    @abstractmethod
    async def delete(self, document_id: str) -> None:
        """Delete a document's outline (no-op when absent)."""


class ICourseOutlineStore(ABC):
    """Per-course aggregate outlines."""

    @abstractmethod
    async def replace(self, course_id: str, outline: CourseOutline | None) -> None:
        """Atomically replace the aggregate; ``None`` stores the explicit empty state."""

    @abstractmethod
    async def get(self, course_id: str) -> CourseOutline | None:
        """Return the stored aggregate, or ``None`` for no outline."""


class ICatalogStore(ABC):
    """Universities and courses."""

    @abstractmethod
    async def list_universities(self) -> list[University]:
        """Return all universities ordered by name."""

    @abstractmethod
    async def create_university(self, university: University) -> University:
        """Insert a university."""

    @abstractmethod
    async def update_university(self, university: University) -> University:
        """Overwrite a university's fields."""

    @abstractmethod
    async def delete_university(self, university_id: str) -> None:
        """Delete a university and its courses."""

    @abstractmethod
    async def list_courses(self) -> list[Course]:
        """Return all courses ordered by code."""

    @abstractmethod
    async def get_course(self, course_id: str) -> Course | None:
        """Return a course by id."""

    @abstractmethod
    async def create_course(self, course: Course) -> Course:
        """Insert a course."""

    @abstractmethod
    async def update_course(self, course: Course) -> Course:
        """Overwrite a course's fields."""

    @abstractmethod
    async def delete_course(self, course_id: str) -> None:
        """Delete a course."""


class IProfileStore(ABC):
    """Read access to the subscription status managed by billing."""

    @abstractmethod
    async def get_subscription_status(self, user_id: str) -> str | None:
        """Return the stored status (e.g. ``"active"``), or ``None`` for unknown users."""

    @abstractmethod
    async def set_subscription_status(self, user_id: str, status: str) -> None:
        """Record a status; used by the billing webhook and by tests."""
