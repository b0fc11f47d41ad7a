"""Document records and their derived data."""

from __future__ import annotations

import uuid

from lectern.interfaces.storage_provider import IChunkStore, IDocumentStore, IOutlineStore
from lectern.models.document import Document, DocumentType
from lectern.models.outline import DocumentOutline
from lectern.services.course_outline import CourseOutlineAggregator
from lectern.utils.errors import DocumentNotFoundError
from lectern.utils.logging import get_logger


class DocumentService:
    """Create, read and delete documents.

    Deleting a document removes its chunks and outline as well and then
    rebuilds the outline of the course it belonged to.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        chunk_store: IChunkStore,
        outline_store: IOutlineStore,
        aggregator: CourseOutlineAggregator,
    ) -> None:
        self._documents = document_store
        self._chunks = chunk_store
        self._outlines = outline_store
        self._aggregator = aggregator
        self._logger = get_logger(__name__)

    async def create_document(
        self,
        owner_id: str,
        name: str,
        course_id: str | None = None,
        doc_type: DocumentType = DocumentType.LECTURE,
    ) -> Document:
        document = Document(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            course_id=course_id,
            name=name,
            type=doc_type,
        )
        return await self._documents.create(document)

    async def get_document(self, document_id: str) -> Document:
        """Return the document or raise :class:`DocumentNotFoundError`."""
        document = await self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def get_outline(self, document_id: str) -> DocumentOutline | None:
        await self.get_document(document_id)
        return await self._outlines.get(document_id)

    async def delete_document(self, document_id: str) -> None:
        document = await self.get_document(document_id)

        removed = await self._chunks.delete_by_document(document_id)
        await self._outlines.delete(document_id)
        await self._documents.delete(document_id)
        self._logger.info("document_deleted", document_id=document_id, chunks_removed=removed)

        if document.course_id is not None:
            await self._aggregator.regenerate(document.course_id)
