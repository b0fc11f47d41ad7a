"""SQLite stores for document records and subscription profiles."""

from __future__ import annotations

from datetime import datetime

import aiosqlite
import structlog

from lectern.interfaces.storage_provider import IDocumentStore, IProfileStore
from lectern.models.document import Document, DocumentStatus, DocumentType
from lectern.providers.storage.sqlite_database import SQLiteDatabase

logger = structlog.get_logger(logger_name=__name__)

_INSERT_DOCUMENT_SQL = """\
INSERT INTO documents (id, owner_id, course_id, name, doc_type, status, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_DOCUMENT_SQL = """\
SELECT id, owner_id, course_id, name, doc_type, status, created_at
FROM documents
WHERE id = ?;
"""

_UPDATE_STATUS_SQL = """\
UPDATE documents
SET status = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE id = ?;
"""

_UPSERT_PROFILE_SQL = """\
INSERT INTO profiles (user_id, subscription_status)
VALUES (?, ?)
ON CONFLICT(user_id)
DO UPDATE SET subscription_status = excluded.subscription_status,
              updated_at          = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""


def _row_to_document(row: aiosqlite.Row) -> Document:
    return Document(
        id=row["id"],
        owner_id=row["owner_id"],
        course_id=row["course_id"],
        name=row["name"],
        type=DocumentType(row["doc_type"]),
        status=DocumentStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _document_to_params(document: Document) -> tuple:
    return (
        document.id,
        document.owner_id,
        document.course_id,
        document.name,
        document.type.value,
        document.status.value,
        document.created_at.isoformat(),
    )


class SQLiteDocumentStore(IDocumentStore):
    """Document records in the ``documents`` table."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def create(self, document: Document) -> Document:
        async with self._db.connect() as db:
            await db.execute(_INSERT_DOCUMENT_SQL, _document_to_params(document))
            await db.commit()
        logger.info("document_created", document_id=document.id, course_id=document.course_id)
        return document

    async def get(self, document_id: str) -> Document | None:
        async with self._db.connect() as db:
            cursor = await db.execute(_SELECT_DOCUMENT_SQL, (document_id,))
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def update_status(self, document_id: str, status: DocumentStatus) -> None:
        async with self._db.connect() as db:
            await db.execute(_UPDATE_STATUS_SQL, (status.value, document_id))
            await db.commit()
        logger.debug("document_status_updated", document_id=document_id, status=status.value)

    async def delete(self, document_id: str) -> None:
        async with self._db.connect() as db:
            await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()


class SQLiteProfileStore(IProfileStore):
    """Subscription status per user in the ``profiles`` table."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def get_subscription_status(self, user_id: str) -> str | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT subscription_status FROM profiles WHERE user_id = ?",
                (user_id,),
            )
            row = await cursor.fetchone()
        return row["subscription_status"] if row else None

    async def set_subscription_status(self, user_id: str, status: str) -> None:
        async with self._db.connect() as db:
            await db.execute(_UPSERT_PROFILE_SQL, (user_id, status))
            await db.commit()
