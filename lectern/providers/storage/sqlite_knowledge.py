"""SQLite stores for chunks, document outlines and course outlines.

Structured columns (chunk metadata, embeddings, outlines) are stored as
JSON text and mapped back through the pydantic models, one mapping
function per entity.
"""

from __future__ import annotations

import json

import aiosqlite
import structlog

from lectern.interfaces.storage_provider import IChunkStore, ICourseOutlineStore, IOutlineStore
from lectern.models.knowledge import Chunk, ChunkMetadata
from lectern.models.outline import CourseOutline, DocumentOutline
from lectern.providers.storage.sqlite_database import SQLiteDatabase

logger = structlog.get_logger(logger_name=__name__)

_UPSERT_CHUNK_SQL = """\
INSERT INTO document_chunks (id, document_id, content, metadata_json, embedding_json)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET document_id    = excluded.document_id,
              content        = excluded.content,
              metadata_json  = excluded.metadata_json,
              embedding_json = excluded.embedding_json,
              updated_at     = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_CHUNK_COLUMNS = "SELECT id, document_id, content, metadata_json, embedding_json FROM document_chunks"

_UPSERT_OUTLINE_SQL = """\
INSERT INTO document_outlines (document_id, outline_json)
VALUES (?, ?)
ON CONFLICT(document_id)
DO UPDATE SET outline_json = excluded.outline_json,
              updated_at   = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_COURSE_DOCUMENT_OUTLINES_SQL = """\
SELECT o.outline_json
FROM document_outlines AS o
JOIN documents AS d ON d.id = o.document_id
WHERE d.course_id = ?
ORDER BY d.created_at, d.id;
"""

_REPLACE_COURSE_OUTLINE_SQL = """\
INSERT INTO course_outlines (course_id, outline_json)
VALUES (?, ?)
ON CONFLICT(course_id)
DO UPDATE SET outline_json = excluded.outline_json,
              updated_at   = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""


def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        metadata=ChunkMetadata.model_validate_json(row["metadata_json"]),
        embedding=json.loads(row["embedding_json"]),
    )


def _chunk_to_params(chunk: Chunk) -> tuple:
    return (
        chunk.id,
        chunk.document_id,
        chunk.content,
        chunk.metadata.model_dump_json(),
        json.dumps(chunk.embedding),
    )


def _row_to_outline(row: aiosqlite.Row) -> DocumentOutline:
    return DocumentOutline.model_validate_json(row["outline_json"])


def _row_to_course_outline(row: aiosqlite.Row) -> CourseOutline | None:
    if row["outline_json"] is None:
        return None
    return CourseOutline.model_validate_json(row["outline_json"])


class SQLiteChunkStore(IChunkStore):
    """Chunks in the ``document_chunks`` table, ordered by first insertion."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def upsert_many(self, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        async with self._db.connect() as db:
            await db.executemany(_UPSERT_CHUNK_SQL, [_chunk_to_params(c) for c in chunks])
            await db.commit()
        logger.debug("chunks_upserted", count=len(chunks), document_id=chunks[0].document_id)

    async def get(self, chunk_id: str) -> Chunk | None:
        async with self._db.connect() as db:
            cursor = await db.execute(f"{_SELECT_CHUNK_COLUMNS} WHERE id = ?", (chunk_id,))
            row = await cursor.fetchone()
        return _row_to_chunk(row) if row else None

    async def find_by_document(self, document_id: str) -> list[Chunk]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"{_SELECT_CHUNK_COLUMNS} WHERE document_id = ? ORDER BY rowid",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_chunk(r) for r in rows]

    async def delete_by_document(self, document_id: str) -> int:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "DELETE FROM document_chunks WHERE document_id = ?", (document_id,)
            )
            await db.commit()
            return cursor.rowcount

    async def delete_stale(self, document_id: str, keep_ids: list[str]) -> int:
        if not keep_ids:
            return await self.delete_by_document(document_id)
        placeholders = ", ".join("?" for _ in keep_ids)
        async with self._db.connect() as db:
            cursor = await db.execute(
                "DELETE FROM document_chunks "
                f"WHERE document_id = ? AND id NOT IN ({placeholders})",
                (document_id, *keep_ids),
            )
            await db.commit()
            removed = cursor.rowcount
        if removed:
            logger.info("stale_chunks_deleted", document_id=document_id, removed=removed)
        return removed


class SQLiteOutlineStore(IOutlineStore):
    """Document outlines in the ``document_outlines`` table."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def save(self, outline: DocumentOutline) -> None:
        async with self._db.connect() as db:
            await db.execute(
                _UPSERT_OUTLINE_SQL, (outline.document_id, outline.model_dump_json())
            )
            await db.commit()

    async def get(self, document_id: str) -> DocumentOutline | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT outline_json FROM document_outlines WHERE document_id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        return _row_to_outline(row) if row else None

    async def find_by_course(self, course_id: str) -> list[DocumentOutline]:
        async with self._db.connect() as db:
            cursor = await db.execute(_SELECT_COURSE_DOCUMENT_OUTLINES_SQL, (course_id,))
            rows = await cursor.fetchall()
        return [_row_to_outline(r) for r in rows]

    async def delete(self, document_id: str) -> None:
        async with self._db.connect() as db:
            await db.execute(
                "DELETE FROM document_outlines WHERE document_id = ?", (document_id,)
            )
            await db.commit()


class SQLiteCourseOutlineStore(ICourseOutlineStore):
    """Course aggregates in the ``course_outlines`` table.

    A row with ``outline_json IS NULL`` is the explicit "no outline" state.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def replace(self, course_id: str, outline: CourseOutline | None) -> None:
        payload = outline.model_dump_json() if outline is not None else None
        async with self._db.connect() as db:
            await db.execute(_REPLACE_COURSE_OUTLINE_SQL, (course_id, payload))
            await db.commit()

    async def get(self, course_id: str) -> CourseOutline | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT outline_json FROM course_outlines WHERE course_id = ?",
                (course_id,),
            )
            row = await cursor.fetchone()
        return _row_to_course_outline(row) if row else None
