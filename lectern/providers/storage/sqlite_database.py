"""Shared SQLite database for every Lectern store.

Each store opens a short-lived ``aiosqlite`` connection per operation
through :meth:`SQLiteDatabase.connect`, which also converts driver errors
into :class:`~lectern.utils.errors.StorageError`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite
import structlog

from lectern.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/lectern.db")

_NOW_SQL = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

_CREATE_TABLES_SQL = [
    f"""\
CREATE TABLE IF NOT EXISTS documents (
    id          TEXT PRIMARY KEY,
    owner_id    TEXT NOT NULL,
    course_id   TEXT,
    name        TEXT NOT NULL DEFAULT '',
    doc_type    TEXT NOT NULL,
    status      TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT {_NOW_SQL}
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS document_chunks (
    id              TEXT PRIMARY KEY,
    document_id     TEXT NOT NULL,
    content         TEXT NOT NULL,
    metadata_json   TEXT NOT NULL,
    embedding_json  TEXT NOT NULL,
    updated_at      TEXT NOT NULL DEFAULT {_NOW_SQL}
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS document_outlines (
    document_id   TEXT PRIMARY KEY,
    outline_json  TEXT NOT NULL,
    updated_at    TEXT NOT NULL DEFAULT {_NOW_SQL}
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS course_outlines (
    course_id     TEXT PRIMARY KEY,
    outline_json  TEXT,
    updated_at    TEXT NOT NULL DEFAULT {_NOW_SQL}
);
""",
    """\
CREATE TABLE IF NOT EXISTS universities (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    short_name  TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS courses (
    id             TEXT PRIMARY KEY,
    university_id  TEXT NOT NULL,
    code           TEXT NOT NULL,
    name           TEXT NOT NULL,
    created_at     TEXT NOT NULL
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS profiles (
    user_id              TEXT PRIMARY KEY,
    subscription_status  TEXT,
    updated_at           TEXT NOT NULL DEFAULT {_NOW_SQL}
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_course ON documents(course_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON document_chunks(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_courses_university ON courses(university_id);",
]


class SQLiteDatabase:
    """Owns the database file and schema."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @property
    def path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """Create all tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self.connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("database_initialized", path=str(self._db_path))

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection with ``Row`` results; driver errors become StorageError."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            logger.error("sqlite_error", path=str(self._db_path), error=str(exc))
            raise StorageError(message=f"SQLite error: {exc}", provider_name="sqlite") from exc
