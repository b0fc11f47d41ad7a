"""SQLite-backed storage adapters sharing one :class:`SQLiteDatabase`."""

from lectern.providers.storage.sqlite_catalog import SQLiteCatalogStore
from lectern.providers.storage.sqlite_database import SQLiteDatabase
from lectern.providers.storage.sqlite_documents import SQLiteDocumentStore, SQLiteProfileStore
from lectern.providers.storage.sqlite_knowledge import (
    SQLiteChunkStore,
    SQLiteCourseOutlineStore,
    SQLiteOutlineStore,
)

__all__ = [
    "SQLiteCatalogStore",
    "SQLiteChunkStore",
    "SQLiteCourseOutlineStore",
    "SQLiteDatabase",
    "SQLiteDocumentStore",
    "SQLiteOutlineStore",
    "SQLiteProfileStore",
]
