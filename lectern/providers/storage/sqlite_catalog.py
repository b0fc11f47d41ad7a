"""SQLite store for universities and courses."""

from __future__ import annotations

from datetime import datetime

import aiosqlite
import structlog

from lectern.interfaces.storage_provider import ICatalogStore
from lectern.models.catalog import Course, University
from lectern.providers.storage.sqlite_database import SQLiteDatabase

logger = structlog.get_logger(logger_name=__name__)


def _row_to_university(row: aiosqlite.Row) -> University:
    return University(
        id=row["id"],
        name=row["name"],
        short_name=row["short_name"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_course(row: aiosqlite.Row) -> Course:
    return Course(
        id=row["id"],
        university_id=row["university_id"],
        code=row["code"],
        name=row["name"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SQLiteCatalogStore(ICatalogStore):
    """Reference data in the ``universities`` and ``courses`` tables."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    # -- Universities ---------------------------------------------------

    async def list_universities(self) -> list[University]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT id, name, short_name, created_at FROM universities ORDER BY name, id"
            )
            rows = await cursor.fetchall()
        return [_row_to_university(r) for r in rows]

    async def create_university(self, university: University) -> University:
        async with self._db.connect() as db:
            await db.execute(
                "INSERT INTO universities (id, name, short_name, created_at) VALUES (?, ?, ?, ?)",
                (
                    university.id,
                    university.name,
                    university.short_name,
                    university.created_at.isoformat(),
                ),
            )
            await db.commit()
        return university

    async def update_university(self, university: University) -> University:
        async with self._db.connect() as db:
            await db.execute(
                "UPDATE universities SET name = ?, short_name = ? WHERE id = ?",
                (university.name, university.short_name, university.id),
            )
            await db.commit()
        return university

    async def delete_university(self, university_id: str) -> None:
        async with self._db.connect() as db:
            await db.execute("DELETE FROM courses WHERE university_id = ?", (university_id,))
            await db.execute("DELETE FROM universities WHERE id = ?", (university_id,))
            await db.commit()
        logger.info("university_deleted", university_id=university_id)

    # -- Courses --------------------------------------------------------

    async def list_courses(self) -> list[Course]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT id, university_id, code, name, created_at FROM courses ORDER BY code, id"
            )
            rows = await cursor.fetchall()
        return [_row_to_course(r) for r in rows]

    async def get_course(self, course_id: str) -> Course | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT id, university_id, code, name, created_at FROM courses WHERE id = ?",
                (course_id,),
            )
            row = await cursor.fetchone()
        return _row_to_course(row) if row else None

    async def create_course(self, course: Course) -> Course:
        async with self._db.connect() as db:
            await db.execute(
                "INSERT INTO courses (id, university_id, code, name, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    course.id,
                    course.university_id,
                    course.code,
                    course.name,
                    course.created_at.isoformat(),
                ),
            )
            await db.commit()
        return course

    async def update_course(self, course: Course) -> Course:
        async with self._db.connect() as db:
            await db.execute(
                "UPDATE courses SET university_id = ?, code = ?, name = ? WHERE id = ?",
                (course.university_id, course.code, course.name, course.id),
            )
            await db.commit()
        return course

    async def delete_course(self, course_id: str) -> None:
        async with self._db.connect() as db:
            await db.execute("DELETE FROM courses WHERE id = ?", (course_id,))
            await db.commit()
