"""Universities and courses, served through the read-through cache.

List reads go through :class:`CacheLayer`; every write invalidates the
list keys it affects before returning, so the next list read after a
write always comes from the store.
"""

from __future__ import annotations

import uuid

from lectern.interfaces.storage_provider import ICatalogStore
from lectern.models.catalog import Course, University
from lectern.services.cache_layer import (
    COURSES_LIST_KEY,
    COURSES_LIST_TTL,
    UNIVERSITIES_LIST_KEY,
    UNIVERSITIES_LIST_TTL,
    CacheLayer,
)
from lectern.utils.logging import get_logger


class CatalogService:
    def __init__(
        self,
        catalog_store: ICatalogStore,
        cache_layer: CacheLayer,
        courses_ttl: int = COURSES_LIST_TTL,
        universities_ttl: int = UNIVERSITIES_LIST_TTL,
    ) -> None:
        self._store = catalog_store
        self._cache = cache_layer
        self._courses_ttl = courses_ttl
        self._universities_ttl = universities_ttl
        self._logger = get_logger(__name__)

    # -- Universities ---------------------------------------------------

    async def get_all_universities(self) -> list[University]:
        return await self._cache.get_or_fetch(
            UNIVERSITIES_LIST_KEY, self._store.list_universities, self._universities_ttl
        )

    async def create_university(self, name: str, short_name: str = "") -> University:
        university = await self._store.create_university(
            University(id=str(uuid.uuid4()), name=name, short_name=short_name)
        )
        await self._cache.invalidate(UNIVERSITIES_LIST_KEY)
        self._logger.info("university_created", university_id=university.id)
        return university

    async def update_university(self, university: University) -> University:
        updated = await self._store.update_university(university)
        await self._cache.invalidate(UNIVERSITIES_LIST_KEY)
        return updated

    async def delete_university(self, university_id: str) -> None:
        # Courses of the university go with it.
        await self._store.delete_university(university_id)
        await self._cache.invalidate(UNIVERSITIES_LIST_KEY, COURSES_LIST_KEY)

    # -- Courses --------------------------------------------------------

    async def get_all_courses(self) -> list[Course]:
        return await self._cache.get_or_fetch(
            COURSES_LIST_KEY, self._store.list_courses, self._courses_ttl
        )

    async def get_course(self, course_id: str) -> Course | None:
        return await self._store.get_course(course_id)

    async def create_course(self, university_id: str, code: str, name: str) -> Course:
        course = await self._store.create_course(
            Course(id=str(uuid.uuid4()), university_id=university_id, code=code, name=name)
        )
        await self._cache.invalidate(COURSES_LIST_KEY)
        self._logger.info("course_created", course_id=course.id, university_id=university_id)
        return course

    async def update_course(self, course: Course) -> Course:
        updated = await self._store.update_course(course)
        await self._cache.invalidate(COURSES_LIST_KEY)
        return updated

    async def delete_course(self, course_id: str) -> None:
        await self._store.delete_course(course_id)
        await self._cache.invalidate(COURSES_LIST_KEY)
