"""Course-level outline aggregation.

A course outline is rebuilt from scratch out of every document outline in
the course and written with a single replace, so it is always a pure
function of the current document outlines.  Topics are not merged across
documents: two documents with an "Intro" section yield two "Intro" topics.
"""

from __future__ import annotations

from lectern.interfaces.storage_provider import ICourseOutlineStore, IOutlineStore
from lectern.models.base import utc_now
from lectern.models.outline import CourseOutline, CourseTopic, DocumentOutline
from lectern.services.cache_layer import COURSES_LIST_KEY, CacheLayer
from lectern.utils.logging import get_logger


def build_course_outline(course_id: str, outlines: list[DocumentOutline]) -> CourseOutline:
    """One topic per section of every outline, in the order given."""
    topics = [
        CourseTopic(
            topic=section.title,
            subtopics=list(section.knowledge_points),
            related_documents=[outline.document_id],
            knowledge_point_count=len(section.knowledge_points),
        )
        for outline in outlines
        for section in outline.sections
    ]
    return CourseOutline(course_id=course_id, topics=topics, last_updated=utc_now())


class CourseOutlineAggregator:
    """Regenerates and stores the outline of a course."""

    def __init__(
        self,
        outline_store: IOutlineStore,
        course_outline_store: ICourseOutlineStore,
        cache_layer: CacheLayer,
    ) -> None:
        self._outlines = outline_store
        self._course_outlines = course_outline_store
        self._cache = cache_layer
        self._logger = get_logger(__name__)

    async def regenerate(self, course_id: str) -> CourseOutline | None:
        """Rebuild the course outline from its document outlines.

        Returns ``None`` (and stores the empty state) when no document of
        the course has an outline yet.
        """
        outlines = await self._outlines.find_by_course(course_id)

        course_outline = build_course_outline(course_id, outlines) if outlines else None
        await self._course_outlines.replace(course_id, course_outline)
        await self._cache.invalidate(COURSES_LIST_KEY)

        self._logger.info(
            "course_outline_regenerated",
            course_id=course_id,
            documents=len(outlines),
            topics=len(course_outline.topics) if course_outline else 0,
        )
        return course_outline

    async def get(self, course_id: str) -> CourseOutline | None:
        return await self._course_outlines.get(course_id)
