"""SQLAlchemy-backed lesson store."""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from lesson_ai_system.database.models import (
    LessonAnalyticsRecord,
    LessonProgressRecord,
    LessonRecord,
)
from lesson_ai_system.schemas.ai import utcnow
from lesson_ai_system.schemas.lesson import (
    Lesson,
    LessonAnalytics,
    LessonFilters,
    LessonPage,
    LessonProgress,
    PersistedLesson,
    ProgressUpdate,
)

from .lesson_store import (
    DEFAULT_PAGE_SIZE,
    apply_analytics_update,
    apply_progress_update,
    page_bounds,
)

logger = logging.getLogger(__name__)

# Filter fields that map onto indexed columns
_FILTER_COLUMNS = {
    "subject": LessonRecord.subject,
    "difficulty": LessonRecord.difficulty,
    "status": LessonRecord.status,
    "author_id": LessonRecord.author_id,
}


class SQLLessonStore:
    """Stores lessons in the ``lessons``, ``lesson_progress`` and ``lesson_analytics`` tables."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_lesson(self, author_id: str, lesson: Lesson) -> PersistedLesson:
        now = utcnow()
        record = LessonRecord(
            author_id=author_id,
            title=lesson.title,
            subject=lesson.subject or None,
            difficulty=lesson.difficulty,
            status="draft",
            payload=lesson.to_wire(),
            created_at=now,
            updated_at=now,
        )
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)

        logger.info("Lesson stored", extra={"lesson_id": record.id, "author_id": author_id})
        return self._to_lesson(record)

    async def get_lesson_by_id(self, lesson_id: str) -> Optional[PersistedLesson]:
        async with self.session_factory() as session:
            record = await session.get(LessonRecord, lesson_id)
        return self._to_lesson(record) if record is not None else None

    async def list_lessons(
        self, filters: LessonFilters, page: int = 1, limit: int = DEFAULT_PAGE_SIZE
    ) -> LessonPage:
        conditions = [
            _FILTER_COLUMNS[name] == value
            for name, value in filters.model_dump(exclude_none=True).items()
        ]
        offset, limit = page_bounds(page, limit)

        async with self.session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(LessonRecord).where(*conditions)
            )
            result = await session.execute(
                select(LessonRecord)
                .where(*conditions)
                .order_by(LessonRecord.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
            records = result.scalars().all()

        items = [self._to_lesson(record) for record in records]
        total = total or 0
        return LessonPage(
            items=items,
            total=total,
            page=max(page, 1),
            limit=limit,
            has_more=offset + len(items) < total,
        )

    async def update_progress(
        self, user_id: str, lesson_id: str, patch: ProgressUpdate
    ) -> LessonProgress:
        async with self.session_factory() as session:
            record = await self._progress_record(session, user_id, lesson_id)
            if record is None:
                record = LessonProgressRecord(user_id=user_id, lesson_id=lesson_id)
                session.add(record)
                current = LessonProgress(user_id=user_id, lesson_id=lesson_id)
            else:
                current = LessonProgress.model_validate(record.to_dict())

            updated = apply_progress_update(current, patch)
            for name, value in updated.model_dump(exclude={"user_id", "lesson_id"}).items():
                setattr(record, name, value)

            analytics_record = await session.get(LessonAnalyticsRecord, lesson_id)
            if analytics_record is None:
                analytics_record = LessonAnalyticsRecord(lesson_id=lesson_id)
                session.add(analytics_record)
                analytics = LessonAnalytics(lesson_id=lesson_id)
            else:
                analytics = LessonAnalytics.model_validate(analytics_record.to_dict())
            analytics = apply_analytics_update(analytics, current, updated, patch)
            for name, value in analytics.model_dump(
                exclude={"lesson_id", "learners", "average_progress"}
            ).items():
                setattr(analytics_record, name, value)
            await session.commit()
        return updated

    async def get_progress(self, user_id: str, lesson_id: str) -> Optional[LessonProgress]:
        async with self.session_factory() as session:
            record = await self._progress_record(session, user_id, lesson_id)
        return LessonProgress.model_validate(record.to_dict()) if record is not None else None

    async def touch_last_accessed(self, user_id: str, lesson_id: str) -> None:
        async with self.session_factory() as session:
            record = await self._progress_record(session, user_id, lesson_id)
            if record is not None:
                record.last_accessed_at = utcnow()
                await session.commit()

    async def record_view(self, lesson_id: str) -> None:
        now = utcnow()
        async with self.session_factory() as session:
            result = await session.execute(
                update(LessonAnalyticsRecord)
                .where(LessonAnalyticsRecord.lesson_id == lesson_id)
                .values(views=LessonAnalyticsRecord.views + 1, last_updated=now)
            )
            if result.rowcount == 0:
                session.add(
                    LessonAnalyticsRecord(
                        **LessonAnalytics(lesson_id=lesson_id, views=1, last_updated=now).model_dump(
                            exclude={"learners", "average_progress"}
                        )
                    )
                )
            await session.commit()

    async def get_analytics(self, lesson_id: str) -> LessonAnalytics:
        async with self.session_factory() as session:
            record = await session.get(LessonAnalyticsRecord, lesson_id)
            learners, average_progress = (
                await session.execute(
                    select(func.count(), func.avg(LessonProgressRecord.progress)).where(
                        LessonProgressRecord.lesson_id == lesson_id
                    )
                )
            ).one()

        data = record.to_dict() if record is not None else {"lesson_id": lesson_id}
        return LessonAnalytics.model_validate(
            {**data, "learners": learners or 0, "average_progress": average_progress or 0}
        )

    @staticmethod
    async def _progress_record(session, user_id: str, lesson_id: str):
        result = await session.execute(
            select(LessonProgressRecord).where(
                LessonProgressRecord.user_id == user_id,
                LessonProgressRecord.lesson_id == lesson_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _to_lesson(record: LessonRecord) -> PersistedLesson:
        return PersistedLesson.model_validate(
            {
                **record.payload,
                "id": record.id,
                "authorId": record.author_id,
                "status": record.status,
                "createdAt": record.created_at,
                "updatedAt": record.updated_at,
            }
        )
