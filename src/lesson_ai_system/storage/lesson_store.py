"""Lesson storage contract and the in-memory implementation."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

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

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Progress update fields that feed analytics only
ANALYTICS_ONLY_FIELDS = {"rating", "struggled_sections"}


@runtime_checkable
class LessonStore(Protocol):
    """Durable home of lessons and learner progress."""

    async def create_lesson(self, author_id: str, lesson: Lesson) -> PersistedLesson:
        ...

    async def get_lesson_by_id(self, lesson_id: str) -> Optional[PersistedLesson]:
        ...

    async def list_lessons(
        self, filters: LessonFilters, page: int = 1, limit: int = DEFAULT_PAGE_SIZE
    ) -> LessonPage:
        ...

    async def update_progress(
        self, user_id: str, lesson_id: str, patch: ProgressUpdate
    ) -> LessonProgress:
        ...

    async def get_progress(self, user_id: str, lesson_id: str) -> Optional[LessonProgress]:
        ...

    async def touch_last_accessed(self, user_id: str, lesson_id: str) -> None:
        ...

    async def record_view(self, lesson_id: str) -> None:
        ...

    async def get_analytics(self, lesson_id: str) -> LessonAnalytics:
        ...


def apply_progress_update(
    current: LessonProgress, patch: ProgressUpdate, now: Optional[datetime] = None
) -> LessonProgress:
    """Merge ``patch`` into ``current`` and stamp the status transition times."""
    now = now or utcnow()
    update = patch.model_dump(exclude_none=True, exclude=ANALYTICS_ONLY_FIELDS)
    update["last_accessed_at"] = now

    status = update.get("status")
    if status in ("in-progress", "completed") and current.started_at is None:
        update["started_at"] = now
    if status == "completed":
        update["progress"] = 100
        if current.completed_at is None:
            update["completed_at"] = now

    return current.model_copy(update=update)


def apply_analytics_update(
    current: LessonAnalytics,
    previous: LessonProgress,
    updated: LessonProgress,
    patch: ProgressUpdate,
    now: Optional[datetime] = None,
) -> LessonAnalytics:
    """Fold one progress update into the lesson's aggregate counters.

    Every exercise result carried by ``patch`` counts as one attempt. Time,
    rating and struggled sections are only taken when the learner moves into
    ``completed``, so repeated completion updates are counted once.
    """
    update: Dict[str, Any] = {"last_updated": now or utcnow()}

    results = patch.exercise_results or []
    if results:
        update["exercise_attempts"] = current.exercise_attempts + len(results)
        update["exercise_correct"] = current.exercise_correct + sum(
            1 for result in results if result.get("correct") is True
        )

    if updated.status == "completed" and previous.status != "completed":
        completions = current.completions + 1
        update["completions"] = completions
        update["average_time_spent"] = (
            current.average_time_spent * current.completions + updated.time_spent
        ) / completions
        if patch.rating is not None:
            rating_count = current.rating_count + 1
            update["rating_count"] = rating_count
            update["difficulty_rating"] = (
                current.difficulty_rating * current.rating_count + patch.rating
            ) / rating_count
        if patch.struggled_sections:
            update["struggled_sections"] = list(
                dict.fromkeys([*current.struggled_sections, *patch.struggled_sections])
            )

    return current.model_copy(update=update)


def page_bounds(page: int, limit: int) -> Tuple[int, int]:
    """Clamp pagination arguments and return ``(offset, limit)``."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    return (page - 1) * limit, limit


class InMemoryLessonStore:
    """Process-local store for development and tests."""

    def __init__(self):
        self._lessons: Dict[str, PersistedLesson] = {}
        self._progress: Dict[Tuple[str, str], LessonProgress] = {}
        self._analytics: Dict[str, LessonAnalytics] = {}

    async def create_lesson(self, author_id: str, lesson: Lesson) -> PersistedLesson:
        now = utcnow()
        persisted = PersistedLesson(
            **lesson.model_dump(),
            id=str(uuid.uuid4()),
            author_id=author_id,
            created_at=now,
            updated_at=now,
        )
        self._lessons[persisted.id] = persisted
        return persisted

    async def get_lesson_by_id(self, lesson_id: str) -> Optional[PersistedLesson]:
        return self._lessons.get(lesson_id)

    async def list_lessons(
        self, filters: LessonFilters, page: int = 1, limit: int = DEFAULT_PAGE_SIZE
    ) -> LessonPage:
        criteria = filters.model_dump(exclude_none=True)
        matches: List[PersistedLesson] = [
            lesson
            for lesson in self._lessons.values()
            if all(getattr(lesson, name) == value for name, value in criteria.items())
        ]
        matches.sort(key=lambda lesson: lesson.created_at, reverse=True)

        offset, limit = page_bounds(page, limit)
        items = matches[offset : offset + limit]
        return LessonPage(
            items=items,
            total=len(matches),
            page=max(page, 1),
            limit=limit,
            has_more=offset + len(items) < len(matches),
        )

    async def update_progress(
        self, user_id: str, lesson_id: str, patch: ProgressUpdate
    ) -> LessonProgress:
        current = self._progress.get((user_id, lesson_id)) or LessonProgress(
            user_id=user_id, lesson_id=lesson_id
        )
        updated = apply_progress_update(current, patch)
        self._progress[(user_id, lesson_id)] = updated
        self._analytics[lesson_id] = apply_analytics_update(
            self._analytics_for(lesson_id), current, updated, patch
        )
        return updated

    async def get_progress(self, user_id: str, lesson_id: str) -> Optional[LessonProgress]:
        return self._progress.get((user_id, lesson_id))

    async def touch_last_accessed(self, user_id: str, lesson_id: str) -> None:
        current = self._progress.get((user_id, lesson_id))
        if current is not None:
            self._progress[(user_id, lesson_id)] = current.model_copy(
                update={"last_accessed_at": utcnow()}
            )

    async def record_view(self, lesson_id: str) -> None:
        current = self._analytics_for(lesson_id)
        self._analytics[lesson_id] = current.model_copy(
            update={"views": current.views + 1, "last_updated": utcnow()}
        )

    async def get_analytics(self, lesson_id: str) -> LessonAnalytics:
        progress = [record.progress for (_, lid), record in self._progress.items() if lid == lesson_id]
        return self._analytics_for(lesson_id).model_copy(
            update={
                "learners": len(progress),
                "average_progress": sum(progress) / len(progress) if progress else 0,
            }
        )

    def _analytics_for(self, lesson_id: str) -> LessonAnalytics:
        return self._analytics.get(lesson_id) or LessonAnalytics(lesson_id=lesson_id)

    def __len__(self) -> int:
        return len(self._lessons)
