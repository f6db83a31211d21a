"""Lesson generation, catalogue, progress and analytics endpoints."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from lesson_ai_system.exceptions import NotFoundException
from lesson_ai_system.schemas.lesson import Difficulty, LessonFilters, LessonStatus, ProgressUpdate
from lesson_ai_system.storage.lesson_store import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

from ..dependencies import (
    AppContainer,
    get_container,
    get_current_user_id,
    get_optional_user_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lessons", tags=["lessons"])


@router.post("/generate")
async def generate_lesson(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    """Generate an AI lesson, review it and store it as a draft."""
    lesson = await container.orchestrator.generate(payload, author_id=user_id)
    return {"status": "success", "lesson": lesson.to_wire()}


@router.get("")
async def list_lessons(
    subject: Optional[str] = Query(None, max_length=100),
    difficulty: Optional[Difficulty] = Query(None),
    status: Optional[LessonStatus] = Query(None),
    author_id: Optional[str] = Query(None, alias="authorId"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    """List lessons, newest first."""
    filters = LessonFilters(
        subject=subject, difficulty=difficulty, status=status, author_id=author_id
    )
    result = await container.store.list_lessons(filters, page=page, limit=limit)
    return {"status": "success", **result.to_wire()}


@router.get("/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    lesson = await container.store.get_lesson_by_id(lesson_id)
    if lesson is None:
        raise NotFoundException("Lesson not found")
    if user_id:
        await container.store.touch_last_accessed(user_id, lesson_id)
        try:
            await container.store.record_view(lesson_id)
        except Exception as e:
            # A lost view count must not hide the lesson
            logger.warning(
                "Failed to record lesson view",
                extra={"lesson_id": lesson_id, "error_type": type(e).__name__},
                exc_info=True,
            )
    return {"status": "success", "lesson": lesson.to_wire()}


@router.get("/{lesson_id}/progress")
async def get_progress(
    lesson_id: str,
    user_id: str = Depends(get_current_user_id),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    progress = await container.store.get_progress(user_id, lesson_id)
    if progress is None:
        raise NotFoundException("Progress not found")
    return {"status": "success", "progress": progress.to_wire()}


@router.put("/{lesson_id}/progress")
async def update_progress(
    lesson_id: str,
    patch: ProgressUpdate,
    user_id: str = Depends(get_current_user_id),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    """Create or update the caller's progress through a lesson."""
    if await container.store.get_lesson_by_id(lesson_id) is None:
        raise NotFoundException("Lesson not found")
    progress = await container.store.update_progress(user_id, lesson_id, patch)
    return {"status": "success", "progress": progress.to_wire()}


@router.get("/{lesson_id}/analytics")
async def get_analytics(
    lesson_id: str,
    user_id: str = Depends(get_current_user_id),
    container: AppContainer = Depends(get_container),
) -> Dict[str, Any]:
    """Views, completions, exercise accuracy and ratings for a lesson."""
    if await container.store.get_lesson_by_id(lesson_id) is None:
        raise NotFoundException("Lesson not found")
    analytics = await container.store.get_analytics(lesson_id)
    return {"status": "success", "analytics": analytics.to_wire()}
