"""Lesson persistence."""

from .lesson_store import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    InMemoryLessonStore,
    LessonStore,
    apply_progress_update,
)
from .sql_store import SQLLessonStore

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "InMemoryLessonStore",
    "LessonStore",
    "SQLLessonStore",
    "apply_progress_update",
]
