"""Database module for persistence layer."""

from .models import Base, LessonAnalyticsRecord, LessonProgressRecord, LessonRecord
from .session import async_database_url, close_db, create_engine, create_session_factory, init_db

__all__ = [
    "Base",
    "LessonRecord",
    "LessonProgressRecord",
    "LessonAnalyticsRecord",
    "async_database_url",
    "create_engine",
    "create_session_factory",
    "init_db",
    "close_db",
]
