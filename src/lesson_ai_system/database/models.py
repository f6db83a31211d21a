"""Database models for lessons and learner progress."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LessonRecord(Base):
    """Lesson model.

    Searchable attributes are real columns; the lesson body itself is kept
    in ``payload`` as the camelCase JSON the API returns.
    """

    __tablename__ = "lessons"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    author_id = Column(String, nullable=False, index=True)
    title = Column(String(500), nullable=False)
    subject = Column(String(100), nullable=True, index=True)
    difficulty = Column(String(50), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="draft", index=True)
    payload = Column(JSON, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<LessonRecord(id={self.id}, title={self.title!r}, author_id={self.author_id})>"


class LessonProgressRecord(Base):
    """Progress of one learner through one lesson."""

    __tablename__ = "lesson_progress"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_progress_user_lesson"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    lesson_id = Column(String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="not-started")
    progress = Column(Float, default=0, nullable=False)
    time_spent = Column(Integer, default=0, nullable=False)  # Seconds
    completed_sections = Column(JSON, default=list, nullable=False)
    exercise_results = Column(JSON, default=list, nullable=False)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        """Convert to the field names used by the progress schema."""
        return {
            "user_id": self.user_id,
            "lesson_id": self.lesson_id,
            "status": self.status,
            "progress": self.progress,
            "time_spent": self.time_spent,
            "completed_sections": list(self.completed_sections or []),
            "exercise_results": list(self.exercise_results or []),
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "last_accessed_at": self.last_accessed_at,
        }


class LessonAnalyticsRecord(Base):
    """Running engagement counters for one lesson."""

    __tablename__ = "lesson_analytics"

    lesson_id = Column(String(36), ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True)
    views = Column(Integer, default=0, nullable=False)
    completions = Column(Integer, default=0, nullable=False)
    exercise_attempts = Column(Integer, default=0, nullable=False)
    exercise_correct = Column(Integer, default=0, nullable=False)
    average_time_spent = Column(Float, default=0, nullable=False)  # Seconds
    difficulty_rating = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    struggled_sections = Column(JSON, default=list, nullable=False)
    last_updated = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "lesson_id": self.lesson_id,
            "views": self.views or 0,
            "completions": self.completions or 0,
            "exercise_attempts": self.exercise_attempts or 0,
            "exercise_correct": self.exercise_correct or 0,
            "average_time_spent": self.average_time_spent or 0,
            "difficulty_rating": self.difficulty_rating or 0,
            "rating_count": self.rating_count or 0,
            "struggled_sections": list(self.struggled_sections or []),
            "last_updated": self.last_updated,
        }
