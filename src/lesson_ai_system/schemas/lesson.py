"""Lesson, generation request and progress schemas."""

import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from .base import CamelModel

LessonLength = Literal["short", "medium", "long"]
Difficulty = Literal["beginner", "intermediate", "advanced"]
LessonStatus = Literal["draft", "published", "archived"]
ProgressStatus = Literal["not-started", "in-progress", "completed"]

# Minutes used when a provider omits the lesson duration.
LESSON_LENGTH_MINUTES = {"short": 30, "medium": 60, "long": 90}

_LEADING_NUMBER = re.compile(r"\d+")


def _coerce_minutes(value: Any) -> Any:
    # Providers sometimes answer "45 minutes" instead of 45.
    if isinstance(value, str):
        match = _LEADING_NUMBER.search(value)
        return int(match.group()) if match else None
    return value


class GenerationRequest(CamelModel):
    """A request to generate one lesson. Immutable once submitted."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    subject: str = Field(..., min_length=2, max_length=100)
    topic: str = Field(..., min_length=2, max_length=200)
    target_grade: int = Field(..., ge=1, le=12)
    lesson_length: LessonLength
    difficulty: Optional[Difficulty] = None
    additional_instructions: Optional[str] = Field(default=None, max_length=2000)

    def mentions_visual_content(self) -> bool:
        return "visual" in (self.additional_instructions or "").lower()


class LessonSection(CamelModel):
    id: Optional[str] = None
    title: str = ""
    content: str = ""
    order: Optional[int] = None
    type: str = "content"


class Exercise(CamelModel):
    id: Optional[str] = None
    question: str
    type: str = "open-ended"
    difficulty: str = "medium"
    answer: Any = None
    options: List[str] = Field(default_factory=list)
    points: Optional[int] = None
    hint: Optional[str] = None
    explanation: Optional[str] = None


class LessonResource(CamelModel):
    id: Optional[str] = None
    type: str
    url: str = ""
    title: str = ""
    description: Optional[str] = None


class LessonMetadata(CamelModel):
    estimated_duration: Optional[int] = None
    reading_level: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    generated_by: Optional[str] = None
    generated_at: Optional[datetime] = None
    version: Optional[str] = None
    is_ai_generated: bool = Field(default=False, alias="isAIGenerated")

    coerce_estimated_duration = field_validator("estimated_duration", mode="before")(_coerce_minutes)


class Lesson(CamelModel):
    """Lesson payload shared by every provider adapter."""

    model_config = ConfigDict(extra="ignore")

    title: str
    subject: str = ""
    topic: str = ""
    target_grade: Optional[int] = None
    difficulty: Optional[str] = None
    duration: Optional[int] = None
    prerequisites: List[str] = Field(default_factory=list)
    key_concepts: List[str] = Field(default_factory=list)
    sections: List[LessonSection] = Field(default_factory=list)
    exercises: List[Exercise] = Field(default_factory=list)
    resources: List[LessonResource] = Field(default_factory=list)
    metadata: LessonMetadata = Field(default_factory=LessonMetadata)

    coerce_duration = field_validator("duration", mode="before")(_coerce_minutes)


class PersistedLesson(Lesson):
    """A lesson as returned by the storage layer."""

    id: str
    author_id: str
    status: LessonStatus = "draft"
    created_at: datetime
    updated_at: datetime


class LessonFilters(CamelModel):
    subject: Optional[str] = None
    difficulty: Optional[str] = None
    status: Optional[LessonStatus] = None
    author_id: Optional[str] = None


class LessonPage(CamelModel):
    items: List[PersistedLesson]
    total: int
    page: int
    limit: int
    has_more: bool


class LessonProgress(CamelModel):
    user_id: str
    lesson_id: str
    status: ProgressStatus = "not-started"
    progress: float = Field(default=0, ge=0, le=100)
    time_spent: int = Field(default=0, ge=0, description="Seconds spent on the lesson")
    completed_sections: List[str] = Field(default_factory=list)
    exercise_results: List[Dict[str, Any]] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None


class ProgressUpdate(CamelModel):
    """Partial update applied to a learner's progress record."""

    model_config = ConfigDict(extra="forbid")

    status: Optional[ProgressStatus] = None
    progress: Optional[float] = Field(default=None, ge=0, le=100)
    time_spent: Optional[int] = Field(default=None, ge=0)
    completed_sections: Optional[List[str]] = None
    exercise_results: Optional[List[Dict[str, Any]]] = None
    # Completion feedback, folded into lesson analytics rather than stored on the record
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    struggled_sections: Optional[List[str]] = None


class LessonAnalytics(CamelModel):
    """Aggregate engagement with one lesson across all learners."""

    lesson_id: str
    views: int = 0
    completions: int = 0
    exercise_attempts: int = 0
    exercise_correct: int = 0
    average_time_spent: float = Field(default=0, description="Seconds, over completions")
    difficulty_rating: float = Field(default=0, description="Mean learner rating, 1 to 5")
    rating_count: int = 0
    struggled_sections: List[str] = Field(default_factory=list)
    # Derived from progress records when read
    learners: int = 0
    average_progress: float = 0
    last_updated: Optional[datetime] = None
