"""Task router mapping a task type and its input to a model identifier."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class TaskType(str, Enum):
    """Coarse categories of AI work."""

    LESSON_GENERATION = "lesson_generation"
    CONTENT_REVIEW = "content_review"
    ANSWER_VALIDATION = "answer_validation"
    EXPLANATION_GENERATION = "explanation_generation"
    MULTIMODAL_CONTENT = "multimodal_content"


ADVANCED_GRADE_THRESHOLD = 9


@dataclass(frozen=True)
class RoutingTable:
    """Model identifiers the router chooses between."""

    default_model: str = "gpt-3.5-turbo"
    light_model: str = "gpt-3.5-turbo"
    advanced_model: str = "gpt-4-turbo-preview"
    multimodal_model: str = "gemini-1.5-flash"
    reviewer_model: str = "claude-3-haiku-20240307"

    @classmethod
    def from_settings(cls, settings: Any) -> "RoutingTable":
        return cls(
            default_model=settings.default_model,
            light_model=settings.light_model,
            advanced_model=settings.advanced_model,
            multimodal_model=settings.multimodal_model,
            reviewer_model=settings.reviewer_model,
        )


class TaskRouter:
    """Chooses which model serves a task.

    Routing is a pure function of the task type, the input and the
    configuration captured at construction time. Unknown task types route
    to the default model.
    """

    def __init__(
        self,
        table: Optional[RoutingTable] = None,
        reviewer_configured: bool = False,
        fallback_enabled: bool = True,
    ):
        self.table = table or RoutingTable()
        self.reviewer_configured = reviewer_configured
        self.fallback_enabled = fallback_enabled

    def route(self, task_type: Union[TaskType, str], task_input: Any = None) -> str:
        """Return the model identifier for ``task_type``."""
        task = self._coerce(task_type)

        if task is TaskType.LESSON_GENERATION:
            return (
                self.table.advanced_model
                if self._needs_advanced_model(task_input)
                else self.table.light_model
            )
        if task is TaskType.MULTIMODAL_CONTENT:
            return self.table.multimodal_model
        if task is TaskType.CONTENT_REVIEW:
            return self.table.reviewer_model if self.reviewer_configured else self.table.default_model
        return self.table.default_model

    def fallback_for(self, task_type: Union[TaskType, str], primary_model: str) -> Optional[str]:
        """Second model to try when ``primary_model`` fails with a retryable error."""
        if not self.fallback_enabled:
            return None
        if self._coerce(task_type) is TaskType.LESSON_GENERATION:
            fallback = self.table.multimodal_model
        else:
            fallback = self.table.default_model
        return None if fallback == primary_model else fallback

    def describe(self) -> Dict[str, str]:
        """Routing table for operators, one entry per task type."""
        return {
            TaskType.LESSON_GENERATION.value: (
                f"{self.table.light_model} (grade < {ADVANCED_GRADE_THRESHOLD}), "
                f"{self.table.advanced_model} (grade >= {ADVANCED_GRADE_THRESHOLD} or advanced)"
            ),
            TaskType.CONTENT_REVIEW.value: self.route(TaskType.CONTENT_REVIEW),
            TaskType.ANSWER_VALIDATION.value: self.route(TaskType.ANSWER_VALIDATION),
            TaskType.EXPLANATION_GENERATION.value: self.route(TaskType.EXPLANATION_GENERATION),
            TaskType.MULTIMODAL_CONTENT.value: self.route(TaskType.MULTIMODAL_CONTENT),
        }

    @staticmethod
    def _coerce(task_type: Union[TaskType, str]) -> Optional[TaskType]:
        try:
            return TaskType(task_type)
        except ValueError:
            return None

    @staticmethod
    def _needs_advanced_model(task_input: Any) -> bool:
        if task_input is None:
            return False
        grade = _field(task_input, "target_grade", "targetGrade")
        difficulty = _field(task_input, "difficulty", "difficulty")
        try:
            high_grade = grade is not None and int(grade) >= ADVANCED_GRADE_THRESHOLD
        except (TypeError, ValueError):
            high_grade = False
        return high_grade or difficulty == "advanced"


def _field(task_input: Any, attr: str, key: str) -> Any:
    if isinstance(task_input, dict):
        return task_input.get(key, task_input.get(attr))
    return getattr(task_input, attr, None)
