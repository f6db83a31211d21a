"""Request and response records."""

from .ai import (
    ContentValidationResult,
    DetectedObject,
    ExplanationRequest,
    ImageAnalysis,
    ImageAnalysisRequest,
    ProviderResponse,
    SafeSearch,
    TokenUsage,
)
from .chat import ChatContext, ChatHistoryMessage, ChatReply, ChatRequest
from .lesson import (
    LESSON_LENGTH_MINUTES,
    Exercise,
    GenerationRequest,
    Lesson,
    LessonFilters,
    LessonMetadata,
    LessonPage,
    LessonProgress,
    LessonAnalytics,
    LessonResource,
    LessonSection,
    PersistedLesson,
    ProgressUpdate,
)

__all__ = [
    "ContentValidationResult",
    "DetectedObject",
    "ExplanationRequest",
    "ImageAnalysis",
    "ImageAnalysisRequest",
    "ProviderResponse",
    "SafeSearch",
    "TokenUsage",
    "ChatContext",
    "ChatHistoryMessage",
    "ChatReply",
    "ChatRequest",
    "LESSON_LENGTH_MINUTES",
    "Exercise",
    "GenerationRequest",
    "Lesson",
    "LessonFilters",
    "LessonMetadata",
    "LessonPage",
    "LessonProgress",
    "LessonAnalytics",
    "LessonResource",
    "LessonSection",
    "PersistedLesson",
    "ProgressUpdate",
]
