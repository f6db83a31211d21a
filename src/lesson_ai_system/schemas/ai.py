"""Provider response and AI helper schemas."""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import ConfigDict, Field, field_validator

from .base import CamelModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenUsage(CamelModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ProviderResponse(CamelModel):
    """Result of one adapter call. Never mutated; copies are derived instead."""

    model_config = ConfigDict(frozen=True)

    data: Any
    model: str
    provider: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    generated_at: datetime = Field(default_factory=utcnow)
    cached: bool = False

    def as_cached(self, data: Any = None) -> "ProviderResponse":
        update = {"cached": True}
        if data is not None:
            update["data"] = data
        return self.model_copy(update=update)


class ContentValidationResult(CamelModel):
    """Verdict of the safety gate over a serialized lesson."""

    is_appropriate: bool
    confidence_score: float = 0.0
    # Returned to clients exactly as the reviewer wrote them
    flags: List[Any] = Field(default_factory=list)
    suggestions: List[Any] = Field(default_factory=list)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None:
            return 0.0
        return min(max(float(v), 0.0), 1.0)


class DetectedObject(CamelModel):
    name: str
    confidence: float = 0.0


class SafeSearch(CamelModel):
    adult: bool = False
    violence: bool = False
    racy: bool = False


class ImageAnalysis(CamelModel):
    description: str = ""
    labels: List[str] = Field(default_factory=list)
    objects: List[DetectedObject] = Field(default_factory=list)
    safe_search: SafeSearch = Field(default_factory=SafeSearch)
    text_detection: Optional[str] = None


class ExplanationRequest(CamelModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    query: str = Field(..., min_length=1, max_length=2000)
    context: Optional[str] = Field(default=None, max_length=4000)


class ImageAnalysisRequest(CamelModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    image_url: str = Field(..., pattern=r"^https?://", max_length=2048)
    prompt: str = Field(
        default="Describe this image for use in an educational lesson.",
        min_length=1,
        max_length=2000,
    )
