"""Chat-related schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field

from .ai import utcnow
from .base import CamelModel


class ChatContext(CamelModel):
    """Where in the product the learner is chatting from."""

    page: Optional[str] = Field(None, max_length=200)
    course: Optional[str] = Field(None, max_length=200)
    username: Optional[str] = Field(None, max_length=100)
    user_id: Optional[str] = Field(None, max_length=100)


class ChatHistoryMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=8000)


class ChatRequest(CamelModel):
    """Chat request schema."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    message: str = Field(..., min_length=1, max_length=4000, description="Learner message")
    context: ChatContext = Field(default_factory=ChatContext)
    history: List[ChatHistoryMessage] = Field(default_factory=list, max_length=20)


class ChatReply(CamelModel):
    """Chat reply schema."""

    reply: str
    provider: str
    model: str
    model_tier: str
    timestamp: datetime = Field(default_factory=utcnow)
