"""Service layer."""

from .chat_service import ChatLink, ChatService, classify_tier

__all__ = ["ChatLink", "ChatService", "classify_tier"]
