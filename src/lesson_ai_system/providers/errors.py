"""Provider error types and retryability classification."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from lesson_ai_system.exceptions import ErrorCode

# Ordered: the first matching fragment decides the category.
_MESSAGE_CATEGORIES = (
    (("rate limit", "rate_limit", "too many requests"), ErrorCode.RATE_LIMIT_EXCEEDED),
    (("timeout", "timed out"), ErrorCode.OPERATION_TIMEOUT),
    (("network", "connection"), ErrorCode.NETWORK_ERROR),
    (("invalid",), ErrorCode.INVALID_REQUEST),
)


class ProviderError(Exception):
    """Upstream AI call failure carrying a stable code."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        retryable: Optional[bool] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize provider error.

        Args:
            message: Error message
            code: Failure category
            provider: Provider name
            model: Model identifier the call was made with
            retryable: Override for the category's default retryability
            status_code: Upstream HTTP status code if applicable
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.provider = provider
        self.model = model
        self.retryable = code.retryable if retryable is None else retryable
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def with_model(self, model: str) -> "ProviderError":
        if self.model is None:
            self.model = model
        return self

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code.value}, provider={self.provider!r}, "
            f"model={self.model!r}, retryable={self.retryable}, message={self.message!r})"
        )


class UnsupportedOperationError(ProviderError):
    """The adapter cannot perform the requested operation at all."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(
            message, code=ErrorCode.INVALID_REQUEST, provider=provider, retryable=False
        )


def classify_message(message: str) -> ErrorCode:
    """Categorize an error by its message text."""
    text = message.lower()
    for fragments, code in _MESSAGE_CATEGORIES:
        if any(fragment in text for fragment in fragments):
            return code
    return ErrorCode.UNKNOWN_ERROR


def classify_error(error: BaseException) -> ErrorCode:
    """Categorize any exception raised during a provider call."""
    if isinstance(error, ProviderError):
        return error.code
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorCode.OPERATION_TIMEOUT
    if isinstance(error, ConnectionError):
        return ErrorCode.NETWORK_ERROR
    return classify_message(str(error))


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, ProviderError):
        return error.retryable
    return classify_error(error).retryable


def wrap_error(
    error: BaseException,
    model: Optional[str] = None,
    provider: Optional[str] = None,
) -> ProviderError:
    """Return ``error`` as a ProviderError, keeping an existing one intact."""
    if isinstance(error, ProviderError):
        if provider and error.provider is None:
            error.provider = provider
        return error.with_model(model) if model else error
    code = classify_error(error)
    return ProviderError(
        str(error) or type(error).__name__,
        code=code,
        provider=provider,
        model=model,
        details={"error_type": type(error).__name__},
    )


def category_for_status(status_code: Optional[int]) -> ErrorCode:
    """Categorize an upstream HTTP status code."""
    if status_code is None:
        return ErrorCode.UNKNOWN_ERROR
    if status_code == 429:
        return ErrorCode.RATE_LIMIT_EXCEEDED
    if status_code in (408, 504):
        return ErrorCode.OPERATION_TIMEOUT
    if status_code >= 500:
        return ErrorCode.NETWORK_ERROR
    if status_code >= 400:
        return ErrorCode.INVALID_REQUEST
    return ErrorCode.UNKNOWN_ERROR
