"""Custom exceptions for the Lesson AI System."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Closed set of upstream failure categories."""

    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    OPERATION_TIMEOUT = "OPERATION_TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_CODES


_RETRYABLE_CODES = frozenset(
    {ErrorCode.RATE_LIMIT_EXCEEDED, ErrorCode.OPERATION_TIMEOUT, ErrorCode.NETWORK_ERROR}
)


class AppException(Exception):
    """Base exception rendered as a ``{status: 'error', ...}`` response."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}


class ValidationException(AppException):
    """Client input failed schema validation."""

    def __init__(self, message: str = "Invalid input", errors: Optional[list] = None, **kwargs):
        super().__init__(message, error_code="VALIDATION_ERROR", status_code=400, **kwargs)
        if errors is not None:
            self.details["errors"] = errors


class AuthenticationException(AppException):
    """Caller identity missing."""

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, error_code="AUTHENTICATION_REQUIRED", status_code=401, **kwargs)


class NotFoundException(AppException):
    """Requested resource does not exist."""

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(message, error_code="NOT_FOUND", status_code=404, **kwargs)


class SafetyRejectionException(AppException):
    """Generated content was flagged by the safety gate."""

    def __init__(
        self,
        flags: list,
        suggestions: list,
        message: str = "Generated content failed validation checks",
    ):
        super().__init__(
            message,
            error_code="CONTENT_REJECTED",
            status_code=422,
            details={"flags": flags, "suggestions": suggestions},
        )


class ProviderFailureException(AppException):
    """An upstream AI call failed after retries."""

    def __init__(
        self,
        code: str,
        message: str = "AI provider request failed",
        status_code: int = 502,
        **kwargs,
    ):
        super().__init__(message, error_code=code, status_code=status_code, **kwargs)


class PersistenceException(AppException):
    """Storage failed after an approved payload was produced."""

    def __init__(self, message: str = "Failed to save lesson", **kwargs):
        super().__init__(message, error_code="PERSISTENCE_ERROR", status_code=500, **kwargs)


REQUEST_PARTS = ("body", "query", "path", "header", "cookie")


def format_validation_errors(errors: list) -> list:
    """Flatten pydantic error dicts into {field, message} pairs for clients.

    FastAPI prefixes locations with the request part ("body", "query", "path");
    only that leading segment is dropped, so a body field named ``query`` keeps
    its name. An error on a whole part, such as an empty body, reports the part.
    """
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if len(loc) > 1 and loc[0] in REQUEST_PARTS:
            loc = loc[1:]
        formatted.append({"field": ".".join(loc) or "body", "message": error.get("msg", "Invalid value")})
    return formatted


__all__ = [
    "ErrorCode",
    "format_validation_errors",
    "AppException",
    "ValidationException",
    "AuthenticationException",
    "NotFoundException",
    "SafetyRejectionException",
    "ProviderFailureException",
    "PersistenceException",
]
