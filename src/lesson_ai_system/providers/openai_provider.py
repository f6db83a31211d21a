"""
OpenAI provider implementation.
"""

import logging
from typing import Any, Dict, List, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI
from openai import AuthenticationError as OpenAIAuthError
from openai import PermissionDeniedError
from openai import RateLimitError as OpenAIRateLimitError

from lesson_ai_system.exceptions import ErrorCode

from .base import BaseProvider, Completion, usage_from_counts
from .errors import ProviderError, category_for_status, classify_message

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProvider):
    """Adapter for the OpenAI chat completions API."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        default_model: str = "gpt-3.5-turbo",
        advanced_model: str = "gpt-4-turbo-preview",
        timeout: float = 30,
        client: Optional[Any] = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            default_model: Model used when none is requested
            advanced_model: Concrete model served for the ``gpt-4`` family alias
            timeout: Transport timeout in seconds
            client: Pre-built client (tests)
            **kwargs: Forwarded to BaseProvider
        """
        super().__init__(default_model, **kwargs)
        self.advanced_model = advanced_model
        self.client = client or AsyncOpenAI(
            api_key=api_key, timeout=timeout, max_retries=0  # We handle retries ourselves
        )

    def resolve_model(self, model: Optional[str]) -> str:
        model = super().resolve_model(model)
        # "gpt-4" names the capability tier, not a concrete snapshot
        if model == "gpt-4":
            return self.advanced_model
        return model

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
    ) -> Completion:
        create_kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            create_kwargs["max_tokens"] = max_tokens
        if json_mode:
            create_kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**create_kwargs)

        choice = response.choices[0]
        usage = response.usage
        return Completion(
            text=choice.message.content or "",
            model=response.model or model,
            usage=usage_from_counts(
                getattr(usage, "prompt_tokens", 0), getattr(usage, "completion_tokens", 0)
            ),
        )

    def map_error(self, error: Exception, model: str) -> ProviderError:
        return map_openai_error(error, model, provider=self.name)


def map_openai_error(
    error: Exception, model: str, provider: str = "openai", label: str = "OpenAI"
) -> ProviderError:
    """Categorize an exception raised by the ``openai`` SDK.

    Shared with every OpenAI-compatible upstream (OpenRouter, Groq), which
    is why the provider name and the human label are parameters.
    """
    if isinstance(error, OpenAIAuthError):
        logger.error(f"{label} authentication error: {error}")
        return ProviderError(
            f"Invalid {label} API key",
            code=ErrorCode.INVALID_REQUEST,
            provider=provider,
            model=model,
            status_code=401,
        )
    if isinstance(error, PermissionDeniedError):
        return ProviderError(
            f"{label} rejected the request credentials",
            code=ErrorCode.INVALID_REQUEST,
            provider=provider,
            model=model,
            status_code=403,
        )
    if isinstance(error, OpenAIRateLimitError):
        return ProviderError(
            f"{label} rate limit exceeded",
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            provider=provider,
            model=model,
            status_code=429,
        )
    # APITimeoutError subclasses APIConnectionError
    if isinstance(error, APITimeoutError):
        return ProviderError(
            f"{label} request timed out",
            code=ErrorCode.OPERATION_TIMEOUT,
            provider=provider,
            model=model,
        )
    if isinstance(error, APIConnectionError):
        return ProviderError(
            f"Failed to connect to {label} API",
            code=ErrorCode.NETWORK_ERROR,
            provider=provider,
            model=model,
        )
    if isinstance(error, APIStatusError):
        return ProviderError(
            f"{label} API error: {error.message}",
            code=category_for_status(error.status_code),
            provider=provider,
            model=model,
            status_code=error.status_code,
        )
    return ProviderError(
        f"Unexpected error: {error}",
        code=classify_message(str(error)),
        provider=provider,
        model=model,
    )
