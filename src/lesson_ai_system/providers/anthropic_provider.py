"""
Anthropic provider implementation, used as the specialised content reviewer.
"""

import logging
from typing import Any, Dict, List, Optional

from anthropic import APIConnectionError, APIStatusError, APITimeoutError, AsyncAnthropic
from anthropic import AuthenticationError as AnthropicAuthError
from anthropic import RateLimitError as AnthropicRateLimitError

from lesson_ai_system.exceptions import ErrorCode

from .base import BaseProvider, Completion, usage_from_counts
from .errors import ProviderError, category_for_status, classify_message

logger = logging.getLogger(__name__)

JSON_ONLY_INSTRUCTION = "Reply with a single JSON object and no surrounding prose."


class AnthropicProvider(BaseProvider):
    """Adapter for the Anthropic messages API."""

    name = "anthropic"

    default_max_tokens = 4096

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        default_model: str = "claude-3-haiku-20240307",
        timeout: float = 30,
        client: Optional[Any] = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            default_model: Model used when none is requested
            timeout: Transport timeout in seconds
            client: Pre-built client (tests)
            **kwargs: Forwarded to BaseProvider
        """
        super().__init__(default_model, **kwargs)
        self.client = client or AsyncAnthropic(
            api_key=api_key, timeout=timeout, max_retries=0  # We handle retries ourselves
        )

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
    ) -> Completion:
        # Anthropic expects system messages to be separate
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        if json_mode:
            system_parts.append(JSON_ONLY_INSTRUCTION)
        conversation = [
            {"role": m["role"], "content": m["content"]}
            for m in messages
            if m["role"] in ("user", "assistant")
        ]

        request_params: Dict[str, Any] = {
            "model": model,
            "messages": conversation,
            "temperature": temperature,
            "max_tokens": max_tokens or self.default_max_tokens,  # Anthropic requires max_tokens
        }
        if system_parts:
            request_params["system"] = "\n\n".join(system_parts)

        response = await self.client.messages.create(**request_params)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        usage = response.usage
        return Completion(
            text=text,
            model=response.model or model,
            usage=usage_from_counts(
                getattr(usage, "input_tokens", 0), getattr(usage, "output_tokens", 0)
            ),
        )

    def map_error(self, error: Exception, model: str) -> ProviderError:
        if isinstance(error, AnthropicAuthError):
            logger.error(f"Anthropic authentication error: {error}")
            return ProviderError(
                "Invalid Anthropic API key",
                code=ErrorCode.INVALID_REQUEST,
                provider=self.name,
                model=model,
                status_code=401,
            )
        if isinstance(error, AnthropicRateLimitError):
            return ProviderError(
                "Anthropic rate limit exceeded",
                code=ErrorCode.RATE_LIMIT_EXCEEDED,
                provider=self.name,
                model=model,
                status_code=429,
            )
        if isinstance(error, APITimeoutError):
            return ProviderError(
                "Anthropic request timed out",
                code=ErrorCode.OPERATION_TIMEOUT,
                provider=self.name,
                model=model,
            )
        if isinstance(error, APIConnectionError):
            return ProviderError(
                "Failed to connect to Anthropic API",
                code=ErrorCode.NETWORK_ERROR,
                provider=self.name,
                model=model,
            )
        if isinstance(error, APIStatusError):
            return ProviderError(
                f"Anthropic API error: {error.message}",
                code=category_for_status(error.status_code),
                provider=self.name,
                model=model,
                status_code=error.status_code,
            )
        return ProviderError(
            f"Unexpected error: {error}",
            code=classify_message(str(error)),
            provider=self.name,
            model=model,
        )
