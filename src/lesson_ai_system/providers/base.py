"""
Base provider contract shared by every AI adapter.
"""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Type

from pydantic import BaseModel, ValidationError

from lesson_ai_system.cache.cache_key_generator import CacheKeyGenerator
from lesson_ai_system.cache.response_cache import ResponseCache
from lesson_ai_system.exceptions import ErrorCode
from lesson_ai_system.orchestrator.retry_handler import RetryHandler
from lesson_ai_system.schemas.ai import (
    ContentValidationResult,
    ProviderResponse,
    TokenUsage,
)
from lesson_ai_system.schemas.lesson import GenerationRequest, Lesson
from lesson_ai_system.telemetry.metrics import provider_latency, provider_requests

from . import prompts
from .errors import ProviderError, UnsupportedOperationError

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class AIProvider(Protocol):
    """The four operations every adapter offers."""

    name: str

    async def generate_lesson(
        self, request: GenerationRequest, model: Optional[str] = None
    ) -> ProviderResponse:
        ...

    async def validate_content(self, content: str, model: Optional[str] = None) -> ProviderResponse:
        ...

    async def generate_explanation(
        self, query: str, context: Optional[str] = None, model: Optional[str] = None
    ) -> ProviderResponse:
        ...

    async def analyze_image(
        self, image_url: str, prompt: str, model: Optional[str] = None
    ) -> ProviderResponse:
        ...


@dataclass
class Completion:
    """Raw text returned by one upstream call."""

    text: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class BaseProvider(ABC):
    """Shared adapter pipeline.

    Each public operation consults the response cache, runs the upstream call
    through the retry handler, parses the reply, and populates the cache
    before returning. Subclasses supply ``_complete`` and ``map_error``.
    """

    name = "base"

    # Temperatures and token limits per operation
    lesson_temperature: float = 0.7
    review_temperature: float = 0.3
    explanation_temperature: float = 0.5
    explanation_max_tokens: int = 500
    lesson_max_tokens: Optional[int] = None

    def __init__(
        self,
        default_model: str,
        cache: Optional[ResponseCache] = None,
        retry_handler: Optional[RetryHandler] = None,
        key_generator: Optional[CacheKeyGenerator] = None,
        cache_ttl_seconds: int = 3600,
        temperature: Optional[float] = None,
    ):
        """
        Initialize the provider.

        Args:
            default_model: Model used when the caller does not name one
            cache: Response cache consulted before every upstream call
            retry_handler: Retry/timeout wrapper for upstream calls
            key_generator: Cache key generator
            cache_ttl_seconds: TTL of cached responses
            temperature: Overrides the lesson generation temperature
        """
        self.default_model = default_model
        self.cache = cache
        self.retry_handler = retry_handler or RetryHandler()
        self.key_generator = key_generator or CacheKeyGenerator()
        self.cache_ttl_seconds = cache_ttl_seconds
        if temperature is not None:
            self.lesson_temperature = temperature

    @abstractmethod
    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
    ) -> Completion:
        """
        Issue one chat/completion call.

        Args:
            messages: Role-tagged messages (system, user, assistant)
            model: Model identifier
            temperature: Temperature for sampling
            max_tokens: Maximum tokens in response
            json_mode: Ask the provider for a JSON reply

        Returns:
            Completion: Raw reply text, the model that answered and token usage
        """

    @abstractmethod
    def map_error(self, error: Exception, model: str) -> ProviderError:
        """Translate an SDK exception into a categorized ProviderError."""

    def resolve_model(self, model: Optional[str]) -> str:
        return model or self.default_model

    async def generate_lesson(
        self, request: GenerationRequest, model: Optional[str] = None
    ) -> ProviderResponse:
        """Generate a lesson for ``request``."""
        model = self.resolve_model(model)
        messages = self.lesson_messages(request, model)

        async def call() -> ProviderResponse:
            completion = await self._call(
                "lesson",
                messages,
                model,
                temperature=self.lesson_temperature,
                max_tokens=self.lesson_max_tokens,
            )
            lesson = self._parse_json(completion, Lesson)
            return self._response(lesson, completion)

        return await self._cached("lesson", request, model, call, Lesson)

    async def validate_content(self, content: str, model: Optional[str] = None) -> ProviderResponse:
        """Review serialized lesson content for appropriateness."""
        model = self.resolve_model(model)
        messages = prompts.review_messages(content)

        async def call() -> ProviderResponse:
            completion = await self._call(
                "review", messages, model, temperature=self.review_temperature
            )
            verdict = self._parse_json(completion, ContentValidationResult)
            return self._response(verdict, completion)

        return await self._cached("review", {"content": content}, model, call, ContentValidationResult)

    async def generate_explanation(
        self, query: str, context: Optional[str] = None, model: Optional[str] = None
    ) -> ProviderResponse:
        """Explain ``query``, optionally grounded on ``context``."""
        model = self.resolve_model(model)
        messages = prompts.explanation_messages(query, context)

        async def call() -> ProviderResponse:
            completion = await self._call(
                "explanation",
                messages,
                model,
                temperature=self.explanation_temperature,
                max_tokens=self.explanation_max_tokens,
                json_mode=False,
            )
            text = completion.text.strip()
            if not text:
                raise ProviderError(
                    "Empty explanation returned", provider=self.name, model=model
                )
            return self._response(text, completion)

        return await self._cached(
            "explanation", {"query": query, "context": context}, model, call, None
        )

    async def analyze_image(
        self, image_url: str, prompt: str, model: Optional[str] = None
    ) -> ProviderResponse:
        raise UnsupportedOperationError(
            f"Image analysis is not supported by the {self.name} provider. "
            "Use the Gemini provider for image analysis.",
            provider=self.name,
        )

    def lesson_messages(self, request: GenerationRequest, model: str) -> List[Dict[str, str]]:
        return prompts.lesson_messages(request)

    async def _call(
        self,
        operation: str,
        messages: List[Dict[str, str]],
        model: str,
        **kwargs: Any,
    ) -> Completion:
        """Run ``_complete`` once, mapping SDK failures and recording metrics."""
        self._log_request(operation, model, messages)
        start = time.time()
        try:
            completion = await self._complete(messages, model, **kwargs)
        except ProviderError as e:
            self._record_failure(operation, model, e)
            raise
        except Exception as e:
            error = self.map_error(e, model)
            self._record_failure(operation, model, error)
            raise error from e
        duration = time.time() - start
        provider_requests.labels(provider=self.name, operation=operation, outcome="success").inc()
        provider_latency.labels(provider=self.name, operation=operation).observe(duration)
        self._log_response(operation, completion, duration)
        return completion

    async def _cached(
        self,
        namespace: str,
        payload: Any,
        model: str,
        call: Callable[[], Awaitable[ProviderResponse]],
        data_type: Optional[Type[BaseModel]],
    ) -> ProviderResponse:
        key = self.key_generator.generate_key(f"{self.name}:{namespace}", payload, model=model)

        if self.cache is not None:
            hit = await self.cache.get(key)
            if hit is not None:
                logger.info(
                    f"Provider {self.name} cache hit",
                    extra={"provider": self.name, "model": model, "operation": namespace},
                )
                data = hit.data
                if data_type is not None and not isinstance(data, data_type):
                    data = data_type.model_validate(data)
                return hit.as_cached(data)

        response = await self.retry_handler.execute(call, model=model, provider=self.name)

        if self.cache is not None:
            await self.cache.set(key, response, self.cache_ttl_seconds)
        return response

    def _parse_json(self, completion: Completion, data_type: Type[BaseModel]) -> BaseModel:
        text = _JSON_FENCE.sub("", completion.text.strip())
        try:
            return data_type.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise ProviderError(
                f"Malformed JSON reply from {self.name}: {e}",
                code=ErrorCode.UNKNOWN_ERROR,
                provider=self.name,
                model=completion.model,
                retryable=False,
            ) from e

    def _response(self, data: Any, completion: Completion) -> ProviderResponse:
        return ProviderResponse(
            data=data,
            model=completion.model,
            provider=self.name,
            usage=completion.usage,
        )

    def _record_failure(self, operation: str, model: str, error: ProviderError) -> None:
        provider_requests.labels(provider=self.name, operation=operation, outcome="error").inc()
        self._log_error(operation, error, model)

    def _log_request(self, operation: str, model: str, messages: List[Dict[str, str]]) -> None:
        logger.info(
            f"Provider {self.name} request",
            extra={
                "provider": self.name,
                "model": model,
                "operation": operation,
                "message_count": len(messages),
            },
        )

    def _log_response(self, operation: str, completion: Completion, duration: float) -> None:
        logger.info(
            f"Provider {self.name} response",
            extra={
                "provider": self.name,
                "model": completion.model,
                "operation": operation,
                "duration": duration,
                "total_tokens": completion.usage.total_tokens,
            },
        )

    def _log_error(self, operation: str, error: ProviderError, model: Optional[str] = None) -> None:
        logger.error(
            f"Provider {self.name} error",
            extra={
                "provider": self.name,
                "model": model,
                "operation": operation,
                "error_code": error.code.value,
                "retryable": error.retryable,
                "error_message": error.message,
            },
        )


def usage_from_counts(prompt_tokens: Optional[int], completion_tokens: Optional[int]) -> TokenUsage:
    prompt_tokens = prompt_tokens or 0
    completion_tokens = completion_tokens or 0
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )
