"""Retry handler with a per-attempt timeout and capped exponential backoff."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from lesson_ai_system.exceptions import ErrorCode
from lesson_ai_system.providers.errors import (
    ProviderError,
    classify_error,
    is_retryable,
    wrap_error,
)
from lesson_ai_system.telemetry.metrics import provider_retries

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class RetryHandler:
    """Runs one provider operation with bounded retries.

    Every attempt is raced against ``timeout_ms``. Only errors whose category
    is retryable (rate limit, timeout, network) are attempted again; anything
    else fails on the first attempt. Whatever escapes is a ``ProviderError``
    carrying the code, the model and the retryable flag.
    """

    def __init__(
        self,
        max_retries: int = 3,
        timeout_ms: int = 30000,
        base_delay_ms: int = 100,
        max_delay_ms: int = 2000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize retry handler."""
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.timeout_ms = timeout_ms
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._sleep = sleep

    def backoff_seconds(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return min(self.base_delay_ms * 2**attempt, self.max_delay_ms) / 1000

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        model: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> T:
        """Execute ``operation`` with timeout and retry logic."""

        def wait(retry_state: RetryCallState) -> float:
            return self.backoff_seconds(retry_state.attempt_number)

        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            code = classify_error(error)
            provider_retries.labels(model=model or "unknown", code=code.value).inc()
            logger.warning(
                "Provider attempt failed, retrying",
                model=model,
                provider=provider,
                attempt=retry_state.attempt_number,
                max_retries=self.max_retries,
                delay_ms=int(self.backoff_seconds(retry_state.attempt_number) * 1000),
                code=code.value,
                error=str(error),
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait,
                retry=retry_if_exception(is_retryable),
                before_sleep=before_sleep,
                sleep=self._sleep,
                reraise=True,
            ):
                with attempt:
                    return await self._attempt(operation)
        except Exception as e:
            wrapped = wrap_error(e, model=model, provider=provider)
            if wrapped is e:
                raise
            raise wrapped from e

        # This should never be reached
        raise RuntimeError("Retry loop completed without returning")

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Operation timed out after {self.timeout_ms} ms",
                code=ErrorCode.OPERATION_TIMEOUT,
            ) from e
