"""Resolve model identifiers to the adapter that serves them."""

import logging
from typing import Any, Dict, Optional, Tuple

from lesson_ai_system.cache.cache_key_generator import CacheKeyGenerator
from lesson_ai_system.cache.response_cache import ResponseCache
from lesson_ai_system.exceptions import ErrorCode
from lesson_ai_system.orchestrator.retry_handler import RetryHandler

from .anthropic_provider import AnthropicProvider
from .base import AIProvider
from .errors import ProviderError
from .gemini_provider import GeminiProvider
from .mock_provider import MockProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

# Ordered model-name prefixes and the provider that serves them
MODEL_PROVIDER_PREFIXES = (
    ("gpt-", "openai"),
    ("o1", "openai"),
    ("gemini", "gemini"),
    ("claude", "anthropic"),
)


def provider_for_model(model: str) -> Optional[str]:
    """Name of the provider that owns ``model``."""
    for prefix, provider_name in MODEL_PROVIDER_PREFIXES:
        if model.startswith(prefix):
            return provider_name
    return None


class ProviderRegistry:
    """Holds the configured adapters, keyed by provider name."""

    def __init__(self, providers: Dict[str, AIProvider], default: Optional[str] = None):
        if not providers:
            raise ValueError("At least one provider must be registered")
        self.providers = dict(providers)
        self.default = default if default in self.providers else next(iter(self.providers))

    def resolve(self, model: str) -> Tuple[AIProvider, Optional[str]]:
        """Return the adapter for ``model`` and the model id to pass it.

        When the owning provider is not configured the registry default serves
        the call with its own default model, signalled by a ``None`` model id.
        """
        owner = provider_for_model(model)
        if owner in self.providers:
            return self.providers[owner], model

        provider = self.providers[self.default]
        if isinstance(provider, MockProvider):
            return provider, model

        logger.warning(
            "No provider configured for model, using default",
            extra={"model": model, "owner": owner, "default_provider": self.default},
        )
        return provider, None

    def serves(self, model: str) -> bool:
        """Whether ``model`` reaches its own provider rather than the default stand-in."""
        if provider_for_model(model) in self.providers:
            return True
        return isinstance(self.providers[self.default], MockProvider)

    def get(self, name: str) -> AIProvider:
        try:
            return self.providers[name]
        except KeyError:
            raise ProviderError(
                f"Provider '{name}' is not configured",
                code=ErrorCode.INVALID_REQUEST,
                provider=name,
            ) from None

    def has(self, name: str) -> bool:
        return name in self.providers

    def names(self) -> list:
        return list(self.providers)


def build_registry(
    settings: Any,
    cache: Optional[ResponseCache] = None,
    retry_handler: Optional[RetryHandler] = None,
    key_generator: Optional[CacheKeyGenerator] = None,
) -> ProviderRegistry:
    """Create one adapter per configured credential."""
    shared: Dict[str, Any] = {
        "cache": cache,
        "retry_handler": retry_handler,
        "key_generator": key_generator,
        "cache_ttl_seconds": settings.cache_ttl_seconds,
    }

    if settings.use_mock_providers:
        logger.warning("Using mock AI providers, no upstream calls will be made")
        return ProviderRegistry({"mock": MockProvider(default_model=settings.default_model, **shared)})

    timeout = settings.ai_timeout_seconds
    providers: Dict[str, AIProvider] = {}
    if settings.has_openai_key:
        providers["openai"] = OpenAIProvider(
            api_key=settings.openai_api_key.get_secret_value(),
            default_model=settings.light_model,
            advanced_model=settings.advanced_model,
            timeout=timeout,
            temperature=settings.ai_temperature,
            **shared,
        )
    if settings.has_gemini_key:
        providers["gemini"] = GeminiProvider(
            api_key=settings.gemini_api_key.get_secret_value(),
            default_model=settings.multimodal_model,
            temperature=settings.ai_temperature,
            **shared,
        )
    if settings.has_reviewer_key:
        providers["anthropic"] = AnthropicProvider(
            api_key=settings.anthropic_api_key.get_secret_value(),
            default_model=settings.reviewer_model,
            timeout=timeout,
            temperature=settings.ai_temperature,
            **shared,
        )

    if not providers:
        raise ValueError(
            "No AI provider configured. Set OPENAI_API_KEY, GEMINI_API_KEY or "
            "ANTHROPIC_API_KEY, or USE_MOCK_PROVIDERS=true for local development."
        )

    default = provider_for_model(settings.default_model)
    return ProviderRegistry(providers, default=default)
