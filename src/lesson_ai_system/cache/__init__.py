"""Response caching for provider calls."""

from .cache_key_generator import CacheKeyGenerator
from .redis_cache import RedisResponseCache
from .response_cache import CacheEntry, InMemoryResponseCache, ResponseCache

__all__ = [
    "CacheEntry",
    "CacheKeyGenerator",
    "InMemoryResponseCache",
    "RedisResponseCache",
    "ResponseCache",
]
