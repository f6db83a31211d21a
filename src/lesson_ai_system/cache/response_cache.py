"""
Response cache contract and the in-process TTL implementation.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

from lesson_ai_system.schemas.ai import ProviderResponse
from lesson_ai_system.telemetry.metrics import cache_hits, cache_misses

logger = logging.getLogger(__name__)


@runtime_checkable
class ResponseCache(Protocol):
    """Keyed store of provider responses with per-entry TTL."""

    async def get(self, key: str) -> Optional[ProviderResponse]:
        ...

    async def set(self, key: str, value: ProviderResponse, ttl_seconds: Optional[int] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: ProviderResponse
    expires_at: float


class InMemoryResponseCache:
    """Process-local cache. Expired entries are dropped when read."""

    backend = "memory"

    def __init__(
        self,
        default_ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl_seconds: TTL applied when ``set`` is called without one
            clock: Monotonic time source, in seconds
        """
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[ProviderResponse]:
        entry = self._entries.get(key)
        if entry is None:
            cache_misses.labels(backend=self.backend).inc()
            return None

        if entry.expires_at <= self._clock():
            # Lazy eviction
            self._entries.pop(key, None)
            cache_misses.labels(backend=self.backend).inc()
            logger.debug("Cache entry expired", extra={"cache_key": key})
            return None

        cache_hits.labels(backend=self.backend).inc()
        return entry.value

    async def set(self, key: str, value: ProviderResponse, ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    async def health_check(self) -> Dict[str, object]:
        return {"backend": self.backend, "connected": True, "entries": len(self._entries)}
