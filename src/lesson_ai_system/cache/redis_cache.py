"""
Redis-backed response cache shared by every worker process.
"""

import logging
import time
from typing import Any, Dict, Optional

import orjson
import redis.asyncio as redis
from pydantic import ValidationError
from redis.asyncio.connection import ConnectionPool

from lesson_ai_system.schemas.ai import ProviderResponse
from lesson_ai_system.telemetry.metrics import cache_hits, cache_misses

logger = logging.getLogger(__name__)


class RedisResponseCache:
    """Response cache stored in Redis. Expiry is enforced by Redis itself via SETEX."""

    backend = "redis"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        max_connections: int = 50,
        default_ttl_seconds: int = 3600,
        client: Optional[Any] = None,
    ):
        """
        Initialize Redis cache.

        Args:
            redis_url: Redis connection URL
            max_connections: Maximum number of connections in pool
            default_ttl_seconds: TTL applied when ``set`` is called without one
            client: Pre-built client, skips ``connect`` (used by tests)
        """
        self.redis_url = redis_url
        self.max_connections = max_connections
        self.default_ttl_seconds = default_ttl_seconds
        self.client = client
        self.pool: Optional[ConnectionPool] = None
        self._connected = client is not None

    async def connect(self) -> None:
        """Establish Redis connection with pooling."""
        self.pool = ConnectionPool.from_url(
            self.redis_url,
            max_connections=self.max_connections,
            decode_responses=False,
        )
        self.client = redis.Redis(connection_pool=self.pool)
        await self.client.ping()
        self._connected = True
        logger.info(f"Redis cache connected with {self.max_connections} max connections")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.client is not None and self.pool is not None:
            await self.client.aclose()
            await self.pool.disconnect()
        self._connected = False
        logger.info("Redis cache disconnected")

    async def get(self, key: str) -> Optional[ProviderResponse]:
        if not self._connected:
            logger.warning("Redis not connected, skipping cache lookup")
            return None

        try:
            data = await self.client.get(key)
        except (redis.RedisError, OSError) as e:
            logger.error(f"Cache get error: {e}")
            return None

        if not data:
            cache_misses.labels(backend=self.backend).inc()
            return None

        try:
            value = ProviderResponse.model_validate(orjson.loads(data))
        except (orjson.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Dropping unreadable cache entry {key[:48]}: {e}")
            await self.delete(key)
            cache_misses.labels(backend=self.backend).inc()
            return None

        cache_hits.labels(backend=self.backend).inc()
        logger.info(f"Cache hit for key: {key[:48]}...")
        return value

    async def set(self, key: str, value: ProviderResponse, ttl_seconds: Optional[int] = None) -> None:
        if not self._connected:
            logger.warning("Redis not connected, skipping cache write")
            return

        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        try:
            await self.client.setex(key, ttl, orjson.dumps(value.to_wire()))
        except (redis.RedisError, OSError) as e:
            logger.error(f"Cache set error: {e}")

    async def delete(self, key: str) -> None:
        if not self._connected:
            return
        try:
            await self.client.delete(key)
        except (redis.RedisError, OSError) as e:
            logger.error(f"Cache delete error: {e}")

    async def health_check(self) -> Dict[str, Any]:
        """Check cache health."""
        health: Dict[str, Any] = {
            "backend": self.backend,
            "connected": self._connected,
            "latency_ms": None,
        }
        if self._connected:
            try:
                start = time.time()
                await self.client.ping()
                health["latency_ms"] = (time.time() - start) * 1000
            except (redis.RedisError, OSError) as e:
                health["error"] = str(e)
                health["connected"] = False
        return health
