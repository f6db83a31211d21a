"""Unit tests for response caches and cache keys."""

import orjson
import pytest

from lesson_ai_system.cache.cache_key_generator import CacheKeyGenerator
from lesson_ai_system.cache.redis_cache import RedisResponseCache
from lesson_ai_system.cache.response_cache import InMemoryResponseCache, ResponseCache
from lesson_ai_system.schemas.ai import ProviderResponse, TokenUsage
from lesson_ai_system.schemas.lesson import GenerationRequest


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def response():
    return ProviderResponse(
        data={"title": "Fractions"},
        model="gpt-3.5-turbo",
        provider="openai",
        usage=TokenUsage(prompt_tokens=10, completion_tokens=20, total_tokens=30),
    )


class TestInMemoryResponseCache:
    @pytest.mark.asyncio
    async def test_get_returns_stored_value(self, response):
        cache = InMemoryResponseCache()
        await cache.set("k", response, 60)
        assert await cache.get("k") == response

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss_and_evicted(self, response):
        clock = FakeClock()
        cache = InMemoryResponseCache(clock=clock)
        await cache.set("k", response, 60)

        clock.now += 59
        assert await cache.get("k") is not None

        clock.now += 1
        assert await cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_default_ttl(self, response):
        clock = FakeClock()
        cache = InMemoryResponseCache(default_ttl_seconds=10, clock=clock)
        await cache.set("k", response)
        clock.now += 11
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_last_write_wins(self, response):
        cache = InMemoryResponseCache()
        newer = response.model_copy(update={"model": "gpt-4"})
        await cache.set("k", response)
        await cache.set("k", newer)
        assert (await cache.get("k")).model == "gpt-4"

    @pytest.mark.asyncio
    async def test_delete(self, response):
        cache = InMemoryResponseCache()
        await cache.set("k", response)
        await cache.delete("k")
        await cache.delete("missing")
        assert await cache.get("k") is None

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryResponseCache(), ResponseCache)


class TestRedisResponseCache:
    @pytest.mark.asyncio
    async def test_round_trip_uses_setex(self, mock_redis, response):
        cache = RedisResponseCache(client=mock_redis, default_ttl_seconds=120)
        await cache.set("k", response)

        mock_redis.setex.assert_awaited_once()
        key, ttl, _ = mock_redis.setex.await_args.args
        assert (key, ttl) == ("k", 120)

        cached = await cache.get("k")
        assert cached.model == "gpt-3.5-turbo"
        assert cached.usage.total_tokens == 30
        assert cached.data == {"title": "Fractions"}

    @pytest.mark.asyncio
    async def test_miss(self, mock_redis):
        cache = RedisResponseCache(client=mock_redis)
        assert await cache.get("absent") is None

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_dropped(self, mock_redis):
        mock_redis._data["k"] = orjson.dumps({"unexpected": True})
        cache = RedisResponseCache(client=mock_redis)

        assert await cache.get("k") is None
        assert "k" not in mock_redis._data

    @pytest.mark.asyncio
    async def test_backend_errors_degrade_to_miss(self, mock_redis, response):
        mock_redis.get.side_effect = ConnectionError("redis down")
        cache = RedisResponseCache(client=mock_redis)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_disconnected_cache_skips_backend(self, response):
        cache = RedisResponseCache()
        await cache.set("k", response)
        assert await cache.get("k") is None


class TestCacheKeyGenerator:
    def test_identical_requests_share_a_key(self):
        keys = CacheKeyGenerator()
        first = GenerationRequest(subject="Math", topic="Fractions", target_grade=5, lesson_length="short")
        second = GenerationRequest.model_validate(
            {"lessonLength": "short", "targetGrade": 5, "topic": "Fractions", "subject": "Math"}
        )
        assert keys.generate_key("lesson", first, "m") == keys.generate_key("lesson", second, "m")

    def test_key_depends_on_content_model_and_namespace(self):
        keys = CacheKeyGenerator(prefix="t:")
        base = keys.generate_key("lesson", {"topic": "Fractions"}, "m")
        assert base.startswith("t:lesson:")
        assert keys.generate_key("lesson", {"topic": "Decimals"}, "m") != base
        assert keys.generate_key("lesson", {"topic": "Fractions"}, "other") != base
        assert keys.generate_key("review", {"topic": "Fractions"}, "m") != base

    def test_none_values_are_ignored(self):
        keys = CacheKeyGenerator()
        assert keys.generate_key("x", {"a": 1, "b": None}) == keys.generate_key("x", {"a": 1})
