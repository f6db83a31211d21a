"""Application container and FastAPI dependencies.

Every collaborator (cache, providers, store, orchestrator) is built once per
application by ``build_container`` and reached through ``app.state``, so tests
can hand ``create_app`` a container made of fakes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis
from fastapi import Request
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncEngine

from lesson_ai_system.cache.cache_key_generator import CacheKeyGenerator
from lesson_ai_system.cache.redis_cache import RedisResponseCache
from lesson_ai_system.cache.response_cache import InMemoryResponseCache, ResponseCache
from lesson_ai_system.config.settings import Settings
from lesson_ai_system.database.session import close_db, create_engine, create_session_factory, init_db
from lesson_ai_system.exceptions import AuthenticationException
from lesson_ai_system.orchestrator.lesson_orchestrator import LessonOrchestrator
from lesson_ai_system.orchestrator.retry_handler import RetryHandler
from lesson_ai_system.orchestrator.router import RoutingTable, TaskRouter
from lesson_ai_system.providers.registry import ProviderRegistry, build_registry
from lesson_ai_system.services.chat_service import ChatService
from lesson_ai_system.storage.lesson_store import InMemoryLessonStore, LessonStore
from lesson_ai_system.storage.sql_store import SQLLessonStore

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-ID"


@dataclass
class AppContainer:
    """Everything a request handler needs."""

    settings: Settings
    router: TaskRouter
    registry: ProviderRegistry
    store: LessonStore
    orchestrator: LessonOrchestrator
    chat_service: ChatService
    cache: Optional[ResponseCache] = None
    engine: Optional[AsyncEngine] = None

    async def startup(self) -> None:
        if isinstance(self.cache, RedisResponseCache):
            try:
                await self.cache.connect()
            except (redis.RedisError, OSError) as e:
                logger.warning(f"Redis cache unavailable, continuing without it: {e}")
        if self.engine is not None:
            await init_db(self.engine)
            logger.info("Database initialized")

    async def shutdown(self) -> None:
        if isinstance(self.cache, RedisResponseCache):
            await self.cache.disconnect()
        await close_db(self.engine)


def build_cache(settings: Settings) -> Optional[ResponseCache]:
    if not settings.cache_enabled:
        return None
    if settings.cache_backend == "redis":
        return RedisResponseCache(
            redis_url=settings.redis_url,
            max_connections=settings.redis_max_connections,
            default_ttl_seconds=settings.cache_ttl_seconds,
        )
    return InMemoryResponseCache(default_ttl_seconds=settings.cache_ttl_seconds)


def build_router(settings: Settings, registry: ProviderRegistry) -> TaskRouter:
    """Routing policy for ``registry``; review goes to the reviewer only when it is registered."""
    return TaskRouter(
        RoutingTable.from_settings(settings),
        reviewer_configured=settings.has_reviewer_key and registry.has("anthropic"),
        fallback_enabled=settings.enable_fallback,
    )


def build_container(settings: Settings, store: Optional[LessonStore] = None) -> AppContainer:
    """Wire the application's collaborators from ``settings``."""
    cache = build_cache(settings)
    retry_handler = RetryHandler(
        max_retries=settings.ai_max_retries, timeout_ms=settings.ai_timeout_ms
    )
    registry = build_registry(
        settings,
        cache=cache,
        retry_handler=retry_handler,
        key_generator=CacheKeyGenerator(prefix=settings.cache_key_prefix),
    )
    router = build_router(settings, registry)

    engine = None
    if store is None:
        if settings.database_url:
            engine = create_engine(settings.database_url, echo=settings.debug)
            store = SQLLessonStore(create_session_factory(engine))
        else:
            logger.warning("DATABASE_URL not set, lessons are kept in memory")
            store = InMemoryLessonStore()

    return AppContainer(
        settings=settings,
        router=router,
        registry=registry,
        store=store,
        orchestrator=LessonOrchestrator(router, registry, store),
        chat_service=ChatService(settings),
        cache=cache,
        engine=engine,
    )


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_optional_user_id(request: Request) -> Optional[str]:
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    return user_id or None


def get_current_user_id(request: Request) -> str:
    """Caller identity as asserted by the authentication gateway."""
    user_id = get_optional_user_id(request)
    if user_id is None:
        raise AuthenticationException()
    return user_id


def get_rate_limit_key(request: Request) -> str:
    """Rate limit per user when known, per client address otherwise."""
    user_id = get_optional_user_id(request)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)
