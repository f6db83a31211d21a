"""Async database engine and session factory."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

_ASYNC_DRIVERS = (
    ("postgresql://", "postgresql+asyncpg://"),
    ("sqlite:///", "sqlite+aiosqlite:///"),
)


def async_database_url(database_url: str) -> str:
    """Rewrite a plain database URL to use its asyncio driver."""
    for prefix, async_prefix in _ASYNC_DRIVERS:
        if database_url.startswith(prefix):
            return async_prefix + database_url[len(prefix):]
    return database_url


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for ``database_url``."""
    url = async_database_url(database_url)
    kwargs = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        kwargs.update(pool_size=20, max_overflow=10, pool_recycle=3600)
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create the tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: Optional[AsyncEngine]) -> None:
    """Close database connection."""
    if engine is not None:
        await engine.dispose()
