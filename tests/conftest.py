"""Pytest configuration and fixtures."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from lesson_ai_system.config.settings import Settings, get_settings

CREDENTIAL_VARS = (
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "ANTHROPIC_API_KEY",
    "OPENROUTER_API_KEY",
    "GROQ_API_KEY",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Run every test against mock providers with no external services."""
    for name in CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("USE_MOCK_PROVIDERS", "true")
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("LOG_FORMAT", "console")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def no_sleep():
    """Stand-in for asyncio.sleep so backoff delays cost nothing."""
    return AsyncMock()


@pytest.fixture
def mock_redis():
    redis = MagicMock()
    # Store data in memory for testing
    redis._data = {}

    async def mock_get(key):
        return redis._data.get(key)

    async def mock_setex(key, ttl, value):
        redis._data[key] = value
        return True

    async def mock_delete(key):
        if key in redis._data:
            del redis._data[key]
        return 1

    redis.get = AsyncMock(side_effect=mock_get)
    redis.setex = AsyncMock(side_effect=mock_setex)
    redis.delete = AsyncMock(side_effect=mock_delete)
    redis.ping = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_openai_client():
    client = MagicMock()
    client.chat = MagicMock()
    client.chat.completions = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def mock_anthropic_client():
    client = MagicMock()
    client.messages = MagicMock()
    client.messages.create = AsyncMock()
    return client


@pytest.fixture
def mock_gemini_client():
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock()
    return client


def openai_completion(content, model="gpt-3.5-turbo", prompt_tokens=12, completion_tokens=30):
    """Shape of an openai ChatCompletion, as far as the adapters read it."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        model=model,
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


@pytest.fixture
def generation_request():
    return {
        "subject": "Math",
        "topic": "Fractions",
        "targetGrade": 5,
        "lessonLength": "short",
    }


@pytest.fixture
def sample_lesson():
    return {
        "title": "Understanding Fractions",
        "subject": "Math",
        "topic": "Fractions",
        "targetGrade": 5,
        "difficulty": "beginner",
        "duration": "30 minutes",
        "keyConcepts": ["numerator", "denominator"],
        "sections": [
            {"id": "s1", "title": "What is a fraction?", "content": "A part of a whole.", "order": 1, "type": "introduction"}
        ],
        "exercises": [{"id": "e1", "question": "What is 1/2 + 1/4?", "answer": "3/4"}],
        "resources": [
            {"id": "r1", "type": "link", "url": "https://example.org/fractions", "title": "Fractions"}
        ],
        "metadata": {"estimatedDuration": 30, "readingLevel": "grade 5", "tags": ["math"]},
    }
