"""Fixtures for HTTP-level tests."""

import pytest
from fastapi.testclient import TestClient

from lesson_ai_system.server.dependencies import build_container
from lesson_ai_system.server.main import create_app

AUTHOR = {"X-User-ID": "author-1"}
LEARNER = {"X-User-ID": "learner-1"}


@pytest.fixture
def container(settings):
    return build_container(settings)


@pytest.fixture
def client(container):
    app = create_app(container=container)
    with TestClient(app) as test_client:
        yield test_client
