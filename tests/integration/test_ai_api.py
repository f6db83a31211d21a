"""End-to-end tests for the AI helper, health and metrics endpoints."""

import pytest

from .conftest import LEARNER

pytestmark = pytest.mark.integration


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["health"] == "/api/health"


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["providers"] == ["mock"]
    assert body["environment"] == "test"


def test_metrics(client, generation_request):
    client.post("/api/lessons/generate", json=generation_request, headers=LEARNER)

    response = client.get("/api/metrics")

    assert response.status_code == 200
    assert "lessons_generated_total" in response.text


def test_request_id_header(client):
    response = client.get("/api/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"
    assert "X-Process-Time" in response.headers


def test_unknown_route_error_shape(client):
    response = client.get("/api/nowhere")

    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Not Found", "code": "HTTP_404"}


def test_explain(client):
    response = client.post(
        "/api/ai/explain", json={"query": "Why is the sky blue?"}, headers=LEARNER
    )

    assert response.status_code == 200
    body = response.json()
    assert body["explanation"].startswith("Mock explanation")
    assert body["cached"] is False


def test_explain_requires_query(client):
    response = client.post("/api/ai/explain", json={"context": "Grade 5 science"}, headers=LEARNER)

    assert response.status_code == 400
    assert response.json()["details"]["errors"][0]["field"] == "query"


def test_explain_empty_body_reports_a_field(client):
    response = client.post("/api/ai/explain", json={}, headers=LEARNER)

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"]["errors"][0]["field"] in ("query", "body")


def test_analyze_image_unsupported_in_mock_mode(client):
    response = client.post(
        "/api/ai/analyze-image",
        json={"imageUrl": "https://example.org/cell.png"},
        headers=LEARNER,
    )

    assert response.status_code == 501
    assert response.json()["code"] == "INVALID_REQUEST"


def test_analyze_image_rejects_non_http_url(client):
    response = client.post(
        "/api/ai/analyze-image", json={"imageUrl": "file:///etc/passwd"}, headers=LEARNER
    )

    assert response.status_code == 400


def test_chat_without_upstreams(client):
    response = client.post("/api/ai/chat", json={"message": "hi"}, headers=LEARNER)

    assert response.status_code == 503
    assert response.json()["code"] == "SERVICE_UNAVAILABLE"


def test_chat_requires_user(client):
    assert client.post("/api/ai/chat", json={"message": "hi"}).status_code == 401


def test_ai_health(client):
    response = client.get("/api/ai/health")

    assert response.status_code == 200
    body = response.json()
    assert body["chat"]["available"] is False
    assert body["routing"]["multimodal_content"] == "gemini-1.5-flash"
