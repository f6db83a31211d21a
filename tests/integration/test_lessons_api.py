"""End-to-end tests for the lesson endpoints in mock provider mode."""

from unittest.mock import AsyncMock

import pytest

from lesson_ai_system.schemas.ai import ContentValidationResult, ProviderResponse

from .conftest import AUTHOR, LEARNER

pytestmark = pytest.mark.integration


def generate(client, payload, headers=AUTHOR):
    return client.post("/api/lessons/generate", json=payload, headers=headers)


class TestGenerate:
    def test_generate_fractions_lesson(self, client, generation_request):
        response = generate(client, generation_request)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        lesson = body["lesson"]
        assert lesson["id"]
        assert lesson["authorId"] == "author-1"
        assert lesson["status"] == "draft"
        assert lesson["title"] == "Introduction to Fractions"
        assert lesson["metadata"]["isAIGenerated"] is True
        assert lesson["metadata"]["generatedBy"] == "gpt-3.5-turbo"
        assert lesson["metadata"]["version"] == "1.0.0"

    def test_visual_request_adds_media(self, client, generation_request):
        response = generate(
            client, {**generation_request, "additionalInstructions": "Add visual aids"}
        )

        assert response.status_code == 200
        types = [r["type"] for r in response.json()["lesson"]["resources"]]
        assert types == ["link", "video", "document"]

    def test_requires_user(self, client, generation_request):
        response = generate(client, generation_request, headers={})

        assert response.status_code == 401
        assert response.json() == {
            "status": "error",
            "message": "Authentication required",
            "code": "AUTHENTICATION_REQUIRED",
        }

    def test_invalid_grade(self, client, generation_request):
        response = generate(client, {**generation_request, "targetGrade": 13})

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]["errors"][0]["field"] == "targetGrade"

    def test_unknown_field_rejected(self, client, generation_request):
        response = generate(client, {**generation_request, "model": "gpt-4"})

        assert response.status_code == 400

    def test_rejected_content(self, client, container, generation_request):
        verdict = ContentValidationResult(
            is_appropriate=False, confidence_score=0.7, flags=["violence"], suggestions=["Tone it down"]
        )
        container.registry.get("mock").validate_content = AsyncMock(
            return_value=ProviderResponse(data=verdict, model="gpt-3.5-turbo", provider="mock")
        )

        response = generate(client, generation_request)

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "CONTENT_REJECTED"
        assert body["details"] == {"flags": ["violence"], "suggestions": ["Tone it down"]}
        assert client.get("/api/lessons").json()["total"] == 0


class TestCatalogue:
    def test_list_and_get(self, client, generation_request):
        first = generate(client, generation_request).json()["lesson"]
        generate(client, {**generation_request, "subject": "Science", "topic": "Plants"})

        listing = client.get("/api/lessons", params={"limit": 1})
        assert listing.status_code == 200
        page = listing.json()
        assert page["total"] == 2
        assert page["hasMore"] is True
        assert len(page["items"]) == 1

        science = client.get("/api/lessons", params={"subject": "Science"}).json()
        assert [item["topic"] for item in science["items"]] == ["Plants"]

        fetched = client.get(f"/api/lessons/{first['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["lesson"]["title"] == first["title"]

    def test_missing_lesson(self, client):
        response = client.get("/api/lessons/nope")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 101}, {"difficulty": "expert"}])
    def test_invalid_query(self, client, params):
        response = client.get("/api/lessons", params=params)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestProgress:
    def test_progress_lifecycle(self, client, generation_request):
        lesson_id = generate(client, generation_request).json()["lesson"]["id"]
        url = f"/api/lessons/{lesson_id}/progress"

        assert client.get(url, headers=LEARNER).status_code == 404

        started = client.put(url, json={"status": "in-progress", "progress": 30}, headers=LEARNER)
        assert started.status_code == 200
        assert started.json()["progress"]["startedAt"] is not None

        done = client.put(url, json={"status": "completed"}, headers=LEARNER)
        progress = done.json()["progress"]
        assert progress["progress"] == 100
        assert progress["completedAt"] is not None

        current = client.get(url, headers=LEARNER).json()["progress"]
        assert current["status"] == "completed"
        assert current["userId"] == "learner-1"

    def test_progress_for_missing_lesson(self, client):
        response = client.put("/api/lessons/nope/progress", json={"progress": 10}, headers=LEARNER)

        assert response.status_code == 404

    def test_progress_requires_user(self, client):
        assert client.get("/api/lessons/any/progress").status_code == 401

    def test_progress_out_of_range(self, client, generation_request):
        lesson_id = generate(client, generation_request).json()["lesson"]["id"]

        response = client.put(
            f"/api/lessons/{lesson_id}/progress", json={"progress": 150}, headers=LEARNER
        )

        assert response.status_code == 400

    def test_rating_out_of_range(self, client, generation_request):
        lesson_id = generate(client, generation_request).json()["lesson"]["id"]

        response = client.put(
            f"/api/lessons/{lesson_id}/progress",
            json={"status": "completed", "rating": 6},
            headers=LEARNER,
        )

        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["field"] == "rating"


class TestAnalytics:
    def test_views_and_completions(self, client, generation_request):
        lesson_id = generate(client, generation_request).json()["lesson"]["id"]

        # Anonymous reads are not counted
        client.get(f"/api/lessons/{lesson_id}")
        client.get(f"/api/lessons/{lesson_id}", headers=LEARNER)
        client.get(f"/api/lessons/{lesson_id}", headers=AUTHOR)
        client.put(
            f"/api/lessons/{lesson_id}/progress",
            json={
                "status": "completed",
                "timeSpent": 900,
                "rating": 4,
                "struggledSections": ["s1"],
                "exerciseResults": [{"exerciseId": "e1", "correct": True}],
            },
            headers=LEARNER,
        )

        response = client.get(f"/api/lessons/{lesson_id}/analytics", headers=AUTHOR)

        assert response.status_code == 200
        analytics = response.json()["analytics"]
        assert analytics["lessonId"] == lesson_id
        assert analytics["views"] == 2
        assert analytics["completions"] == 1
        assert analytics["averageTimeSpent"] == 900
        assert analytics["difficultyRating"] == 4
        assert analytics["struggledSections"] == ["s1"]
        assert analytics["exerciseAttempts"] == 1
        assert analytics["exerciseCorrect"] == 1
        assert analytics["learners"] == 1
        assert analytics["averageProgress"] == 100

    def test_view_tracking_failure_still_returns_lesson(self, client, container, generation_request):
        lesson_id = generate(client, generation_request).json()["lesson"]["id"]
        container.store.record_view = AsyncMock(side_effect=RuntimeError("analytics down"))

        response = client.get(f"/api/lessons/{lesson_id}", headers=LEARNER)

        assert response.status_code == 200
        assert response.json()["lesson"]["id"] == lesson_id

    def test_analytics_for_missing_lesson(self, client):
        response = client.get("/api/lessons/nope/analytics", headers=AUTHOR)

        assert response.status_code == 404

    def test_analytics_requires_user(self, client):
        assert client.get("/api/lessons/any/analytics").status_code == 401
