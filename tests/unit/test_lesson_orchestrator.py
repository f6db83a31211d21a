"""Unit tests for the lesson generation pipeline."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lesson_ai_system.cache.response_cache import InMemoryResponseCache
from lesson_ai_system.exceptions import (
    AppException,
    ErrorCode,
    PersistenceException,
    ProviderFailureException,
    SafetyRejectionException,
    ValidationException,
)
from lesson_ai_system.orchestrator.lesson_orchestrator import LessonOrchestrator, merge_resources
from lesson_ai_system.orchestrator.retry_handler import RetryHandler
from lesson_ai_system.orchestrator.router import RoutingTable, TaskRouter
from lesson_ai_system.providers.errors import ProviderError
from lesson_ai_system.providers.mock_provider import MockProvider
from lesson_ai_system.providers.openai_provider import OpenAIProvider
from lesson_ai_system.providers.registry import ProviderRegistry
from lesson_ai_system.schemas.ai import ContentValidationResult, ProviderResponse
from lesson_ai_system.schemas.lesson import Lesson
from lesson_ai_system.storage.lesson_store import InMemoryLessonStore
from tests.conftest import openai_completion

APPROVED = ContentValidationResult(is_appropriate=True, confidence_score=0.95)


def lesson_response(payload, model, provider):
    return ProviderResponse(data=Lesson.model_validate(payload), model=model, provider=provider)


def make_provider(name, lesson=None, model=None, verdict=APPROVED):
    provider = MagicMock()
    provider.name = name
    if lesson is not None:
        provider.generate_lesson = AsyncMock(return_value=lesson_response(lesson, model, name))
    else:
        provider.generate_lesson = AsyncMock()
    provider.validate_content = AsyncMock(
        return_value=ProviderResponse(data=verdict, model=model or name, provider=name)
    )
    return provider


@pytest.fixture
def secondary_lesson(sample_lesson):
    return {
        **sample_lesson,
        "title": "Fractions in Pictures",
        "resources": [
            {"id": "v1", "type": "video", "url": "https://video.example.org/fractions", "title": "Video"},
            {"id": "d1", "type": "document", "url": "https://docs.example.org/fractions.pdf", "title": "Worksheet"},
            {"id": "l1", "type": "link", "url": "https://other.example.org", "title": "Another link"},
            {"id": "c1", "type": "code", "url": "https://code.example.org", "title": "Snippet"},
        ],
    }


@pytest.fixture
def openai(sample_lesson):
    return make_provider("openai", sample_lesson, "gpt-3.5-turbo")


@pytest.fixture
def gemini(secondary_lesson):
    return make_provider("gemini", secondary_lesson, "gemini-1.5-flash")


@pytest.fixture
def store():
    return InMemoryLessonStore()


@pytest.fixture
def orchestrator(openai, gemini, store):
    registry = ProviderRegistry({"openai": openai, "gemini": gemini}, default="openai")
    return LessonOrchestrator(TaskRouter(RoutingTable()), registry, store)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_fractions_example(self, orchestrator, openai, gemini, store, generation_request):
        lesson = await orchestrator.generate(generation_request, author_id="author-1")

        openai.generate_lesson.assert_awaited_once()
        assert openai.generate_lesson.await_args.kwargs["model"] == "gpt-3.5-turbo"
        gemini.generate_lesson.assert_not_awaited()
        openai.validate_content.assert_awaited_once()

        assert lesson.author_id == "author-1"
        assert lesson.status == "draft"
        assert lesson.metadata.is_ai_generated is True
        assert lesson.metadata.generated_by == "gpt-3.5-turbo"
        assert lesson.metadata.version == "1.0.0"
        assert lesson.metadata.generated_at is not None
        assert await store.get_lesson_by_id(lesson.id) == lesson
        assert lesson.to_wire()["metadata"]["isAIGenerated"] is True

    @pytest.mark.asyncio
    async def test_advanced_request_uses_advanced_model(self, orchestrator, openai, generation_request):
        await orchestrator.generate({**generation_request, "targetGrade": 10}, author_id="t")

        assert openai.generate_lesson.await_args.kwargs["model"] == "gpt-4-turbo-preview"

    @pytest.mark.asyncio
    async def test_review_sees_serialized_lesson(self, orchestrator, openai, generation_request):
        await orchestrator.generate(generation_request, author_id="t")

        content = openai.validate_content.await_args.args[0]
        assert '"title":"Understanding Fractions"' in content
        assert '"targetGrade":5' in content


class TestEnrichment:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("instructions", ["Include visual aids", "Lots of VISUALS please"])
    async def test_visual_request_merges_media_resources(
        self, orchestrator, gemini, sample_lesson, generation_request, instructions
    ):
        lesson = await orchestrator.generate(
            {**generation_request, "additionalInstructions": instructions}, author_id="t"
        )

        gemini.generate_lesson.assert_awaited_once()
        assert gemini.generate_lesson.await_args.kwargs["model"] == "gemini-1.5-flash"

        urls = [r.url for r in lesson.resources]
        primary_urls = [r["url"] for r in sample_lesson["resources"]]
        assert set(primary_urls) <= set(urls)
        added = [r for r in lesson.resources if r.url not in primary_urls]
        assert {r.type for r in added} == {"video", "document"}
        # Only resources are taken from the secondary lesson
        assert lesson.title == "Understanding Fractions"

    @pytest.mark.asyncio
    async def test_enrichment_failure_keeps_primary_lesson(
        self, orchestrator, gemini, sample_lesson, generation_request
    ):
        gemini.generate_lesson.side_effect = ProviderError("network down", code=ErrorCode.NETWORK_ERROR)

        lesson = await orchestrator.generate(
            {**generation_request, "additionalInstructions": "visual examples"}, author_id="t"
        )

        assert len(lesson.resources) == len(sample_lesson["resources"])

    def test_merge_skips_duplicate_urls(self, sample_lesson):
        primary = Lesson.model_validate(sample_lesson)
        secondary = Lesson.model_validate(
            {
                **sample_lesson,
                "resources": [
                    {"type": "video", "url": "https://example.org/fractions"},
                    {"type": "video", "url": "https://v.example.org/1"},
                    {"type": "video", "url": "https://v.example.org/1"},
                ],
            }
        )

        merged = merge_resources(primary, secondary)

        assert [r.url for r in merged.resources] == [
            "https://example.org/fractions",
            "https://v.example.org/1",
        ]
        assert primary.resources == Lesson.model_validate(sample_lesson).resources

    def test_merge_skips_duplicate_untitled_resources(self, sample_lesson):
        primary = Lesson.model_validate(
            {**sample_lesson, "resources": [{"type": "video", "title": "Fractions explained"}]}
        )
        secondary = Lesson.model_validate(
            {
                **sample_lesson,
                "resources": [
                    {"type": "video", "title": "Fractions Explained "},
                    {"type": "document", "url": "https://d.example.org/x.pdf"},
                    {"type": "document", "title": "Worksheet"},
                    {"type": "document", "title": "worksheet"},
                ],
            }
        )

        merged = merge_resources(primary, secondary)

        assert [(r.type, r.url, r.title) for r in merged.resources] == [
            ("video", "", "Fractions explained"),
            ("document", "https://d.example.org/x.pdf", ""),
            ("document", "", "Worksheet"),
        ]

    @pytest.mark.asyncio
    async def test_enrichment_skipped_without_multimodal_provider(
        self, mock_openai_client, no_sleep, sample_lesson, generation_request
    ):
        approved = {"isAppropriate": True, "confidenceScore": 0.9, "flags": [], "suggestions": []}
        mock_openai_client.chat.completions.create.side_effect = [
            openai_completion(sample_lesson),
            openai_completion(approved),
        ]
        provider = OpenAIProvider(
            api_key="sk-test",
            client=mock_openai_client,
            cache=InMemoryResponseCache(),
            retry_handler=RetryHandler(sleep=no_sleep),
        )
        orchestrator = LessonOrchestrator(
            TaskRouter(RoutingTable()), ProviderRegistry({"openai": provider}), InMemoryLessonStore()
        )

        lesson = await orchestrator.generate(
            {**generation_request, "additionalInstructions": "add visual aids"}, author_id="t"
        )

        assert mock_openai_client.chat.completions.create.await_count == 2
        assert [r.url for r in lesson.resources] == ["https://example.org/fractions"]


class TestSafetyGate:
    @pytest.mark.asyncio
    async def test_rejected_lesson_is_not_persisted(self, sample_lesson, generation_request):
        verdict = ContentValidationResult(
            is_appropriate=False,
            confidence_score=0.8,
            flags=[{"type": "sensitivity", "severity": "high", "explanation": "Graphic example"}, "tone"],
            suggestions=["Use a gentler example"],
        )
        provider = make_provider("openai", sample_lesson, "gpt-3.5-turbo", verdict=verdict)
        store = MagicMock()
        store.create_lesson = AsyncMock()
        orchestrator = LessonOrchestrator(
            TaskRouter(RoutingTable()), ProviderRegistry({"openai": provider}), store
        )

        with pytest.raises(SafetyRejectionException) as exc_info:
            await orchestrator.generate(generation_request, author_id="t")

        store.create_lesson.assert_not_awaited()
        assert exc_info.value.status_code == 422
        assert exc_info.value.details == {
            "flags": [
                {"type": "sensitivity", "severity": "high", "explanation": "Graphic example"},
                "tone",
            ],
            "suggestions": ["Use a gentler example"],
        }

    @pytest.mark.asyncio
    async def test_reviewer_flags_reach_caller_unchanged(
        self, mock_openai_client, no_sleep, sample_lesson, generation_request
    ):
        flags = [{"issue": "graphic violence", "location": "section 2"}, "needs citation"]
        suggestions = [{"section": "s1", "rewrite": "Use a gentler example"}]
        mock_openai_client.chat.completions.create.side_effect = [
            openai_completion(sample_lesson),
            openai_completion(
                {"isAppropriate": False, "confidenceScore": 0.8, "flags": flags, "suggestions": suggestions}
            ),
        ]
        provider = OpenAIProvider(
            api_key="sk-test", client=mock_openai_client, retry_handler=RetryHandler(sleep=no_sleep)
        )
        store = MagicMock()
        store.create_lesson = AsyncMock()
        orchestrator = LessonOrchestrator(
            TaskRouter(RoutingTable()), ProviderRegistry({"openai": provider}), store
        )

        with pytest.raises(SafetyRejectionException) as exc_info:
            await orchestrator.generate(generation_request, author_id="t")

        assert exc_info.value.details == {"flags": flags, "suggestions": suggestions}
        store.create_lesson.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_configured_reviewer_is_used(self, openai, sample_lesson, generation_request, store):
        reviewer = make_provider("anthropic", model="claude-3-haiku-20240307")
        orchestrator = LessonOrchestrator(
            TaskRouter(RoutingTable(), reviewer_configured=True),
            ProviderRegistry({"openai": openai, "anthropic": reviewer}),
            store,
        )

        await orchestrator.generate(generation_request, author_id="t")

        reviewer.validate_content.assert_awaited_once()
        assert reviewer.validate_content.await_args.kwargs["model"] == "claude-3-haiku-20240307"
        openai.validate_content.assert_not_awaited()


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"subject": "Math", "topic": "Fractions", "targetGrade": 13, "lessonLength": "short"},
            {"subject": "Math", "targetGrade": 5, "lessonLength": "short"},
            {"subject": "Math", "topic": "Fractions", "targetGrade": 5, "lessonLength": "epic"},
            {"subject": "Math", "topic": "Fractions", "targetGrade": 5, "lessonLength": "short", "difficulty": "expert"},
        ],
    )
    async def test_invalid_input_never_reaches_a_provider(self, orchestrator, openai, payload):
        with pytest.raises(ValidationException) as exc_info:
            await orchestrator.generate(payload, author_id="t")

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["errors"]
        openai.generate_lesson.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retryable_failure_falls_back_to_multimodal_model(
        self, orchestrator, openai, gemini, generation_request
    ):
        openai.generate_lesson.side_effect = ProviderError(
            "rate limit", code=ErrorCode.RATE_LIMIT_EXCEEDED, provider="openai"
        )

        lesson = await orchestrator.generate(generation_request, author_id="t")

        assert gemini.generate_lesson.await_args.kwargs["model"] == "gemini-1.5-flash"
        assert lesson.metadata.generated_by == "gemini-1.5-flash"

    @pytest.mark.asyncio
    async def test_non_retryable_failure_surfaces_code(
        self, orchestrator, openai, gemini, generation_request
    ):
        openai.generate_lesson.side_effect = ProviderError(
            "invalid api key", code=ErrorCode.INVALID_REQUEST, provider="openai"
        )

        with pytest.raises(ProviderFailureException) as exc_info:
            await orchestrator.generate(generation_request, author_id="t")

        assert exc_info.value.error_code == "INVALID_REQUEST"
        assert exc_info.value.status_code == 502
        gemini.generate_lesson.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_is_a_persistence_error(self, openai, generation_request):
        store = MagicMock()
        store.create_lesson = AsyncMock(side_effect=RuntimeError("connection refused"))
        orchestrator = LessonOrchestrator(
            TaskRouter(RoutingTable()), ProviderRegistry({"openai": openai}), store
        )

        with pytest.raises(PersistenceException) as exc_info:
            await orchestrator.generate(generation_request, author_id="t")

        assert exc_info.value.status_code == 500
        assert "connection refused" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, orchestrator, openai, generation_request):
        openai.validate_content.side_effect = KeyError("isAppropriate")

        with pytest.raises(AppException) as exc_info:
            await orchestrator.generate(generation_request, author_id="t")

        assert exc_info.value.status_code == 500
        assert exc_info.value.error_code == "INTERNAL_ERROR"
        assert exc_info.value.message == "Lesson generation failed"


class TestHelpers:
    @pytest.fixture
    def mock_orchestrator(self, store):
        registry = ProviderRegistry({"mock": MockProvider()})
        return LessonOrchestrator(TaskRouter(RoutingTable()), registry, store)

    @pytest.mark.asyncio
    async def test_explain(self, mock_orchestrator):
        response = await mock_orchestrator.explain("Why do we flip the fraction?")
        assert response.data.startswith("Mock explanation")

    @pytest.mark.asyncio
    async def test_image_analysis_without_multimodal_provider(self, mock_orchestrator):
        with pytest.raises(ProviderFailureException) as exc_info:
            await mock_orchestrator.analyze_image("https://example.org/a.png", "Describe")

        assert exc_info.value.status_code == 501
        assert exc_info.value.error_code == "INVALID_REQUEST"
