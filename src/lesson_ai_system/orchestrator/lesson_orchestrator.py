"""Lesson generation pipeline: validate, generate, enrich, review, persist."""

from typing import List, Optional, Union

import structlog
from pydantic import ValidationError

from lesson_ai_system.exceptions import (
    AppException,
    PersistenceException,
    ProviderFailureException,
    SafetyRejectionException,
    ValidationException,
    format_validation_errors,
)
from lesson_ai_system.providers.errors import ProviderError, UnsupportedOperationError
from lesson_ai_system.providers.registry import ProviderRegistry
from lesson_ai_system.schemas.ai import (
    ContentValidationResult,
    ProviderResponse,
    utcnow,
)
from lesson_ai_system.schemas.lesson import GenerationRequest, Lesson, LessonResource, PersistedLesson
from lesson_ai_system.storage.lesson_store import LessonStore
from lesson_ai_system.telemetry.metrics import lessons_generated

from .router import TaskRouter, TaskType

logger = structlog.get_logger(__name__)

LESSON_SCHEMA_VERSION = "1.0.0"

# Resource types taken from the multimodal provider's lesson
ENRICHMENT_RESOURCE_TYPES = frozenset({"video", "document"})


def _resource_identity(resource: LessonResource) -> tuple:
    if resource.url:
        return ("url", resource.url)
    return (resource.type, resource.title.strip().lower())


def merge_resources(primary: Lesson, secondary: Lesson) -> Lesson:
    """Return ``primary`` extended with the video/document resources of ``secondary``.

    Nothing else from ``secondary`` is kept. A resource is skipped when the
    lesson already lists its URL or, for resources without a URL, another
    resource of the same type and title.
    """
    seen = {_resource_identity(resource) for resource in primary.resources}
    extra: List[LessonResource] = []
    for resource in secondary.resources:
        if resource.type not in ENRICHMENT_RESOURCE_TYPES:
            continue
        identity = _resource_identity(resource)
        if identity in seen:
            continue
        seen.add(identity)
        extra.append(resource)
    if not extra:
        return primary
    return primary.model_copy(update={"resources": [*primary.resources, *extra]})


class LessonOrchestrator:
    """Runs one generation request end to end.

    Steps run strictly in order: validate, primary generate, conditional
    enrich, safety gate, persist. Failures leave this class only as
    ``AppException`` subclasses; provider-specific exceptions never escape.
    """

    def __init__(self, router: TaskRouter, registry: ProviderRegistry, store: LessonStore):
        self.router = router
        self.registry = registry
        self.store = store

    async def generate(
        self, payload: Union[GenerationRequest, dict], author_id: str
    ) -> PersistedLesson:
        """Generate, review and store a lesson for ``author_id``."""
        log = logger.bind(author_id=author_id)
        try:
            request = self.validate(payload)
            log = log.bind(subject=request.subject, topic=request.topic, grade=request.target_grade)

            primary = await self._generate_primary(request, log)
            lesson = await self._enrich(request, primary.data, log)
            await self._safety_gate(lesson, log)
            persisted = await self._persist(lesson, author_id, primary.model, log)
        except ValidationException:
            lessons_generated.labels(outcome="invalid").inc()
            raise
        except SafetyRejectionException:
            lessons_generated.labels(outcome="rejected").inc()
            raise
        except PersistenceException:
            lessons_generated.labels(outcome="persistence_error").inc()
            raise
        except ProviderError as e:
            lessons_generated.labels(outcome="provider_error").inc()
            log.error(
                "Lesson generation failed upstream",
                code=e.code.value,
                provider=e.provider,
                model=e.model,
                retryable=e.retryable,
                error=e.message,
            )
            raise ProviderFailureException(
                e.code.value, message="Lesson generation failed: AI provider unavailable"
            ) from e
        except AppException:
            lessons_generated.labels(outcome="error").inc()
            raise
        except Exception as e:
            lessons_generated.labels(outcome="error").inc()
            log.exception("Unexpected error during lesson generation", error_type=type(e).__name__)
            raise AppException("Lesson generation failed", "INTERNAL_ERROR", 500) from e

        lessons_generated.labels(outcome="success").inc()
        log.info("Lesson generated", lesson_id=persisted.id, model=primary.model)
        return persisted

    @staticmethod
    def validate(payload: Union[GenerationRequest, dict]) -> GenerationRequest:
        if isinstance(payload, GenerationRequest):
            return payload
        try:
            return GenerationRequest.model_validate(payload)
        except ValidationError as e:
            raise ValidationException(
                "Invalid lesson generation request", errors=format_validation_errors(e.errors())
            ) from e

    async def _generate_primary(self, request: GenerationRequest, log) -> ProviderResponse:
        model = self.router.route(TaskType.LESSON_GENERATION, request)
        provider, resolved = self.registry.resolve(model)
        try:
            return await provider.generate_lesson(request, model=resolved)
        except ProviderError as e:
            fallback = self.router.fallback_for(TaskType.LESSON_GENERATION, model)
            if not e.retryable or fallback is None or not self.registry.serves(fallback):
                raise
            log.warning(
                "Primary lesson model failed, trying fallback",
                model=model,
                fallback=fallback,
                code=e.code.value,
            )
            provider, resolved = self.registry.resolve(fallback)
            return await provider.generate_lesson(request, model=resolved)

    async def _enrich(self, request: GenerationRequest, lesson: Lesson, log) -> Lesson:
        if not request.mentions_visual_content():
            return lesson

        model = self.router.route(TaskType.MULTIMODAL_CONTENT, request)
        if not self.registry.serves(model):
            log.warning("No multimodal provider configured, skipping visual enrichment", model=model)
            return lesson

        provider, resolved = self.registry.resolve(model)
        try:
            secondary = await provider.generate_lesson(request, model=resolved)
        except ProviderError as e:
            log.warning(
                "Visual enrichment failed, keeping primary lesson",
                model=model,
                code=e.code.value,
                error=e.message,
            )
            return lesson

        enriched = merge_resources(lesson, secondary.data)
        log.info(
            "Lesson enriched with multimedia resources",
            model=secondary.model,
            added=len(enriched.resources) - len(lesson.resources),
        )
        return enriched

    async def _safety_gate(self, lesson: Lesson, log) -> None:
        model = self.router.route(TaskType.CONTENT_REVIEW)
        provider, resolved = self.registry.resolve(model)
        response = await provider.validate_content(
            lesson.model_dump_json(by_alias=True), model=resolved
        )
        verdict: ContentValidationResult = response.data
        if not verdict.is_appropriate:
            flags = list(verdict.flags)
            log.warning(
                "Lesson rejected by content review",
                reviewer=response.model,
                flags=flags,
                confidence=verdict.confidence_score,
            )
            raise SafetyRejectionException(flags=flags, suggestions=list(verdict.suggestions))

    async def _persist(self, lesson: Lesson, author_id: str, model: str, log) -> PersistedLesson:
        metadata = lesson.metadata.model_copy(
            update={
                "generated_by": model,
                "generated_at": utcnow(),
                "version": LESSON_SCHEMA_VERSION,
                "is_ai_generated": True,
            }
        )
        approved = lesson.model_copy(update={"metadata": metadata})
        try:
            return await self.store.create_lesson(author_id, approved)
        except Exception as e:
            log.exception(
                "Failed to persist approved lesson",
                title=approved.title,
                model=model,
                error_type=type(e).__name__,
            )
            raise PersistenceException() from e

    async def explain(self, query: str, context: Optional[str] = None) -> ProviderResponse:
        """Explain ``query`` with the explanation model."""
        model = self.router.route(TaskType.EXPLANATION_GENERATION)
        provider, resolved = self.registry.resolve(model)
        try:
            return await provider.generate_explanation(query, context, model=resolved)
        except ProviderError as e:
            logger.error("Explanation failed", model=model, code=e.code.value, error=e.message)
            raise ProviderFailureException(e.code.value, message="Failed to generate explanation") from e

    async def analyze_image(self, image_url: str, prompt: str) -> ProviderResponse:
        """Analyze an image with the multimodal model."""
        model = self.router.route(TaskType.MULTIMODAL_CONTENT)
        provider, resolved = self.registry.resolve(model)
        try:
            return await provider.analyze_image(image_url, prompt, model=resolved)
        except UnsupportedOperationError as e:
            raise ProviderFailureException(e.code.value, message=e.message, status_code=501) from e
        except ProviderError as e:
            logger.error("Image analysis failed", model=model, code=e.code.value, error=e.message)
            raise ProviderFailureException(e.code.value, message="Failed to analyze image") from e
