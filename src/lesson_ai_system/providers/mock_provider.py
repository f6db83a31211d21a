"""Mock provider for local development and tests without real API calls."""

import json
import re
from typing import Any, Dict, List, Optional

from lesson_ai_system.schemas.lesson import LESSON_LENGTH_MINUTES, GenerationRequest

from . import prompts
from .base import BaseProvider, Completion, usage_from_counts
from .errors import ProviderError, classify_message

_FIELD = re.compile(r"^(Subject|Topic|Grade Level|Length|Difficulty): (.+)$", re.MULTILINE)


class MockProvider(BaseProvider):
    """Answers every operation with canned, well-formed content."""

    name = "mock"

    def __init__(self, default_model: str = "mock-model", **kwargs: Any) -> None:
        super().__init__(default_model, **kwargs)
        self.calls: List[Dict[str, Any]] = []

    def lesson_messages(self, request: GenerationRequest, model: str) -> List[Dict[str, str]]:
        # Stand in for the multimodal adapter when routed a Gemini model
        return prompts.lesson_messages(request, multimedia=model.startswith("gemini"))

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
    ) -> Completion:
        system = messages[0]["content"] if messages and messages[0]["role"] == "system" else ""
        user = messages[-1]["content"] if messages else ""
        self.calls.append({"model": model, "system": system, "user": user})

        if system == prompts.LESSON_SYSTEM_PROMPT:
            text = json.dumps(self._lesson(user))
        elif system == prompts.REVIEW_SYSTEM_PROMPT:
            text = json.dumps(
                {"isAppropriate": True, "confidenceScore": 0.9, "flags": [], "suggestions": []}
            )
        else:
            text = f"Mock explanation: {user.splitlines()[-1] if user else ''}"

        return Completion(
            text=text,
            model=model,
            usage=usage_from_counts(len(user.split()), len(text.split())),
        )

    def map_error(self, error: Exception, model: str) -> ProviderError:
        return ProviderError(
            str(error), code=classify_message(str(error)), provider=self.name, model=model
        )

    @staticmethod
    def _lesson(prompt: str) -> Dict[str, Any]:
        fields = dict(_FIELD.findall(prompt))
        topic = fields.get("Topic", "the topic")
        subject = fields.get("Subject", "General")
        grade = int(fields.get("Grade Level", "1"))
        duration = LESSON_LENGTH_MINUTES.get(fields.get("Length", "medium"), 60)
        multimedia = "multimedia-rich" in prompt

        resources = [
            {
                "id": "res-1",
                "type": "link",
                "url": f"https://example.org/{subject.lower()}",
                "title": f"{subject} reference",
            }
        ]
        if multimedia:
            resources += [
                {
                    "id": "res-video",
                    "type": "video",
                    "url": f"https://example.org/videos/{topic.lower().replace(' ', '-')}",
                    "title": f"{topic} explained",
                },
                {
                    "id": "res-doc",
                    "type": "document",
                    "url": f"https://example.org/docs/{topic.lower().replace(' ', '-')}.pdf",
                    "title": f"{topic} worksheet",
                },
            ]

        return {
            "title": f"Introduction to {topic}",
            "subject": subject,
            "topic": topic,
            "targetGrade": grade,
            "difficulty": fields.get("Difficulty", "beginner"),
            "duration": duration,
            "prerequisites": [],
            "keyConcepts": [topic],
            "sections": [
                {"id": "s1", "title": "Introduction", "content": f"What is {topic}?", "order": 1, "type": "introduction"},
                {"id": "s2", "title": topic, "content": f"Working with {topic}.", "order": 2, "type": "content"},
                {"id": "s3", "title": "Summary", "content": f"{topic} in review.", "order": 3, "type": "summary"},
            ],
            "exercises": [
                {
                    "id": "e1",
                    "question": f"Describe {topic} in your own words.",
                    "type": "open-ended",
                    "difficulty": "easy",
                    "answer": f"A description of {topic}.",
                    "points": 10,
                }
            ],
            "resources": resources,
            "metadata": {"estimatedDuration": duration, "readingLevel": f"grade {grade}", "tags": [subject, topic]},
        }
