"""Chat brokering over OpenAI-compatible upstreams (OpenRouter, then Groq)."""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog
from openai import AsyncOpenAI

from lesson_ai_system.exceptions import ErrorCode, ProviderFailureException
from lesson_ai_system.orchestrator.retry_handler import RetryHandler
from lesson_ai_system.providers.errors import ProviderError
from lesson_ai_system.providers.openai_provider import map_openai_error
from lesson_ai_system.schemas.chat import ChatReply, ChatRequest
from lesson_ai_system.telemetry.metrics import chat_fallbacks

logger = structlog.get_logger(__name__)

# Checked in order; the first pattern that matches picks the tier.
TIER_PATTERNS = (
    (
        "expert",
        re.compile(
            r"\b(code|function|javascript|typescript|python|debug|implement|algorithm"
            r"|syntax|program|variable|class|method)\b"
        ),
    ),
    (
        "smart",
        re.compile(
            r"\b(explain|why|how|analyze|compare|theory|concept|research|mechanism"
            r"|complex|quantum|difference)\b"
        ),
    ),
    ("balanced", re.compile(r"\b(what|tell|describe|define|list|summarize)\b")),
)
SHORT_MESSAGE_WORDS = 10

OPENROUTER_MODELS = {
    "fast": "google/gemma-3-12b-it:free",
    "balanced": "google/gemma-3-12b-it:free",
    "smart": "nvidia/llama-3.1-nemotron-nano-12b-v1:free",
    "expert": "nvidia/llama-3.1-nemotron-nano-12b-v1:free",
    "gemma-4b": "google/gemma-3-4b-it:free",
    "llama-70b": "meta-llama/llama-3.3-70b-instruct:free",
}

# OpenRouter links tried per tier, before Groq
TIER_CHAINS = {
    "fast": ("balanced", "gemma-4b"),
    "balanced": ("balanced", "gemma-4b"),
    "smart": ("expert", "balanced", "llama-70b", "gemma-4b"),
    "expert": ("expert", "balanced", "llama-70b", "gemma-4b"),
}

CHAT_TEMPERATURE = 0.7


@dataclass(frozen=True)
class ChatLink:
    """One model in a fallback chain."""

    provider: str
    model: str
    tier: str


def classify_tier(message: str) -> str:
    """Pick the model tier for a learner message."""
    lower = message.lower()
    for tier, pattern in TIER_PATTERNS:
        if pattern.search(lower):
            return tier
    if len(message.split()) < SHORT_MESSAGE_WORDS:
        return "fast"
    return "balanced"


def build_system_prompt(request: ChatRequest) -> str:
    context = request.context
    lines = [
        "You are a friendly, patient learning assistant on an educational platform.",
        "Answer clearly, use examples suited to the learner, and keep replies focused.",
    ]
    if context.username:
        lines.append(f"The learner's name is {context.username}.")
    if context.course:
        lines.append(f"They are studying the course: {context.course}.")
    if context.page:
        lines.append(f"They are currently on the page: {context.page}.")
    return "\n".join(lines)


class ChatService:
    """Answers chat messages through a chain of free-tier upstream models.

    Each link is retried by the RetryHandler; when a link still fails the
    next one is tried. Only providers with a configured key take part.
    """

    def __init__(
        self,
        settings: Any,
        openrouter_client: Optional[Any] = None,
        groq_client: Optional[Any] = None,
        retry_handler: Optional[RetryHandler] = None,
    ):
        self.settings = settings
        self.openrouter = openrouter_client
        self.groq = groq_client
        timeout = settings.chat_timeout_seconds

        if self.openrouter is None and settings.has_openrouter_key:
            self.openrouter = AsyncOpenAI(
                api_key=settings.openrouter_api_key.get_secret_value(),
                base_url=settings.openrouter_base_url,
                default_headers={"HTTP-Referer": settings.site_url, "X-Title": settings.site_name},
                timeout=timeout,
                max_retries=0,
            )
        if self.groq is None and settings.has_groq_key:
            self.groq = AsyncOpenAI(
                api_key=settings.groq_api_key.get_secret_value(),
                base_url=settings.groq_base_url,
                timeout=timeout,
                max_retries=0,
            )

        self.retry_handler = retry_handler or RetryHandler(
            max_retries=settings.ai_max_retries, timeout_ms=timeout * 1000
        )

    @property
    def available(self) -> bool:
        return self.openrouter is not None or self.groq is not None

    def model_chain(self, tier: str) -> List[ChatLink]:
        chain: List[ChatLink] = []
        if self.openrouter is not None:
            for name in TIER_CHAINS.get(tier, TIER_CHAINS["balanced"]):
                chain.append(ChatLink("openrouter", OPENROUTER_MODELS[name], name))
        if self.groq is not None:
            chain.append(ChatLink("groq", self.settings.groq_model, "fallback"))
        return chain

    def build_messages(self, request: ChatRequest) -> List[Dict[str, str]]:
        messages = [{"role": m.role, "content": m.content} for m in request.history]
        # Free-tier models ignore the system role, so the instructions ride
        # along with the learner's message.
        messages.append(
            {"role": "user", "content": f"{build_system_prompt(request)}\n\n{request.message}"}
        )
        return messages

    async def reply(self, request: ChatRequest) -> ChatReply:
        """Answer ``request`` with the first link of the chain that succeeds."""
        tier = classify_tier(request.message)
        chain = self.model_chain(tier)
        messages = self.build_messages(request)

        log = logger.bind(tier=tier, user_id=request.context.user_id)
        if not chain:
            log.error("No chat provider configured")
            raise ProviderFailureException(
                "SERVICE_UNAVAILABLE",
                message="AI chat is not configured on this server",
                status_code=503,
            )

        last_error: Optional[ProviderError] = None
        for position, link in enumerate(chain):
            try:
                text = await self.retry_handler.execute(
                    lambda link=link: self._complete(link, messages),
                    model=link.model,
                    provider=link.provider,
                )
            except ProviderError as e:
                last_error = e
                log.warning(
                    "Chat link failed, moving to next",
                    provider=link.provider,
                    model=link.model,
                    code=e.code.value,
                    error=e.message,
                )
                continue

            if position > 0:
                chat_fallbacks.inc()
            log.info("Chat reply generated", provider=link.provider, model=link.model, position=position)
            return ChatReply(reply=text, provider=link.provider, model=link.model, model_tier=tier)

        log.error(
            "All chat providers failed",
            attempted=len(chain),
            last_code=last_error.code.value if last_error else None,
        )
        raise ProviderFailureException(
            "SERVICE_UNAVAILABLE",
            message="All AI providers are currently unavailable. Please try again later.",
            status_code=503,
        )

    async def _complete(self, link: ChatLink, messages: List[Dict[str, str]]) -> str:
        client = self.openrouter if link.provider == "openrouter" else self.groq
        label = "OpenRouter" if link.provider == "openrouter" else "Groq"
        try:
            response = await client.chat.completions.create(
                model=link.model,
                messages=messages,
                max_tokens=self.settings.chat_max_tokens,
                temperature=CHAT_TEMPERATURE,
            )
        except Exception as e:
            raise map_openai_error(e, link.model, provider=link.provider, label=label) from e

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not text:
            raise ProviderError(
                f"{label} returned an empty reply",
                code=ErrorCode.UNKNOWN_ERROR,
                provider=link.provider,
                model=link.model,
            )
        return text
