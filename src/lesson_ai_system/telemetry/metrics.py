"""Prometheus metrics for provider calls, caching and lesson generation."""

from prometheus_client import Counter, Histogram

provider_requests = Counter(
    "lesson_ai_provider_requests_total",
    "Upstream AI provider calls",
    ["provider", "operation", "outcome"],
)
provider_latency = Histogram(
    "lesson_ai_provider_latency_seconds",
    "Upstream AI provider call latency",
    ["provider", "operation"],
)
provider_retries = Counter(
    "lesson_ai_provider_retries_total",
    "Retried provider attempts",
    ["model", "code"],
)
cache_hits = Counter("lesson_ai_cache_hits_total", "Response cache hits", ["backend"])
cache_misses = Counter("lesson_ai_cache_misses_total", "Response cache misses", ["backend"])
lessons_generated = Counter(
    "lesson_ai_lessons_generated_total",
    "Lesson generation requests by outcome",
    ["outcome"],
)
chat_fallbacks = Counter(
    "lesson_ai_chat_fallbacks_total",
    "Chat requests that moved past the first provider in the chain",
)
