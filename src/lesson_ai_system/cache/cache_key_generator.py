"""
Deterministic cache key generation for provider calls.
"""

import hashlib
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel


class CacheKeyGenerator:
    """Generate cache keys that depend only on the content of a request."""

    # Cache key version for easy invalidation
    KEY_VERSION = "v1"

    def __init__(self, prefix: str = "ai_cache:"):
        """
        Initialize cache key generator.

        Args:
            prefix: Prefix prepended to every generated key
        """
        self.prefix = prefix

    def generate_key(
        self,
        namespace: str,
        payload: Any,
        model: Optional[str] = None,
    ) -> str:
        """
        Generate deterministic cache key.

        Two payloads with equal content produce the same key regardless of
        dict ordering or whether a pydantic model or plain dict was passed.

        Args:
            namespace: Operation namespace, e.g. ``openai:lesson``
            payload: Request content (pydantic model, dict or scalar)
            model: Model identifier the call is bound to

        Returns:
            Cache key string
        """
        key_data: Dict[str, Any] = {
            "version": self.KEY_VERSION,
            "model": model,
            "payload": self._normalize(payload),
        }
        key_string = json.dumps(key_data, sort_keys=True, separators=(",", ":"), default=str)
        key_hash = hashlib.sha256(key_string.encode("utf-8")).hexdigest()
        return f"{self.prefix}{namespace}:{key_hash}"

    @staticmethod
    def _normalize(payload: Any) -> Any:
        if isinstance(payload, BaseModel):
            return payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        if isinstance(payload, dict):
            return {k: v for k, v in payload.items() if v is not None}
        return payload
