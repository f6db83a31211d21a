"""
Gemini provider implementation using the google-genai SDK.

This is the multimodal adapter: besides the text operations it can analyze
images, and its lesson prompt asks for resource-rich (video, document) lessons
used to enrich lessons produced by the primary provider.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from lesson_ai_system.exceptions import ErrorCode
from lesson_ai_system.schemas.ai import ImageAnalysis, ProviderResponse
from lesson_ai_system.schemas.lesson import GenerationRequest

from . import prompts
from .base import BaseProvider, Completion, usage_from_counts
from .errors import ProviderError, category_for_status, classify_message

logger = logging.getLogger(__name__)


class GeminiProvider(BaseProvider):
    """Adapter for Google's Gemini models."""

    name = "gemini"

    top_k = 40
    top_p = 0.95
    max_output_tokens = 4096
    image_temperature = 0.4
    image_max_output_tokens = 1024

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        default_model: str = "gemini-1.5-flash",
        vision_model: Optional[str] = None,
        client: Optional[Any] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        image_fetch_timeout: float = 15.0,
        **kwargs: Any,
    ) -> None:
        """
        Initialize Gemini provider.

        Args:
            api_key: Gemini API key
            default_model: Model used when none is requested
            vision_model: Model used for image analysis, defaults to ``default_model``
            client: Pre-built ``genai.Client`` (tests)
            http_client: Client used to download images for analysis
            image_fetch_timeout: Timeout for downloading images, in seconds
            **kwargs: Forwarded to BaseProvider
        """
        super().__init__(default_model, **kwargs)
        self.vision_model = vision_model or default_model
        self.client = client or genai.Client(api_key=api_key)
        self.http_client = http_client
        self.image_fetch_timeout = image_fetch_timeout

    def lesson_messages(self, request: GenerationRequest, model: str) -> List[Dict[str, str]]:
        return prompts.lesson_messages(request, multimedia=True)

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
    ) -> Completion:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents = "\n\n".join(m["content"] for m in messages if m["role"] != "system")

        config: Dict[str, Any] = {
            "temperature": temperature,
            "top_k": self.top_k,
            "top_p": self.top_p,
            "max_output_tokens": max_tokens or self.max_output_tokens,
        }
        if system:
            config["system_instruction"] = system
        if json_mode:
            config["response_mime_type"] = "application/json"

        response = await self.client.aio.models.generate_content(
            model=model, contents=contents, config=config
        )
        return self._completion(response, model)

    async def analyze_image(
        self, image_url: str, prompt: str, model: Optional[str] = None
    ) -> ProviderResponse:
        """Describe the image at ``image_url`` following ``prompt``."""
        model = model or self.vision_model

        async def call() -> ProviderResponse:
            self._log_request("image", model, [{"role": "user", "content": prompt}])
            try:
                data, mime_type = await self._fetch_image(image_url)
                response = await self.client.aio.models.generate_content(
                    model=model,
                    contents=[
                        prompts.image_analysis_prompt(prompt),
                        types.Part.from_bytes(data=data, mime_type=mime_type),
                    ],
                    config={
                        "temperature": self.image_temperature,
                        "max_output_tokens": self.image_max_output_tokens,
                        "response_mime_type": "application/json",
                    },
                )
            except ProviderError as e:
                self._record_failure("image", model, e)
                raise
            except Exception as e:
                error = self.map_error(e, model)
                self._record_failure("image", model, error)
                raise error from e
            completion = self._completion(response, model)
            analysis = self._parse_json(completion, ImageAnalysis)
            return self._response(analysis, completion)

        return await self._cached(
            "image", {"imageUrl": image_url, "prompt": prompt}, model, call, ImageAnalysis
        )

    async def _fetch_image(self, image_url: str) -> Tuple[bytes, str]:
        if self.http_client is not None:
            response = await self.http_client.get(image_url, timeout=self.image_fetch_timeout)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.get(image_url, timeout=self.image_fetch_timeout)
        response.raise_for_status()
        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        if not mime_type.startswith("image/"):
            raise ProviderError(
                f"URL did not return an image (content-type {mime_type})",
                code=ErrorCode.INVALID_REQUEST,
                provider=self.name,
            )
        return response.content, mime_type

    @staticmethod
    def _completion(response: Any, model: str) -> Completion:
        metadata = getattr(response, "usage_metadata", None)
        return Completion(
            text=response.text or "",
            model=getattr(response, "model_version", None) or model,
            usage=usage_from_counts(
                getattr(metadata, "prompt_token_count", 0),
                getattr(metadata, "candidates_token_count", 0),
            ),
        )

    def map_error(self, error: Exception, model: str) -> ProviderError:
        if isinstance(error, genai_errors.APIError):
            return ProviderError(
                f"Gemini API error: {error.message or error}",
                code=category_for_status(error.code),
                provider=self.name,
                model=model,
                status_code=error.code,
            )
        if isinstance(error, httpx.TimeoutException):
            return ProviderError(
                "Gemini request timed out",
                code=ErrorCode.OPERATION_TIMEOUT,
                provider=self.name,
                model=model,
            )
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            code = category_for_status(status)
            return ProviderError(
                f"Image download failed with status {status}",
                code=code,
                provider=self.name,
                model=model,
                status_code=status,
            )
        if isinstance(error, httpx.TransportError):
            return ProviderError(
                f"Network error talking to Gemini: {error}",
                code=ErrorCode.NETWORK_ERROR,
                provider=self.name,
                model=model,
            )
        return ProviderError(
            f"Unexpected error: {error}",
            code=classify_message(str(error)),
            provider=self.name,
            model=model,
        )
