"""
Gemini Image Backend

Remote-invocation adapter for the render orchestrator. Sends a
GenerationRequest to a Gemini image model and returns the raw response.
TRACED with LangSmith.
"""

import asyncio
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types
from langsmith import traceable

from archivision.config import get_settings
from archivision.core.errors import AuthRequired
from archivision.models.render import GenerationRequest, ImageTarget


class ImageBackend(Protocol):
    """Anything that can turn a GenerationRequest into a model response."""

    async def generate(self, request: GenerationRequest, target: ImageTarget) -> Any:
        ...


class GeminiImageBackend:
    """Calls ``generate_content`` on a Gemini image model."""

    def __init__(self, client: Optional[genai.Client] = None, temperature: Optional[float] = None):
        settings = get_settings()
        if client is None:
            if not settings.google_api_key:
                raise AuthRequired("API_KEY_REQUIRED: GOOGLE_API_KEY is not set")
            client = genai.Client(api_key=settings.google_api_key)
        self.client = client
        self.temperature = settings.temperature if temperature is None else temperature

    def build_config(self, request: GenerationRequest, target: ImageTarget) -> types.GenerateContentConfig:
        aspect_ratio = target.aspect_ratio or request.aspect_ratio
        image_size = target.image_size or request.image_size
        image_config = None
        if aspect_ratio or image_size:
            image_config = types.ImageConfig(aspect_ratio=aspect_ratio, image_size=image_size)
        return types.GenerateContentConfig(
            response_modalities=["IMAGE", "TEXT"],
            temperature=self.temperature,
            image_config=image_config,
        )

    @traceable(
        name="gemini_image_generation",
        run_type="llm",
        tags=["gemini", "image", "api-call"],
    )
    async def generate(self, request: GenerationRequest, target: ImageTarget) -> types.GenerateContentResponse:
        return await asyncio.to_thread(
            self.client.models.generate_content,
            model=target.model,
            contents=[types.Content(role="user", parts=list(request.parts))],
            config=self.build_config(request, target),
        )
