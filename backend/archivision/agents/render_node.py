"""
Render Node

Public entry point of the render pipeline. Each operation normalizes its
input images, assembles a request, invokes the image model with retry and
extracts the returned image as a data URI.
FULLY TRACED with LangSmith.
"""

import asyncio
import base64
import binascii
import functools
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from langsmith import traceable

from archivision.agents.gemini_backend import GeminiImageBackend, ImageBackend
from archivision.config import Settings, get_settings
from archivision.core import prompts
from archivision.core.errors import InvalidRenderRequest, NoImageInResponse, classify_error
from archivision.core.images import ImageNormalizer
from archivision.core.mask import mask_for_image
from archivision.core.retry import RetryingInvoker
from archivision.core.session import RenderSession
from archivision.logging import get_logger
from archivision.models.render import (
    Annotation,
    GenerationRequest,
    ImageTarget,
    MaterialMode,
    NormalizedImage,
    RenderParameters,
    SelectionBox,
)

logger = get_logger(__name__)


def extract_image(response: Any) -> NormalizedImage:
    """
    Return the first inline image found in a model response.

    Tolerates responses without candidates, candidates without content and
    text-only parts; raises NoImageInResponse when nothing usable is found.
    """
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is None or not inline.data:
                continue
            data = inline.data
            if isinstance(data, str):
                try:
                    data = base64.b64decode(data, validate=True)
                except (binascii.Error, ValueError) as e:
                    raise NoImageInResponse(f"Model returned undecodable image data: {e}") from e
            return NormalizedImage(data=data, mime_type=inline.mime_type or "image/png")
    raise NoImageInResponse("No image generated in response")


class RenderOrchestrator:
    """
    Sequences normalization, prompt assembly and retried remote calls for
    generate, edit, masked edit and upscale.
    """

    def __init__(
        self,
        backend: ImageBackend,
        normalizer: Optional[ImageNormalizer] = None,
        invoker: Optional[RetryingInvoker] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.settings = settings or get_settings()
        self.backend = backend
        self.normalizer = normalizer or ImageNormalizer(timeout=self.settings.fetch_timeout_seconds)
        self.invoker = invoker or RetryingInvoker(max_attempts=self.settings.max_retry_attempts)
        self._sleep = sleep or asyncio.sleep

    @property
    def render_target(self) -> ImageTarget:
        return ImageTarget(model=self.settings.image_model_name)

    @property
    def upscale_target(self) -> ImageTarget:
        return ImageTarget(
            model=self.settings.upscale_model_name,
            image_size=self.settings.upscale_image_size,
        )

    # ============ Operations ============

    @traceable(name="render_orchestrator.generate_render", run_type="chain", tags=["render", "generate"])
    async def generate_render(self, params: RenderParameters, sketch: str) -> str:
        sketch_image = await self.normalizer.normalize(sketch)
        aux_images = await self._load_aux_images(params)
        request = prompts.assemble_render_request(params, sketch_image, aux_images)
        logger.info(
            "render.generate",
            mode=params.mode.value,
            material_mode=params.material_mode.value,
            parts=len(request.parts),
            aspect_ratio=request.aspect_ratio,
        )
        return await self._run(request, self.render_target)

    async def generate_batch(
        self,
        params: RenderParameters,
        sketches: Sequence[str],
        cooldown: Optional[float] = None,
        should_continue: Optional[Callable[[], bool]] = None,
        on_result: Optional[Callable[[str], None]] = None,
    ) -> List[str]:
        """
        Render one image per sketch, strictly one after another.

        ``should_continue`` is checked before each item starts; an item
        already running is never interrupted.
        """
        if cooldown is None:
            cooldown = self.settings.batch_cooldown_seconds
        results: List[str] = []
        for index, sketch in enumerate(sketches):
            if index and cooldown > 0:
                await self._sleep(cooldown)
            if should_continue is not None and not should_continue():
                logger.info("render.batch_stopped", completed=index, total=len(sketches))
                break
            result = await self.generate_render(params, sketch)
            results.append(result)
            if on_result is not None:
                on_result(result)
        return results

    @traceable(name="render_orchestrator.edit_image", run_type="chain", tags=["render", "edit"])
    async def edit_image(
        self,
        base: str,
        instruction: str,
        annotations: Sequence[Annotation] = (),
    ) -> str:
        if not instruction.strip() and not annotations:
            raise InvalidRenderRequest("An edit needs an instruction or at least one annotated region")
        base_image = await self.normalizer.normalize(base)
        request = prompts.assemble_edit_request(base_image, instruction, annotations)
        logger.info("render.edit", regions=len(annotations))
        return await self._run(request, self.render_target)

    @traceable(name="render_orchestrator.modify_with_mask", run_type="chain", tags=["render", "mask"])
    async def modify_with_mask(self, base: str, mask: str, instruction: str) -> str:
        base_image = await self.normalizer.normalize(base)
        mask_image = await self.normalizer.normalize(mask)
        request = prompts.assemble_masked_edit_request(base_image, mask_image, instruction)
        logger.info("render.modify_with_mask")
        return await self._run(request, self.render_target)

    async def modify_selection(self, base: str, box: SelectionBox, instruction: str) -> str:
        """Masked edit where the mask is rasterized from ``box`` at the base image's size."""
        base_image = await self.normalizer.normalize(base)
        mask_image = mask_for_image(box, base_image)
        request = prompts.assemble_masked_edit_request(base_image, mask_image, instruction)
        logger.info("render.modify_selection", box=box.model_dump())
        return await self._run(request, self.render_target)

    async def apply_session_edit(self, session: RenderSession, base: str, instruction: str) -> str:
        """
        Edit ``base`` using whatever the session has selected when the call
        starts: a drawn selection becomes a masked edit, annotations become
        region boxes. The result is appended to the session.
        """
        async with session.begin_operation() as snapshot:
            if snapshot.selection is not None:
                result = await self.modify_selection(base, snapshot.selection, instruction)
            else:
                result = await self.edit_image(base, instruction, snapshot.annotations)
        session.add_result(result)
        return result

    @traceable(name="render_orchestrator.upscale_image", run_type="chain", tags=["render", "upscale"])
    async def upscale_image(self, source: str) -> str:
        source_image = await self.normalizer.normalize(source)
        request = prompts.assemble_upscale_request(source_image, self.settings.upscale_image_size)
        logger.info("render.upscale", model=self.upscale_target.model)
        return await self._run(request, self.upscale_target)

    # ============ Internals ============

    async def _load_aux_images(self, params: RenderParameters) -> Dict[str, NormalizedImage]:
        """Normalize only the auxiliary images the active mode and strategy will read."""
        aux: Dict[str, NormalizedImage] = {}
        if params.is_interior:
            if params.furniture_inspiration_image:
                aux[prompts.FURNITURE_INSPIRATION] = await self.normalizer.normalize(
                    params.furniture_inspiration_image
                )
        elif params.site_picture:
            aux[prompts.SITE_PICTURE] = await self.normalizer.normalize(params.site_picture)

        if params.material_mode == MaterialMode.COLOR_MAP:
            for index, mapping in enumerate(params.material_mappings):
                if mapping.is_complete and mapping.texture_image:
                    aux[prompts.texture_key(index)] = await self.normalizer.normalize(
                        mapping.texture_image
                    )
        elif params.material_mode == MaterialMode.REFERENCE_IMAGE and params.material_texture_image:
            aux[prompts.MATERIAL_REFERENCE] = await self.normalizer.normalize(
                params.material_texture_image
            )
        return aux

    async def _run(self, request: GenerationRequest, target: ImageTarget) -> str:
        async def call() -> Any:
            response = await self.backend.generate(request, target)
            # Some transports hand back the error envelope instead of raising.
            if isinstance(response, dict) and response.get("error"):
                raise classify_error(response)
            return response

        response = await self.invoker.invoke(call)
        return extract_image(response).to_data_uri()


@functools.lru_cache()
def get_render_orchestrator() -> RenderOrchestrator:
    """
    Get a singleton RenderOrchestrator backed by Gemini.
    Cached to avoid re-initializing the Gemini client on every request.
    """
    return RenderOrchestrator(backend=GeminiImageBackend())
