"""
Render Routes

POST /render                  - Render one sketch
POST /render/batch            - Render several sketches sequentially
POST /render/edit             - Instruction edit with optional region boxes
POST /render/modify           - Masked edit with a caller-supplied mask
POST /render/modify/selection - Masked edit with a mask drawn from a selection
POST /render/upscale          - 4K enhancement
POST /render/mask             - Rasterize a selection into a PNG mask

Pipeline errors are translated to HTTP responses by the handler
registered in main.py.
"""

from fastapi import APIRouter, Depends

from archivision.agents.render_node import RenderOrchestrator, get_render_orchestrator
from archivision.core.mask import rasterize_mask
from archivision.models.api import (
    BatchRenderRequest,
    BatchRenderResponse,
    EditRequest,
    ErrorResponse,
    MaskedEditRequest,
    MaskRequest,
    RenderRequest,
    RenderResponse,
    SelectionEditRequest,
    UpscaleRequest,
)


ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "API key missing or invalid"},
    403: {"model": ErrorResponse, "description": "API key revoked"},
    422: {"model": ErrorResponse, "description": "Image could not be loaded"},
    502: {"model": ErrorResponse, "description": "Model returned no image"},
    503: {"model": ErrorResponse, "description": "Model busy, retries exhausted"},
}

router = APIRouter(prefix="/render", tags=["Rendering"], responses=ERROR_RESPONSES)


@router.post("", response_model=RenderResponse)
async def render_sketch(
    request: RenderRequest,
    orchestrator: RenderOrchestrator = Depends(get_render_orchestrator),
) -> RenderResponse:
    """Generate a photorealistic render from one color-coded sketch."""
    image = await orchestrator.generate_render(request.params, request.sketch)
    return RenderResponse(image=image)


@router.post("/batch", response_model=BatchRenderResponse)
async def render_batch(
    request: BatchRenderRequest,
    orchestrator: RenderOrchestrator = Depends(get_render_orchestrator),
) -> BatchRenderResponse:
    """
    Render every sketch in order. Items run one at a time so per-account
    rate limits are respected; a failure aborts the rest of the batch.
    """
    images = await orchestrator.generate_batch(
        request.params,
        request.sketches,
        cooldown=request.cooldown_seconds,
    )
    return BatchRenderResponse(images=images, message=f"Rendered {len(images)} sketch(es)")


@router.post("/edit", response_model=RenderResponse)
async def edit_render(
    request: EditRequest,
    orchestrator: RenderOrchestrator = Depends(get_render_orchestrator),
) -> RenderResponse:
    image = await orchestrator.edit_image(request.base_image, request.instruction, request.annotations)
    return RenderResponse(
        image=image,
        message=f"Edit complete ({len(request.annotations)} annotated region(s))",
    )


@router.post("/modify", response_model=RenderResponse)
async def modify_with_mask(
    request: MaskedEditRequest,
    orchestrator: RenderOrchestrator = Depends(get_render_orchestrator),
) -> RenderResponse:
    image = await orchestrator.modify_with_mask(
        request.base_image, request.mask_image, request.instruction
    )
    return RenderResponse(image=image, message="Masked edit complete")


@router.post("/modify/selection", response_model=RenderResponse)
async def modify_selection(
    request: SelectionEditRequest,
    orchestrator: RenderOrchestrator = Depends(get_render_orchestrator),
) -> RenderResponse:
    image = await orchestrator.modify_selection(
        request.base_image, request.selection, request.instruction
    )
    return RenderResponse(image=image, message="Masked edit complete")


@router.post("/upscale", response_model=RenderResponse)
async def upscale_render(
    request: UpscaleRequest,
    orchestrator: RenderOrchestrator = Depends(get_render_orchestrator),
) -> RenderResponse:
    image = await orchestrator.upscale_image(request.source_image)
    return RenderResponse(image=image, message="Upscale complete")


@router.post("/mask", response_model=RenderResponse)
async def build_mask(request: MaskRequest) -> RenderResponse:
    """Rasterize a selection box into a black/white PNG mask."""
    mask = rasterize_mask(request.selection, request.width, request.height)
    return RenderResponse(image=mask.to_data_uri(), message="Mask ready")
