"""
API Request/Response Schemas

Pydantic models for API endpoints.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from archivision.models.render import Annotation, RenderParameters, SelectionBox


# ============ Render Endpoints ============

class RenderRequest(BaseModel):
    """Request body for POST /render (one sketch)."""
    params: RenderParameters = Field(default_factory=RenderParameters)
    sketch: str = Field(..., description="Sketch as URL, data URI or base64")


class BatchRenderRequest(BaseModel):
    """Request body for POST /render/batch."""
    params: RenderParameters = Field(default_factory=RenderParameters)
    sketches: List[str] = Field(..., min_length=1, max_length=5, description="Up to 5 sketches")
    cooldown_seconds: Optional[float] = Field(None, ge=0, le=30, description="Pause between items")


class EditRequest(BaseModel):
    """Request body for POST /render/edit."""
    base_image: str = Field(..., description="Render to edit")
    instruction: str = Field(default="", description="Free-text edit goal")
    annotations: List[Annotation] = Field(default_factory=list)

    @model_validator(mode="after")
    def _needs_instruction_or_regions(self) -> "EditRequest":
        if not self.instruction.strip() and not self.annotations:
            raise ValueError("Provide an instruction or at least one annotation")
        return self


class MaskedEditRequest(BaseModel):
    """Request body for POST /render/modify."""
    base_image: str = Field(..., description="Render to edit")
    mask_image: str = Field(..., description="Mask, white = editable")
    instruction: str = Field(..., min_length=1)


class SelectionEditRequest(BaseModel):
    """Request body for POST /render/modify/selection."""
    base_image: str = Field(..., description="Render to edit")
    selection: SelectionBox
    instruction: str = Field(..., min_length=1)


class UpscaleRequest(BaseModel):
    """Request body for POST /render/upscale."""
    source_image: str = Field(..., description="Render to upscale")


class MaskRequest(BaseModel):
    """Request body for POST /render/mask."""
    selection: SelectionBox
    width: int = Field(..., gt=0, le=8192)
    height: int = Field(..., gt=0, le=8192)


class RenderResponse(BaseModel):
    """A single produced image."""
    image: str = Field(..., description="Image as data URI")
    message: str = "Render complete"


class BatchRenderResponse(BaseModel):
    images: List[str]
    message: str = "Batch complete"


# ============ Health Check ============

class HealthResponse(BaseModel):
    """Response from /health endpoint."""
    status: str = "ok"
    version: str
    message: str = "Archivision Render API is running"


# ============ Error Response ============

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    error_code: Optional[str] = None
