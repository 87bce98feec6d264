"""
Render Data Models

Pydantic models for render parameters, material rules, user selections
and the image payloads that flow through the render pipeline. They are
the contract between the HTTP layer, the prompt assembler and the
orchestrator.
"""

import base64
from enum import Enum
from typing import List, Optional, Tuple

from google.genai import types
from pydantic import BaseModel, ConfigDict, Field, model_validator


class EnvironmentMode(str, Enum):
    """Whether the sketch shows a building from outside or a room inside."""
    EXTERIOR = "Exterior"
    INTERIOR = "Interior"


class MaterialMode(str, Enum):
    """Active material strategy. Exactly one applies per render."""
    TEXT_PROMPT = "text-prompt"
    COLOR_MAP = "color-map"           # color-key bindings on the sketch
    REFERENCE_IMAGE = "reference-image"


class FurnitureLayoutMode(str, Enum):
    EXISTING = "existing"   # restyle furniture already drawn in the sketch
    EMPTY = "empty"         # stage an empty shell


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    LANDSCAPE = "4:3"
    PORTRAIT = "3:4"
    WIDESCREEN = "16:9"
    TALL = "9:16"
    AUTO = "Auto"


class RenderStyle(str, Enum):
    MODERNIST = "Modernist"
    BRUTALIST = "Brutalist"
    SCANDINAVIAN = "Scandinavian"
    MINIMALIST = "Minimalist"
    BIOPHILIC = "Biophilic"
    INDUSTRIAL = "Industrial"
    NEO_FUTURISTIC = "Neo-Futuristic"
    ART_DECO = "Art Deco"
    VICTORIAN = "Victorian"
    MEDITERRANEAN = "Mediterranean"
    POST_MODERN = "Post-Modern"
    PARAMETRIC = "Parametric"
    GOTHIC = "Gothic"
    ZEN = "Zen"
    COLONIAL = "Colonial"
    MID_CENTURY_MODERN = "Mid-Century Modern"
    DECONSTRUCTIVISM = "Deconstructivism"
    JAPANDI = "Japandi"
    INDUSTRIAL_LOFT = "Industrial Loft"
    BOHEMIAN = "Bohemian"
    HOLLYWOOD_REGENCY = "Hollywood Regency"
    CONTEMPORARY_CLASSIC = "Contemporary Classic"


class CameraAngle(str, Enum):
    EYE_LEVEL = "Eye Level"
    BIRDS_EYE = "Bird's Eye"
    DRONE_VIEW = "Drone View"
    WORMS_EYE = "Worm's Eye"
    INTERIOR_CLOSE_UP = "Interior Close-up"
    ISOMETRIC = "Isometric"
    WIDE_ANGLE_INTERIOR = "Wide Angle Interior"


class MaterialMapping(BaseModel):
    """
    A rule binding a color zone of the sketch to a target material.

    Attributes:
        color: Color name or hex as drawn in the sketch (e.g. "Red", "#ff0000")
        material: Target material (e.g. "Brick")
        texture_image: Optional photo of the physical material (URL, data URI
            or base64)
    """
    color: str = Field(default="", description="Sketch color")
    material: str = Field(default="", description="Target material")
    texture_image: Optional[str] = Field(default=None, description="Texture photo reference")

    @property
    def is_complete(self) -> bool:
        return bool(self.color.strip() and self.material.strip())


class RenderParameters(BaseModel):
    """
    Everything the user chose for a render besides the sketch itself.

    ``material_mode`` selects the single active material strategy. Which
    optional images matter depends on ``mode``: ``site_picture`` is only
    read for exteriors, the furniture fields only for interiors.
    """
    mode: EnvironmentMode = EnvironmentMode.EXTERIOR
    style: RenderStyle = RenderStyle.MODERNIST
    angle: CameraAngle = CameraAngle.EYE_LEVEL
    description: str = ""

    # Context
    landscape_prompt: str = "Lush mountain landscape with misty morning light and pine trees."
    interior_ambiance: str = "Soft natural daylight"
    site_picture: Optional[str] = None

    # Materials
    material_mode: MaterialMode = MaterialMode.TEXT_PROMPT
    material_prompt: str = ""
    material_mappings: List[MaterialMapping] = Field(
        default_factory=lambda: [
            MaterialMapping(color="Red", material="Brick"),
            MaterialMapping(color="Blue", material="Glass"),
        ]
    )
    material_texture_image: Optional[str] = None

    # Furniture (Interior only)
    furniture_inspiration_image: Optional[str] = None
    furniture_layout_mode: FurnitureLayoutMode = FurnitureLayoutMode.EXISTING
    furniture_prompt: str = ""

    aspect_ratio: AspectRatio = AspectRatio.AUTO

    @property
    def is_interior(self) -> bool:
        return self.mode == EnvironmentMode.INTERIOR


# Minimum drag extent, in percent, for a selection to count.
MIN_SELECTION_PERCENT = 1.0


class SelectionBox(BaseModel):
    """
    Rectangle drawn over a displayed image, in percent of its bounding box.

    (0, 0) is the top-left corner, (100, 100) the bottom-right.
    """
    x: float = Field(..., ge=0, le=100)
    y: float = Field(..., ge=0, le=100)
    width: float = Field(..., gt=0, le=100)
    height: float = Field(..., gt=0, le=100)

    @classmethod
    def from_drag(
        cls,
        start: Tuple[float, float],
        end: Tuple[float, float],
    ) -> Optional["SelectionBox"]:
        """
        Build a box from a pointer drag in any direction.

        Coordinates are clamped to [0, 100]. Returns None when the drag does
        not exceed MIN_SELECTION_PERCENT in both dimensions.
        """
        x0, y0 = (max(0.0, min(100.0, v)) for v in start)
        x1, y1 = (max(0.0, min(100.0, v)) for v in end)
        width = abs(x1 - x0)
        height = abs(y1 - y0)
        if width <= MIN_SELECTION_PERCENT or height <= MIN_SELECTION_PERCENT:
            return None
        return cls(x=min(x0, x1), y=min(y0, y1), width=width, height=height)

    @property
    def right(self) -> float:
        return min(100.0, self.x + self.width)

    @property
    def bottom(self) -> float:
        return min(100.0, self.y + self.height)


class Annotation(SelectionBox):
    """A labelled region the user wants changed."""
    label: str = Field(default="", description="What should happen in this region")


class NormalizedImage(BaseModel):
    """Image bytes with their media type. Immutable once produced."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/png"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    def to_part(self) -> types.Part:
        return types.Part.from_bytes(data=self.data, mime_type=self.mime_type)


class ImageTarget(BaseModel):
    """Output configuration for one remote generation call."""
    model: str
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None


class GenerationRequest(BaseModel):
    """
    Ordered multi-part request for the image model.

    Built fresh per call and never mutated after submission.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    parts: List[types.Part]
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None

    @model_validator(mode="after")
    def _require_parts(self) -> "GenerationRequest":
        if not self.parts:
            raise ValueError("GenerationRequest needs at least one part")
        return self

    @property
    def text(self) -> str:
        """All text parts joined, in order."""
        return "\n".join(part.text for part in self.parts if part.text)

    @property
    def image_count(self) -> int:
        return sum(1 for part in self.parts if part.inline_data is not None)
