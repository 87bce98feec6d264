"""
Prompt Assembler

Builds the ordered multi-part requests sent to the image model. Pure
functions: no network, no state. Image parts are referenced from the text
by their position in the part list ("Image #0" is always the sketch or
the base image).
"""

from typing import Dict, List, Mapping, Optional, Sequence

from google.genai import types

from archivision.core.images import image_dimensions
from archivision.models.render import (
    Annotation,
    AspectRatio,
    FurnitureLayoutMode,
    GenerationRequest,
    MaterialMode,
    NormalizedImage,
    RenderParameters,
)

# Keys for auxiliary images passed alongside the sketch.
SITE_PICTURE = "site_picture"
FURNITURE_INSPIRATION = "furniture_inspiration"
MATERIAL_REFERENCE = "material_reference"


def texture_key(index: int) -> str:
    """Aux-image key for the texture photo of the ``index``-th material mapping."""
    return f"texture:{index}"


SUPPORTED_ASPECT_RATIOS: Dict[str, float] = {
    "1:1": 1.0,
    "4:3": 4 / 3,
    "3:4": 3 / 4,
    "16:9": 16 / 9,
    "9:16": 9 / 16,
}

GEOMETRY_LOCK = (
    "GEOMETRY LOCK: The geometry and perspective of Image #0 are immutable. "
    "Keep every wall, opening, roofline, proportion and the camera viewpoint exactly as drawn. "
    "Do not add, remove or move any structural element."
)

OUTPUT_QUALITY = (
    "OUTPUT QUALITY: 8k resolution, unbiased rendering, ray-traced lighting, "
    "photorealistic materials, no sketch lines or color-key artifacts left visible."
)

EDIT_REGION_CONSTRAINT = "Pixels outside every listed region must remain unchanged."

UPSCALE_INSTRUCTION = (
    "Upscale this image to 4K resolution. Enhance details, textures, sharpness and lighting "
    "while strictly preserving the original composition and geometry. "
    "Do not hallucinate new objects and do not move or reshape anything."
)


# ============ Aspect Ratio ============

def nearest_aspect_ratio(width: int, height: int) -> str:
    """Snap a pixel size to the closest supported ratio by absolute difference."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid dimensions {width}x{height}")
    ratio = width / height
    return min(SUPPORTED_ASPECT_RATIOS, key=lambda name: abs(SUPPORTED_ASPECT_RATIOS[name] - ratio))


def resolve_aspect_ratio(choice: AspectRatio, sketch: NormalizedImage) -> str:
    """Explicit choice wins; ``Auto`` is inferred from the sketch's pixel size."""
    if choice != AspectRatio.AUTO:
        return choice.value
    width, height = image_dimensions(sketch)
    return nearest_aspect_ratio(width, height)


# ============ Render (create mode) ============

def _material_block(
    params: RenderParameters,
    parts: List[types.Part],
    aux_images: Mapping[str, NormalizedImage],
) -> str:
    """Exactly one material instruction, chosen by the active strategy."""
    if params.material_mode == MaterialMode.COLOR_MAP:
        lines = []
        texture_lines = []
        for index, mapping in enumerate(params.material_mappings):
            if not mapping.is_complete:
                continue
            lines.append(f'- Color "{mapping.color}" matches Material "{mapping.material}"')
            texture = aux_images.get(texture_key(index))
            if texture is not None:
                parts.append(texture.to_part())
                texture_lines.append(
                    f'- Use Image #{len(parts) - 1} as the physical texture reference '
                    f'for "{mapping.material}".'
                )
        rules = "\n".join(lines) if lines else "- (no explicit color rules given)"
        block = (
            f"STRICT COLOR-MATERIAL MAPPING:\n{rules}\n"
            "INSTRUCTION: The input sketch (Image #0) is color-coded. Identify the areas matching "
            "each listed color and apply the corresponding high-fidelity material. Do not change "
            "the geometry. For areas not listed, use context-appropriate materials."
        )
        if texture_lines:
            block += "\n" + "\n".join(texture_lines)
        return block

    reference = aux_images.get(MATERIAL_REFERENCE)
    if params.material_mode == MaterialMode.REFERENCE_IMAGE and reference is not None:
        parts.append(reference.to_part())
        block = (
            f"STYLE & MATERIAL REFERENCE: Use Image #{len(parts) - 1} as the PRIMARY reference for "
            "materials, lighting and overall aesthetic. The materials in the render must match "
            "the textures and finishes visible in this reference image."
        )
        if params.material_prompt.strip():
            block += f"\nADDITIONAL NOTES: {params.material_prompt.strip()}"
        return block

    return (
        f"GLOBAL MATERIAL SPECIFICATIONS & FINISHES:\n{params.material_prompt}\n"
        "IMPORTANT: Apply high-fidelity, physically based materials for each named material, with "
        "plausible roughness, grain and reflectivity: concrete porous, wood grained, "
        "glass with accurate reflections."
    )


def _context_block(
    params: RenderParameters,
    parts: List[types.Part],
    aux_images: Mapping[str, NormalizedImage],
) -> str:
    """Exactly one environment/staging instruction, chosen by mode."""
    if params.is_interior:
        ambiance = f"INTERIOR AMBIANCE: {params.interior_ambiance}"
        inspiration = aux_images.get(FURNITURE_INSPIRATION)
        if inspiration is None:
            return (
                f"{ambiance}\n"
                "TASK: INTERIOR REALIZATION. The input sketch (Image #0) is the ground truth. "
                "Preserve all geometry exactly. Do not invent new doors, windows, openings or walls."
            )

        parts.append(inspiration.to_part())
        index = len(parts) - 1
        if params.furniture_layout_mode == FurnitureLayoutMode.EMPTY:
            return (
                f"{ambiance}\n"
                "TASK: VIRTUAL STAGING OF AN EMPTY SPACE.\n"
                "1. GEOMETRY PRESERVATION: Image #0 is the architectural shell. "
                "DO NOT MODIFY WALLS, WINDOWS or CEILINGS.\n"
                f'2. FURNISHING: Furnish the space based on: "{params.furniture_prompt}".\n'
                f"3. STYLE MATCHING: Use Image #{index} as the stylistic reference for the furniture."
            )
        return (
            f"{ambiance}\n"
            "TASK: FURNITURE REPLACEMENT.\n"
            "1. SPATIAL INTEGRITY: Preserve room boundaries and the position of every piece of "
            "furniture drawn in Image #0.\n"
            f"2. STYLE MATCHING: Restyle the existing furniture to match Image #{index}."
        )

    site = aux_images.get(SITE_PICTURE)
    if site is not None:
        parts.append(site.to_part())
        return (
            f"SITE CONTEXT: Use Image #{len(parts) - 1} as the strict background and environmental "
            "context. Composite the building from Image #0 into this photo, matching its "
            "perspective, lighting direction and ground plane."
        )
    return f"ENVIRONMENT & LANDSCAPE: {params.landscape_prompt}"


def assemble_render_request(
    params: RenderParameters,
    sketch: NormalizedImage,
    aux_images: Optional[Mapping[str, NormalizedImage]] = None,
) -> GenerationRequest:
    """
    Build the create-mode request: sketch, optional reference images, and a
    single trailing text instruction.
    """
    aux_images = aux_images or {}
    parts: List[types.Part] = [sketch.to_part()]

    material = _material_block(params, parts, aux_images)
    context = _context_block(params, parts, aux_images)

    sections = [
        "ROLE: High-End Architectural Visualizer.",
        f"TASK: Transform the input sketch (Image #0) into a photorealistic {params.style.value} render.",
        f"CAMERA ANGLE: {params.angle.value}",
    ]
    if params.description.strip():
        sections.append(f"PROJECT NOTES: {params.description.strip()}")
    sections += [
        material,
        context,
        GEOMETRY_LOCK,
        f"ARCHITECTURAL STYLE: {params.style.value}.",
        OUTPUT_QUALITY,
    ]
    parts.append(types.Part.from_text(text="\n\n".join(sections)))

    return GenerationRequest(
        parts=parts,
        aspect_ratio=resolve_aspect_ratio(params.aspect_ratio, sketch),
    )


# ============ Edits ============

def describe_region(index: int, annotation: Annotation) -> str:
    """One bounding-box descriptor with integer percentages."""
    label = f' "{annotation.label}"' if annotation.label else ""
    return (
        f"Region {index}{label}: x={int(round(annotation.x))}%, y={int(round(annotation.y))}%, "
        f"width={int(round(annotation.width))}%, height={int(round(annotation.height))}%"
    )


def assemble_edit_request(
    base: NormalizedImage,
    instruction: str,
    annotations: Sequence[Annotation] = (),
) -> GenerationRequest:
    """Two parts: the base image and one instruction, with any region boxes inlined."""
    goal = instruction.strip() or "Apply the changes described for each region below"
    text = f"Edit this image: {goal}. Maintain the original perspective and lighting."
    if annotations:
        regions = "\n".join(describe_region(i, a) for i, a in enumerate(annotations, start=1))
        text += (
            "\n\nREGIONS TO EDIT (percent of image width/height, origin at top-left):\n"
            f"{regions}\n"
            f"HARD CONSTRAINT: Only change pixels inside the listed regions. {EDIT_REGION_CONSTRAINT}"
        )
    return GenerationRequest(parts=[base.to_part(), types.Part.from_text(text=text)])


def assemble_masked_edit_request(
    base: NormalizedImage,
    mask: NormalizedImage,
    instruction: str,
) -> GenerationRequest:
    """Three parts: source image, mask, instruction."""
    text = (
        "INSTRUCTION: Perform a masked edit. Image #0 is the Source. Image #1 is the Mask.\n"
        f"Task: {instruction.strip()}.\n"
        "The WHITE area of the mask is the only editable area. Apply changes ONLY there.\n"
        "The BLACK area of the mask must stay exactly identical to the source image: "
        "no change of any kind.\n"
        "Blend the edit seamlessly at the mask boundary, continuing the source's lighting, "
        "perspective and film grain."
    )
    return GenerationRequest(
        parts=[base.to_part(), mask.to_part(), types.Part.from_text(text=text)]
    )


def assemble_upscale_request(source: NormalizedImage, image_size: str = "4K") -> GenerationRequest:
    return GenerationRequest(
        parts=[source.to_part(), types.Part.from_text(text=UPSCALE_INSTRUCTION)],
        image_size=image_size,
    )
