"""
Mask Rasterizer

Converts a percentage SelectionBox into a binary PNG mask at the source
image's pixel size: white (255) marks the editable region, black (0) the
frozen rest. Only a single axis-aligned rectangle is supported.
"""

import io
from typing import Tuple

from PIL import Image

from archivision.core.images import image_dimensions
from archivision.models.render import NormalizedImage, SelectionBox

FROZEN = 0
EDITABLE = 255


def _scale(percent: float, size: int) -> int:
    return max(0, min(size, int(round(percent / 100.0 * size))))


def box_to_pixels(box: SelectionBox, width: int, height: int) -> Tuple[int, int, int, int]:
    """
    Pixel rectangle (left, top, right, bottom) for ``box``.

    Right/bottom are exclusive and the rectangle is clamped to the image.
    """
    left = _scale(box.x, width)
    top = _scale(box.y, height)
    right = _scale(box.right, width)
    bottom = _scale(box.bottom, height)
    return left, top, max(left, right), max(top, bottom)


def rasterize_mask(box: SelectionBox, width: int, height: int) -> NormalizedImage:
    """Render ``box`` as a grayscale PNG mask of ``width`` x ``height`` pixels."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Mask dimensions must be positive, got {width}x{height}")

    mask = Image.new("L", (width, height), FROZEN)
    left, top, right, bottom = box_to_pixels(box, width, height)
    if right > left and bottom > top:
        mask.paste(EDITABLE, (left, top, right, bottom))

    buffer = io.BytesIO()
    mask.save(buffer, format="PNG", optimize=False)
    return NormalizedImage(data=buffer.getvalue(), mime_type="image/png")


def mask_for_image(box: SelectionBox, image: NormalizedImage) -> NormalizedImage:
    """Rasterize ``box`` at the pixel size of ``image``."""
    width, height = image_dimensions(image)
    return rasterize_mask(box, width, height)
