"""
Image Normalizer

Turns any supported image reference into image bytes plus a media type:

- ``http(s)://`` URLs are fetched without cookies or credentials. Responses
  whose media type is on the allow-list are used as-is; anything else
  (HTML error pages, GIFs, failed fetches) goes through a rasterization
  fallback that decodes the image with Pillow and re-encodes it as PNG.
- ``data:<mime>;base64,<payload>`` URIs are decoded locally.
- Anything else is treated as a bare base64 PNG payload.
"""

import base64
import binascii
import io
import re
import time
from typing import Optional, Tuple
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

import httpx
from PIL import Image, UnidentifiedImageError

from archivision.core.errors import ImageUnavailable, error_message
from archivision.logging import get_logger
from archivision.models.render import NormalizedImage

logger = get_logger(__name__)

ACCEPTED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
})

DEFAULT_MIME_TYPE = "image/png"

# Pillow failures that mean "not a usable image". DecompressionBombError covers
# images past Pillow's pixel limit.
_DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError)

# Fetch failures, including references httpx or urlsplit cannot parse.
_FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL, ValueError)

# Payloads shorter than this are treated as corrupt.
MIN_IMAGE_BYTES = 32

_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
_DATA_URI_PATTERN = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^;,]*)*),(?P<payload>.*)$",
    re.IGNORECASE | re.DOTALL,
)


def is_url(ref: str) -> bool:
    return bool(_URL_PATTERN.match(ref))


def with_cache_buster(url: str, stamp: Optional[int] = None) -> str:
    """Return ``url`` with a ``cb`` query parameter set to the current epoch millis."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "cb"]
    query.append(("cb", str(stamp if stamp is not None else int(time.time() * 1000))))
    return urlunsplit(parts._replace(query=urlencode(query)))


def _b64decode(payload: str) -> bytes:
    cleaned = "".join(payload.split())
    # Tolerate missing padding from clients that strip it.
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageUnavailable(f"Invalid base64 image payload: {e}") from e


def decode_data_uri(ref: str) -> NormalizedImage:
    """Split a data URI into bytes and its declared media type."""
    match = _DATA_URI_PATTERN.match(ref)
    if not match:
        raise ImageUnavailable("Malformed data URI")
    mime_type = (match.group("mime") or DEFAULT_MIME_TYPE).lower()
    params = (match.group("params") or "").lower()
    payload = match.group("payload")
    if ";base64" not in params:
        raise ImageUnavailable("Only base64-encoded data URIs are supported")
    return NormalizedImage(data=_b64decode(payload), mime_type=mime_type)


def rasterize_to_png(data: bytes) -> NormalizedImage:
    """Decode any Pillow-readable image at natural size and re-encode as PNG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGBA")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
    except _DECODE_ERRORS as e:
        raise ImageUnavailable(f"Could not decode image: {e}") from e
    return NormalizedImage(data=buffer.getvalue(), mime_type="image/png")


def image_dimensions(image: NormalizedImage) -> Tuple[int, int]:
    """
    Pixel (width, height) of an image.

    Near-empty payloads are treated as corrupt.
    """
    if len(image.data) < MIN_IMAGE_BYTES:
        raise ImageUnavailable(
            f"Image payload too small ({len(image.data)} bytes), likely corrupt"
        )
    try:
        with Image.open(io.BytesIO(image.data)) as img:
            width, height = img.size
    except _DECODE_ERRORS as e:
        raise ImageUnavailable(f"Could not read image dimensions: {e}") from e
    if width <= 0 or height <= 0:
        raise ImageUnavailable("Image has no pixels")
    return width, height


class ImageNormalizer:
    """
    Resolves image references to NormalizedImage.

    An ``httpx.AsyncClient`` may be injected (tests pass one backed by
    ``httpx.MockTransport``). Otherwise a short-lived client is created per
    fetch. Either way no cookies are stored or sent.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self._client = client
        self._timeout = timeout

    async def normalize(self, ref: str) -> NormalizedImage:
        ref = str(ref).strip()
        if not ref:
            raise ImageUnavailable("Empty image reference")

        if is_url(ref):
            return await self._from_url(ref)
        if ref.lower().startswith("data:"):
            return decode_data_uri(ref)
        return NormalizedImage(data=_b64decode(ref), mime_type=DEFAULT_MIME_TYPE)

    async def _from_url(self, url: str) -> NormalizedImage:
        try:
            response = await self._get(url)
            response.raise_for_status()
            mime_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
            if mime_type in ACCEPTED_MIME_TYPES:
                return NormalizedImage(data=response.content, mime_type=mime_type)
            reason = f"unsupported media type {mime_type or 'unknown'!r}"
        except _FETCH_ERRORS as e:
            reason = error_message(e)

        logger.info("image.fallback", url=url, reason=reason)
        return await self._rasterize_url(url)

    async def _rasterize_url(self, url: str) -> NormalizedImage:
        try:
            response = await self._get(with_cache_buster(url))
            response.raise_for_status()
        except _FETCH_ERRORS as e:
            raise ImageUnavailable(
                f"Image load failed during fallback conversion: {error_message(e)}"
            ) from e
        return rasterize_to_png(response.content)

    async def _get(self, url: str) -> httpx.Response:
        headers = {"Cache-Control": "no-store", "Accept": "image/*"}
        if self._client is not None:
            # Drop anything a shared client may have collected.
            self._client.cookies.clear()
            return await self._client.get(url, headers=headers, follow_redirects=True)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url, headers=headers, follow_redirects=True)
