"""
Render Pipeline Errors

Typed failures surfaced by the render pipeline, plus the single place
where arbitrary exceptions (SDK errors, HTTP errors, JSON error payloads)
are reduced to a flat message and classified.

Classification policy (case-insensitive substring match on the message,
after status codes from the Gemini SDK are checked):
- AuthRequired: missing/invalid key, entity not found. Not retried.
- AuthRevoked: leaked key, permission denied. Not retried.
- TransientError: 429/500/503, overloaded, rate limit, network. Retried.
- UnclassifiedError: anything else. Not retried.
"""

import json
from typing import Any, Dict, Optional

from google.genai import errors as genai_errors


class RenderError(Exception):
    """Base class. Always carries a flat string message."""

    kind = "unclassified"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        return {"detail": self.message, "error_code": self.kind}


class ImageUnavailable(RenderError):
    """A source image could not be fetched or decoded by any path."""
    kind = "image_unavailable"
    status_code = 422


class AuthRequired(RenderError):
    """Credential missing or invalid. Caller should re-authenticate."""
    kind = "auth_required"
    status_code = 401


class AuthRevoked(RenderError):
    """Credential flagged as leaked or unauthorized. Caller must rotate it."""
    kind = "auth_revoked"
    status_code = 403


class TransientError(RenderError):
    """Rate limit, overload or network blip."""
    kind = "transient"
    status_code = 503


class NoImageInResponse(RenderError):
    """The model answered but no candidate carried image bytes."""
    kind = "no_image_in_response"
    status_code = 502


class UnclassifiedError(RenderError):
    kind = "unclassified"
    status_code = 500


class InvalidRenderRequest(RenderError):
    """The caller asked for an operation that cannot be built from its inputs."""
    kind = "invalid_request"
    status_code = 400


AUTH_REQUIRED_MARKERS = (
    "api_key_required",
    "api key not valid",
    "api_key_invalid",
    "invalid api key",
    "requested entity was not found",
    "unauthenticated",
)

AUTH_REVOKED_MARKERS = (
    "leaked",
    "permission_denied",
    "permission denied",
)

TRANSIENT_MARKERS = (
    "429",
    "500",
    "503",
    "internal error",
    "overloaded",
    "rate limit",
    "resource_exhausted",
    "unavailable",
    "timed out",
    "timeout",
    "fetch",
    "network",
    "connection",
    "failed to load",
)

AUTH_REQUIRED_CODES = {401, 404}
AUTH_REVOKED_CODES = {403}
TRANSIENT_CODES = {429, 500, 502, 503, 504}

UNKNOWN_ERROR = "Unknown Error"


def error_message(error: Any) -> str:
    """
    Reduce any error shape to a flat, serializable string.

    Handles plain strings, exceptions, ``{"error": {"message": ...}}``
    payloads, objects exposing ``.message`` and self-referential objects.
    Never raises.
    """
    if error is None:
        return UNKNOWN_ERROR
    if isinstance(error, str):
        return error or UNKNOWN_ERROR
    if isinstance(error, RenderError):
        return error.message

    if isinstance(error, dict):
        nested = error.get("error")
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
        if error.get("message"):
            return str(error["message"])
        try:
            return json.dumps(error, default=str)
        except (TypeError, ValueError):
            return "Complex/Circular Error Object"

    message = getattr(error, "message", None)
    if message:
        try:
            return str(message)
        except Exception:
            return "Complex/Circular Error Object"

    try:
        text = str(error)
    except Exception:
        return "Complex/Circular Error Object"
    if text:
        return text
    return type(error).__name__ if isinstance(error, BaseException) else UNKNOWN_ERROR


def _status_code(error: Any) -> Optional[int]:
    if isinstance(error, genai_errors.APIError):
        return error.code
    code = getattr(error, "status_code", None)
    return code if isinstance(code, int) else None


def classify_error(error: Any) -> RenderError:
    """Map an arbitrary failure onto the render error taxonomy."""
    if isinstance(error, RenderError):
        return error

    message = error_message(error)
    lowered = message.lower()
    code = _status_code(error)

    if code in AUTH_REQUIRED_CODES:
        return AuthRequired(message)
    if code in AUTH_REVOKED_CODES:
        return AuthRevoked(message)
    if code in TRANSIENT_CODES:
        return TransientError(message)

    if any(marker in lowered for marker in AUTH_REQUIRED_MARKERS):
        return AuthRequired(message)
    if any(marker in lowered for marker in AUTH_REVOKED_MARKERS):
        return AuthRevoked(message)
    if any(marker in lowered for marker in TRANSIENT_MARKERS):
        return TransientError(message)
    return UnclassifiedError(message)
