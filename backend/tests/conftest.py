import io
from types import SimpleNamespace
from typing import Any, List, Optional

import pytest
from PIL import Image

from archivision.config import Settings
from archivision.core.retry import RetryingInvoker


def make_png(width: int = 64, height: int = 48, color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def image_response(data: bytes, mime_type: str = "image/png") -> SimpleNamespace:
    """Shape of a Gemini response with one inline-image candidate."""
    inline = SimpleNamespace(data=data, mime_type=mime_type)
    parts = [SimpleNamespace(text="Here is your render", inline_data=None),
             SimpleNamespace(text=None, inline_data=inline)]
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


class FakeBackend:
    """In-memory stand-in for the Gemini backend."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls = []

    async def generate(self, request, target):
        self.calls.append((request, target))
        outcome = self.responses.pop(0) if self.responses else image_response(make_png(8, 8))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        google_api_key="test-key",
        image_model_name="image-model",
        upscale_model_name="upscale-model",
        batch_cooldown_seconds=2.0,
        max_retry_attempts=3,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def invoker(sleep) -> RetryingInvoker:
    return RetryingInvoker(max_attempts=3, sleep=sleep)
