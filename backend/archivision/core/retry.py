"""
Retrying Invoker

Wraps a remote generation call. Every failure is classified once, at this
boundary; only transient failures are retried, with exponential backoff
(2s, 4s, 8s, ...) plus up to one second of random jitter.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from archivision.core.errors import TransientError, classify_error
from archivision.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
MAX_BACKOFF_SECONDS = 60


def backoff_wait():
    """Delay before attempt i+1 is 2^(i+1) seconds plus jitter in [0, 1)."""
    return wait_exponential(multiplier=2, max=MAX_BACKOFF_SECONDS) + wait_random(0, 1)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "render.retry",
        attempt=retry_state.attempt_number,
        delay=round(retry_state.upcoming_sleep, 2),
        error=str(error),
    )


class RetryingInvoker:
    """
    Runs an async callable, retrying it while it fails transiently.

    Raises the last classified error (AuthRequired, AuthRevoked,
    TransientError, UnclassifiedError, or any RenderError raised by the
    callable itself), chained to the original exception.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self._sleep = sleep or asyncio.sleep

    async def invoke(self, fn: Callable[[], Awaitable[T]]) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=backoff_wait(),
            retry=retry_if_exception_type(TransientError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                try:
                    return await fn()
                except Exception as exc:
                    classified = classify_error(exc)
                    if classified is exc:
                        raise
                    raise classified from exc
        raise AssertionError("unreachable")  # pragma: no cover
