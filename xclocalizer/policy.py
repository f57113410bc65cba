"""Retry policy applied to individual provider calls."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

from .errors import TranslationProviderError
from .logger import get_logger
from .structures import DEFAULT_RETRY_BACKOFF

logger = get_logger(__name__)

T = TypeVar("T")
Sleeper = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Retries transient provider failures with a fixed backoff table.

    Only ``TranslationProviderError`` (timeouts included) is retried; any
    other exception propagates on the first attempt. The default of zero
    retries keeps the first failure as final.
    """

    def __init__(
        self,
        *,
        max_retries: int = 0,
        backoff: Sequence[float] = DEFAULT_RETRY_BACKOFF,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.max_retries = max(0, max_retries)
        self.backoff = tuple(backoff) or (0,)
        self._sleep = sleep

    def should_retry(self, attempt: int, exc: BaseException) -> bool:
        """Return True when a failed ``attempt`` (1-based) may be repeated."""

        return isinstance(exc, TranslationProviderError) and attempt <= self.max_retries

    def delay_for(self, attempt: int) -> float:
        return self.backoff[min(attempt - 1, len(self.backoff) - 1)]

    async def call(self, operation: Callable[[], Awaitable[T]], *, label: str) -> T:
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                attempt += 1
                if not self.should_retry(attempt, exc):
                    raise
                wait_time = self.delay_for(attempt)
                logger.warning(
                    "Could not translate %s (%s). Retry %d of %d in %ss.",
                    label,
                    exc,
                    attempt,
                    self.max_retries,
                    wait_time,
                )
                await self._sleep(wait_time)
