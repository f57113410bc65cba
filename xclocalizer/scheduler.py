"""Bounded concurrency scheduler for translation batches."""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, List, Optional, Sequence

from .errors import (
    BatchTimeoutError,
    InvalidArgument,
    RunCancelledError,
    describe,
)
from .logger import get_logger
from .policy import RetryPolicy
from .structures import Batch

logger = get_logger(__name__)

BatchExecutor = Callable[[Batch], Awaitable[List[str]]]
OutcomeHandler = Callable[["BatchOutcome"], None]


class CancellationToken:
    """Signals a running scheduler to stop dispatching queued batches.

    Safe to trigger from another thread, e.g. a UI thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class BatchOutcome:
    """Result of executing one batch: translations or the failure."""

    batch: Batch
    translations: Optional[List[str]] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class BatchScheduler:
    """Runs batches with at most ``concurrency`` provider calls in flight."""

    def __init__(
        self,
        concurrency: int,
        *,
        call_timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise InvalidArgument(
                f"concurrency must be a positive integer (got {concurrency!r})."
            )
        self.concurrency = concurrency
        self.call_timeout = call_timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.cancel_token = cancel_token

    async def run(
        self,
        batches: Sequence[Batch],
        execute: BatchExecutor,
        on_outcome: Optional[OutcomeHandler] = None,
    ) -> List[BatchOutcome]:
        """Execute every batch once and return the outcomes in completion order."""

        queue: Deque[Batch] = deque(batches)
        outcomes: List[BatchOutcome] = []

        def complete(outcome: BatchOutcome) -> None:
            outcomes.append(outcome)
            if on_outcome is not None:
                on_outcome(outcome)

        async def worker(slot: int) -> None:
            while queue:
                batch = queue.popleft()
                if self.cancel_token is not None and self.cancel_token.cancelled:
                    complete(
                        BatchOutcome(
                            batch=batch,
                            error=RunCancelledError("Translation run was cancelled."),
                        )
                    )
                    continue
                logger.debug(
                    "Slot %d dispatching batch %d (%s, %d items).",
                    slot,
                    batch.batch_id,
                    batch.target_language,
                    len(batch.items),
                )
                complete(await self._execute_batch(batch, execute))

        workers = min(self.concurrency, len(queue))
        if workers:
            await asyncio.gather(*(worker(slot) for slot in range(workers)))
        return outcomes

    async def _execute_batch(self, batch: Batch, execute: BatchExecutor) -> BatchOutcome:
        label = f"batch {batch.batch_id} ({batch.target_language})"
        try:
            translations = await self.retry_policy.call(
                lambda: self._call_with_deadline(batch, execute),
                label=label,
            )
        except Exception as exc:
            logger.warning("Batch %d failed: %s", batch.batch_id, describe(exc))
            return BatchOutcome(batch=batch, error=exc)
        return BatchOutcome(batch=batch, translations=list(translations))

    async def _call_with_deadline(self, batch: Batch, execute: BatchExecutor) -> List[str]:
        if self.call_timeout is None:
            return await execute(batch)
        try:
            return await asyncio.wait_for(execute(batch), timeout=self.call_timeout)
        except asyncio.TimeoutError as exc:
            raise BatchTimeoutError(
                f"Provider call timed out after {self.call_timeout:g} seconds."
            ) from exc
