"""Progress reporting and result aggregation for translation runs."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from .errors import (
    ErrorCategory,
    ErrorRecord,
    TranslationProviderError,
    categorise,
    describe,
)
from .logger import get_logger
from .scheduler import BatchOutcome
from .structures import (
    ItemError,
    ItemResult,
    ItemStatus,
    RunProgress,
    RunSummary,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[RunProgress], None]


class ProgressAggregator:
    """Turns batch outcomes into per-item results and progress events.

    Only ever driven from the scheduler's ``on_outcome`` hook, which runs on
    the event loop thread, so counters are updated by a single writer.
    """

    def __init__(self, total: int, on_progress: Optional[ProgressCallback] = None) -> None:
        self.total = total
        self.current = 0
        self.on_progress = on_progress
        self.results: List[ItemResult] = []
        self.errors: List[ItemError] = []
        self.records: List[ErrorRecord] = []
        self._success_by_language: Dict[str, int] = {}
        self._failure_by_language: Dict[str, int] = {}

    def register_languages(self, languages) -> None:
        """Ensure every requested language appears in the summary counts."""

        for language in languages:
            self._success_by_language.setdefault(language, 0)
            self._failure_by_language.setdefault(language, 0)

    def record_batch(self, outcome: BatchOutcome) -> None:
        batch = outcome.batch
        language = batch.target_language

        received = len(outcome.translations or [])
        if outcome.succeeded and received != len(batch.items):
            outcome = BatchOutcome(
                batch=batch,
                error=TranslationProviderError(
                    f"Expected {len(batch.items)} translations, received {received}."
                ),
            )

        if outcome.succeeded:
            translations = outcome.translations or []
            for item, translated in zip(batch.items, translations):
                self._record_item(
                    ItemResult(
                        key=item.key,
                        target_language=language,
                        status=ItemStatus.SUCCESS,
                        value=translated,
                    )
                )
            return

        error = outcome.error
        message = describe(error) if error is not None else "Unknown error"
        self.records.append(
            ErrorRecord(
                category=categorise(error) if error is not None else ErrorCategory.OTHER,
                message=f"Batch {batch.batch_id} ({language}) failed: {message}",
            )
        )
        for item in batch.items:
            self._record_item(
                ItemResult(
                    key=item.key,
                    target_language=language,
                    status=ItemStatus.FAILED,
                    value=item.source_text,
                    error_message=message,
                )
            )

    def _record_item(self, result: ItemResult) -> None:
        self.results.append(result)
        language = result.target_language
        self.current = min(self.current + 1, self.total)
        label = f"{language}: {result.key} ({self.current}/{self.total})"

        if result.succeeded:
            self._success_by_language[language] = self._success_by_language.get(language, 0) + 1
            self._emit(RunProgress(self.current, self.total, label))
            return

        self._failure_by_language[language] = self._failure_by_language.get(language, 0) + 1
        error = result.error_message or "Unknown error"
        self.errors.append(ItemError(key=result.key, target_language=language, error=error))
        self._emit(RunProgress(self.current, self.total, label))
        self._emit(RunProgress(self.current, self.total, f"{label} - ERROR", error=error))

    def _emit(self, progress: RunProgress) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(progress)
        except Exception as exc:
            self.records.append(
                ErrorRecord(
                    category=ErrorCategory.CALLBACK,
                    message="Progress callback raised an exception.",
                    details=describe(exc),
                )
            )
            logger.exception("Progress callback failed at %s; continuing.", progress.current_label)

    def summary(self, elapsed_seconds: float = 0.0) -> RunSummary:
        return RunSummary(
            total=self.total,
            success_by_language=dict(self._success_by_language),
            failure_by_language=dict(self._failure_by_language),
            errors=list(self.errors),
            records=list(self.records),
            elapsed_seconds=elapsed_seconds,
        )
