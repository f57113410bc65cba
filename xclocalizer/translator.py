"""High-level orchestration for translation runs."""

from __future__ import annotations

import asyncio
import pathlib
import time
from typing import Any, List, MutableMapping, Optional, Sequence

from .documents import FieldSpec, catalog_plan, listing_items
from .errors import (
    InvalidArgument,
    LocalizerError,
    OverwriteRefusedError,
    TranslationProviderError,
)
from .grouping import TranslationPlan, group_plan
from .logger import get_logger
from .merger import CatalogMerger, ListingMerger, collect_translations
from .policy import RetryPolicy
from .progress import ProgressAggregator, ProgressCallback
from .providers import TranslationProvider
from .scheduler import BatchScheduler
from .structures import Batch, RunConfig, RunOutcome, TranslatableItem, unique_languages

logger = get_logger(__name__)


class TranslationRunner:
    """Coordinates grouping, scheduling, aggregation and merging for one provider."""

    def __init__(
        self,
        *,
        provider: TranslationProvider,
        config: RunConfig,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.on_progress = on_progress

    async def run(
        self,
        items: Sequence[TranslatableItem],
        target_languages: Optional[Sequence[str]] = None,
    ) -> RunOutcome:
        """Translate every item into every target language."""

        languages = unique_languages(
            self.config.target_languages if target_languages is None else target_languages
        )
        self._validate_items(items)
        self._validate_languages(languages)
        if items and not languages:
            raise InvalidArgument("At least one target language is required.")
        return await self.run_plan({language: items for language in languages})

    async def run_plan(self, plan: TranslationPlan) -> RunOutcome:
        """Translate each language's own item list in a single scheduled run."""

        start_time = time.monotonic()
        self._validate_languages(list(plan))
        for items in plan.values():
            self._validate_items(items)
        plan = {language: list(items) for language, items in plan.items() if items}

        batches = group_plan(plan, self.config.batch_size)
        total = sum(len(items) for items in plan.values())
        aggregator = ProgressAggregator(total, self.on_progress)
        aggregator.register_languages(plan)

        if batches:
            logger.info(
                "Prepared %d translations for %d languages in %d batches (concurrency %d).",
                total,
                len(plan),
                len(batches),
                self.config.concurrency,
            )
            scheduler = BatchScheduler(
                self.config.concurrency,
                call_timeout=self.config.call_timeout,
                retry_policy=RetryPolicy(
                    max_retries=self.config.max_retries,
                    backoff=self.config.retry_backoff,
                ),
                cancel_token=self.config.cancel_token,
            )
            await scheduler.run(batches, self._execute, aggregator.record_batch)

        summary = aggregator.summary(elapsed_seconds=time.monotonic() - start_time)
        if summary.has_errors:
            logger.warning(summary.completion_message())
        else:
            logger.info(summary.completion_message())

        return RunOutcome(
            results=list(aggregator.results),
            translations=collect_translations(aggregator.results),
            summary=summary,
        )

    async def _execute(self, batch: Batch) -> List[str]:
        translations = await self.provider.translate_batch(
            batch.texts,
            batch.target_language,
            self.config.protected_terms,
        )
        if not isinstance(translations, list) or len(translations) != len(batch.items):
            received = len(translations) if isinstance(translations, list) else type(translations).__name__
            raise TranslationProviderError(
                f"Provider returned {received} translations for {len(batch.items)} texts."
            )
        if not all(isinstance(value, str) for value in translations):
            raise TranslationProviderError("Provider returned non-text translations.")
        return translations

    def _validate_items(self, items: Sequence[TranslatableItem]) -> None:
        seen = set()
        for item in items:
            if not isinstance(item, TranslatableItem):
                raise InvalidArgument(f"Expected TranslatableItem, got {type(item).__name__}.")
            if item.key in seen:
                raise InvalidArgument(f"Duplicate item key '{item.key}' in one run.")
            seen.add(item.key)

    def _validate_languages(self, languages: Sequence[str]) -> None:
        if any(not isinstance(language, str) or not language.strip() for language in languages):
            raise InvalidArgument("Target languages must be non-empty strings.")


async def run_translation(
    items: Sequence[TranslatableItem],
    target_languages: Optional[Sequence[str]] = None,
    config: Optional[RunConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    provider: TranslationProvider,
) -> RunOutcome:
    """Translate ``items`` into every target language and return the outcome."""

    runner = TranslationRunner(
        provider=provider,
        config=config or RunConfig(),
        on_progress=on_progress,
    )
    return await runner.run(items, target_languages)


def run_translation_sync(
    items: Sequence[TranslatableItem],
    target_languages: Optional[Sequence[str]] = None,
    config: Optional[RunConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    provider: TranslationProvider,
) -> RunOutcome:
    return asyncio.run(
        run_translation(items, target_languages, config, on_progress, provider=provider)
    )


async def translate_catalog(
    catalog: MutableMapping[str, Any],
    config: RunConfig,
    *,
    provider: TranslationProvider,
    on_progress: Optional[ProgressCallback] = None,
    only_missing: bool = True,
) -> RunOutcome:
    """Translate a string catalog in place for ``config.target_languages``.

    With ``only_missing`` each key is sent only for the languages it lacks,
    and languages already present for that key are left alone.
    """

    plan = catalog_plan(catalog, config.target_languages, only_missing=only_missing)
    runner = TranslationRunner(provider=provider, config=config, on_progress=on_progress)
    outcome = await runner.run_plan(plan)
    CatalogMerger().merge(catalog, outcome.results)
    return outcome


async def translate_listing(
    record: MutableMapping[str, Any],
    fields: Sequence[FieldSpec],
    config: RunConfig,
    *,
    provider: TranslationProvider,
    on_progress: Optional[ProgressCallback] = None,
) -> RunOutcome:
    """Translate a store listing record in place, respecting field limits."""

    source_locale = record.get("sourceLocale")
    languages = [language for language in config.target_languages if language != source_locale]
    items = listing_items(record, fields)
    outcome = await run_translation(items, languages, config, on_progress, provider=provider)
    ListingMerger(fields).merge(record, outcome.results)
    return outcome


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .xcstrings or .json file."
        )
    if not input_path.is_file():
        raise LocalizerError("Input path must be a file.")

    if input_path.resolve() == output_path.resolve() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output path matches the input file. Use the overwrite flag to update it in place."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )
