"""Work item grouping into single-language batches."""

from __future__ import annotations

from typing import Iterable, List, Mapping, Sequence

from .errors import InvalidArgument
from .structures import Batch, TranslatableItem, unique_languages

TranslationPlan = Mapping[str, Sequence[TranslatableItem]]


def _chunk(items: Sequence[TranslatableItem], size: int) -> List[Sequence[TranslatableItem]]:
    """Split items into consecutive slices of at most ``size`` entries."""

    return [items[index : index + size] for index in range(0, len(items), size)]


def _check_batch_size(batch_size: int) -> None:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise InvalidArgument(
            f"batch_size must be a positive integer (got {batch_size!r})."
        )


def group_items(
    items: Sequence[TranslatableItem],
    target_languages: Iterable[str],
    batch_size: int,
) -> List[Batch]:
    """Partition items x languages into batches, language first, then by size."""

    _check_batch_size(batch_size)
    return BatchBuilder(batch_size).build(items, target_languages)


def group_plan(plan: TranslationPlan, batch_size: int) -> List[Batch]:
    """Batch a per-language plan where each language has its own item list."""

    _check_batch_size(batch_size)
    return BatchBuilder(batch_size).build_plan(plan)


class BatchBuilder:
    """Aggregates items into batches of at most ``batch_size`` items."""

    def __init__(self, batch_size: int) -> None:
        self.batch_size = batch_size

    def build(
        self,
        items: Sequence[TranslatableItem],
        target_languages: Iterable[str],
    ) -> List[Batch]:
        if not items:
            return []
        ordered = list(items)
        return self.build_plan(
            {language: ordered for language in unique_languages(target_languages)}
        )

    def build_plan(self, plan: TranslationPlan) -> List[Batch]:
        batches: List[Batch] = []
        batch_id = 1
        for language, items in plan.items():
            for chunk in _chunk(list(items), self.batch_size):
                batches.append(
                    Batch(batch_id=batch_id, target_language=language, items=tuple(chunk))
                )
                batch_id += 1
        return batches
