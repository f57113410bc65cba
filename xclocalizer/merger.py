"""Fold item results back into the caller's documents."""

from __future__ import annotations

from typing import Any, Dict, Iterable, MutableMapping, Sequence

from .documents import FieldSpec, enforce_limit
from .logger import get_logger
from .structures import ItemResult

logger = get_logger(__name__)

STATE_TRANSLATED = "translated"
STATE_NEEDS_REVIEW = "needs_review"


def collect_translations(results: Iterable[ItemResult]) -> Dict[str, Dict[str, str]]:
    """Return ``{language: {key: value}}`` for every result."""

    merged: Dict[str, Dict[str, str]] = {}
    for result in results:
        merged.setdefault(result.target_language, {})[result.key] = result.value
    return merged


class CatalogMerger:
    """Writes results into a string catalog's ``stringUnit`` entries.

    Successful items are stored as ``translated``; items that fell back to
    their source text are stored as ``needs_review``. Only the
    (key, language) pairs present in the results are written.
    """

    def merge(
        self,
        catalog: MutableMapping[str, Any],
        results: Iterable[ItemResult],
    ) -> MutableMapping[str, Any]:
        strings = catalog.setdefault("strings", {})
        written = 0
        for result in results:
            entry = strings.setdefault(result.key, {})
            localizations = entry.setdefault("localizations", {})
            localizations[result.target_language] = {
                "stringUnit": {
                    "state": STATE_TRANSLATED if result.succeeded else STATE_NEEDS_REVIEW,
                    "value": result.value,
                }
            }
            written += 1
        logger.debug("Merged %d catalog localizations.", written)
        return catalog


class ListingMerger:
    """Writes results into ``record["localizations"][locale][field]``.

    Values longer than the field's character limit are truncated with a
    trailing marker.
    """

    def __init__(self, fields: Sequence[FieldSpec]) -> None:
        self.limits = {spec.key: spec.limit for spec in fields}

    def merge(
        self,
        record: MutableMapping[str, Any],
        results: Iterable[ItemResult],
    ) -> MutableMapping[str, Any]:
        localizations = record.setdefault("localizations", {})
        for result in results:
            value = result.value
            limit = self.limits.get(result.key)
            if limit is not None and len(value) > limit:
                logger.info(
                    "%s: %s exceeds %d characters; truncating.",
                    result.target_language,
                    result.key,
                    limit,
                )
                value = enforce_limit(value, limit)
            localizations.setdefault(result.target_language, {})[result.key] = value
        return record
