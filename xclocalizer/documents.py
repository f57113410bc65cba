"""In-memory helpers for string catalogs and store listing records.

String catalogs are the JSON shape of Xcode ``.xcstrings`` files::

    {"sourceLanguage": "en", "version": "1.0",
     "strings": {"hello": {"localizations": {"fr": {"stringUnit": {...}}}}}}

Listing records hold store metadata per locale::

    {"sourceLocale": "en-US",
     "localizations": {"en-US": {"description": "..."}, "de-DE": {...}}}
"""

from __future__ import annotations

import json
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .errors import InvalidArgument, UnsupportedFileTypeError
from .structures import TranslatableItem, unique_languages

DEFAULT_SOURCE_LANGUAGE = "en"
DEFAULT_CATALOG_VERSION = "1.0"
TRUNCATION_MARKER = "..."


@dataclass(frozen=True)
class FieldSpec:
    """A translatable store field and its character limit."""

    key: str
    label: str
    limit: int


APP_STORE_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("description", "Description", 4000),
    FieldSpec("whatsNew", "What's New", 4000),
    FieldSpec("promotionalText", "Promotional Text", 170),
    FieldSpec("keywords", "Keywords", 100),
)

APP_INFO_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("name", "Name", 30),
    FieldSpec("subtitle", "Subtitle", 30),
)

GOOGLE_PLAY_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("title", "Title", 30),
    FieldSpec("shortDescription", "Short Description", 80),
    FieldSpec("fullDescription", "Full Description", 4000),
)

SUBSCRIPTION_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("name", "Display Name", 30),
    FieldSpec("description", "Description", 45),
)

STORE_FIELDS: Dict[str, Tuple[FieldSpec, ...]] = {
    "appstore": APP_STORE_FIELDS,
    "appinfo": APP_INFO_FIELDS,
    "googleplay": GOOGLE_PLAY_FIELDS,
    "subscription": SUBSCRIPTION_FIELDS,
}


def enforce_limit(text: str, limit: int) -> str:
    """Truncate ``text`` to ``limit`` characters with a trailing marker."""

    if limit <= 0 or len(text) <= limit:
        return text
    if limit <= len(TRUNCATION_MARKER):
        return text[:limit]
    return text[: limit - len(TRUNCATION_MARKER)].rstrip() + TRUNCATION_MARKER


# String catalogs


def normalise_catalog(data: Any) -> Dict[str, Any]:
    """Fill in the top-level keys a catalog must carry."""

    if not isinstance(data, dict):
        raise InvalidArgument("String catalog must be a JSON object at the root.")
    if not data.get("sourceLanguage"):
        data["sourceLanguage"] = DEFAULT_SOURCE_LANGUAGE
    if not isinstance(data.get("strings"), dict):
        data["strings"] = {}
    if not data.get("version"):
        data["version"] = DEFAULT_CATALOG_VERSION
    return data


def parse_catalog(content: str) -> Dict[str, Any]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise InvalidArgument(f"Failed to parse string catalog: {exc}") from exc
    return normalise_catalog(data)


def serialise_catalog(data: Mapping[str, Any]) -> str:
    """Render a catalog with sorted keys and localizations for stable diffs."""

    ordered: Dict[str, Any] = {
        "sourceLanguage": data.get("sourceLanguage") or DEFAULT_SOURCE_LANGUAGE,
        "strings": {},
        "version": data.get("version") or DEFAULT_CATALOG_VERSION,
    }
    strings = data.get("strings") or {}
    for key in sorted(strings):
        entry = dict(strings[key])
        localizations = entry.get("localizations")
        if isinstance(localizations, dict):
            entry["localizations"] = {
                language: localizations[language] for language in sorted(localizations)
            }
        ordered["strings"][key] = entry
    return json.dumps(ordered, ensure_ascii=False, indent=2)


def localized_value(entry: Mapping[str, Any], language: str) -> str | None:
    localizations = entry.get("localizations") or {}
    unit = (localizations.get(language) or {}).get("stringUnit") or {}
    value = unit.get("value")
    return value if isinstance(value, str) else None


def source_text(data: Mapping[str, Any], key: str) -> str:
    """Return the source-language value of ``key``, falling back to the key."""

    entry = (data.get("strings") or {}).get(key) or {}
    language = data.get("sourceLanguage") or DEFAULT_SOURCE_LANGUAGE
    return localized_value(entry, language) or key


def catalog_statistics(
    data: Mapping[str, Any],
    target_languages: Iterable[str] = (),
) -> Dict[str, Any]:
    strings = data.get("strings") or {}
    keys = list(strings)

    languages = sorted(
        {
            language
            for entry in strings.values()
            for language in (entry.get("localizations") or {})
        }
    )

    translated: Dict[str, int] = {}
    missing: Dict[str, int] = {}
    for language in languages:
        count = sum(1 for key in keys if localized_value(strings[key], language))
        translated[language] = count
        missing[language] = len(keys) - count

    for language in target_languages:
        if language not in translated:
            translated[language] = 0
            missing[language] = len(keys)

    return {
        "totalStrings": len(keys),
        "languages": languages,
        "translationCounts": translated,
        "missingCounts": missing,
        "sourceLanguage": data.get("sourceLanguage") or DEFAULT_SOURCE_LANGUAGE,
    }


def missing_translations(
    data: Mapping[str, Any],
    target_languages: Sequence[str],
) -> Dict[str, Tuple[str, List[str]]]:
    """Map each key lacking a target language to (source text, missing languages)."""

    missing: Dict[str, Tuple[str, List[str]]] = {}
    for key, entry in (data.get("strings") or {}).items():
        localizations = (entry or {}).get("localizations") or {}
        languages = [language for language in target_languages if language not in localizations]
        if languages:
            missing[key] = (source_text(data, key), languages)
    return missing


def catalog_items(
    data: Mapping[str, Any],
    target_languages: Sequence[str],
    *,
    only_missing: bool = True,
) -> List[TranslatableItem]:
    """Build the items to translate from a catalog.

    With ``only_missing`` a key is included when at least one target language
    lacks a localization for it. Keys flagged ``shouldTranslate: false`` are
    never included.
    """

    strings = data.get("strings") or {}
    if only_missing:
        wanted = set(missing_translations(data, target_languages))
    else:
        wanted = set(strings)

    items: List[TranslatableItem] = []
    for key, entry in strings.items():
        if key not in wanted:
            continue
        if (entry or {}).get("shouldTranslate") is False:
            continue
        text = source_text(data, key)
        if not text.strip():
            continue
        items.append(TranslatableItem(key=key, source_text=text))
    return items


def catalog_plan(
    data: Mapping[str, Any],
    target_languages: Sequence[str],
    *,
    only_missing: bool = True,
) -> Dict[str, List[TranslatableItem]]:
    """Map each target language to the catalog items it needs.

    With ``only_missing`` a key is planned only for the languages it has no
    localization for, so existing translations are never re-sent.
    """

    strings = data.get("strings") or {}
    candidates = catalog_items(data, target_languages, only_missing=only_missing)

    plan: Dict[str, List[TranslatableItem]] = {}
    for language in unique_languages(target_languages):
        plan[language] = [
            item
            for item in candidates
            if not only_missing
            or language not in ((strings.get(item.key) or {}).get("localizations") or {})
        ]
    return plan


# Store listings


def normalise_listing(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidArgument("Listing record must be a JSON object at the root.")
    if not isinstance(data.get("localizations"), dict):
        data["localizations"] = {}
    if not data.get("sourceLocale"):
        locales = list(data["localizations"])
        if not locales:
            raise InvalidArgument("Listing record has no sourceLocale and no localizations.")
        data["sourceLocale"] = locales[0]
    return data


def listing_items(
    data: Mapping[str, Any],
    fields: Sequence[FieldSpec],
) -> List[TranslatableItem]:
    """Build items from the non-empty source-locale fields of a listing."""

    source_locale = data.get("sourceLocale")
    source = (data.get("localizations") or {}).get(source_locale)
    if not isinstance(source, dict):
        raise InvalidArgument(f"No source localization found for {source_locale}.")

    items: List[TranslatableItem] = []
    for spec in fields:
        text = source.get(spec.key)
        if isinstance(text, str) and text.strip():
            items.append(TranslatableItem(key=spec.key, source_text=text))
    return items


def detect_document_type(path: pathlib.Path, store: str | None = None) -> str:
    """Select the document kind for a file: ``catalog`` or a store name."""

    suffix = path.suffix.lower()
    if suffix == ".xcstrings":
        return "catalog"
    if suffix == ".json":
        if store is None:
            raise UnsupportedFileTypeError(
                "JSON listing files need a store type (appstore, appinfo, googleplay, subscription)."
            )
        if store not in STORE_FIELDS:
            raise UnsupportedFileTypeError(f"Unknown store type '{store}'.")
        return store
    raise UnsupportedFileTypeError(
        "This file type isn't supported. Please use .xcstrings or a .json listing."
    )
