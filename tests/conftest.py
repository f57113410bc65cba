from __future__ import annotations

import asyncio
from typing import Callable, Collection, List, Optional, Sequence

import pytest

from xclocalizer.providers import TranslationProvider
from xclocalizer.structures import TranslatableItem

Handler = Callable[[List[str], str], List[str]]


def tag_translations(texts: List[str], language: str) -> List[str]:
    return [f"[{language}] {text}" for text in texts]


class ScriptedProvider(TranslationProvider):
    """In-memory provider that records calls and tracks concurrent requests."""

    name = "scripted"

    def __init__(self, handler: Optional[Handler] = None, delay: float = 0.0) -> None:
        self.handler = handler or tag_translations
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls: list = []

    async def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        protected_terms: Collection[str] = (),
    ) -> List[str]:
        self.calls.append((list(texts), target_language, frozenset(protected_terms)))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return self.handler(list(texts), target_language)
        finally:
            self.in_flight -= 1


def make_items(count: int, prefix: str = "key") -> List[TranslatableItem]:
    return [
        TranslatableItem(key=f"{prefix}{index}", source_text=f"Text {index}")
        for index in range(count)
    ]


@pytest.fixture
def scripted_provider() -> ScriptedProvider:
    return ScriptedProvider()
