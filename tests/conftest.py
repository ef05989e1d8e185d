"""Shared test fixtures for subtranslator tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path

import pytest

from subtranslator.backends.base import ProviderClient
from subtranslator.translation.batching import TextUnit
from subtranslator.translation.prompts import parse_translation_user_content

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def translations_json(values: list[str]) -> str:
    """Build a well-formed translation response."""
    return json.dumps({"translations": values}, ensure_ascii=False)


def make_units(*texts: str) -> list[TextUnit]:
    """Units with ids "1", "2", ... in order."""
    return [TextUnit(id=str(i), content=t) for i, t in enumerate(texts, start=1)]


def _upper(texts: list[str] | None, call: int) -> str:
    if texts is None:
        return json.dumps({"terminology": []})
    return translations_json([t.upper() for t in texts])


class FakeProvider(ProviderClient):
    """Scripted provider.

    ``responder(texts, call_number)`` returns the raw content or raises.
    ``texts`` is None for requests that are not translation requests.
    Those go to ``extractor(user_content)`` instead when one is given.
    ``delay(user_content)`` seconds are awaited before answering, which lets
    tests force an arbitrary completion order.
    """

    name = "fake"

    def __init__(
        self,
        responder: Callable[[list[str] | None, int], str] | None = None,
        *,
        extractor: Callable[[str], str] | None = None,
        delay: Callable[[str], float] | None = None,
    ) -> None:
        self._responder = responder or _upper
        self._extractor = extractor
        self._delay = delay
        self.calls: list[tuple[str, str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @property
    def translation_calls(self) -> list[list[str]]:
        out = []
        for _, _, user in self.calls:
            texts = parse_translation_user_content(user)
            if texts is not None:
                out.append(texts)
        return out

    async def complete(self, model: str, instruction: str, user_content: str) -> str:
        self.calls.append((model, instruction, user_content))
        call_number = len(self.calls)
        texts = parse_translation_user_content(user_content)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay is not None:
                await asyncio.sleep(self._delay(user_content))
            else:
                await asyncio.sleep(0)
            if texts is None and self._extractor is not None:
                return self._extractor(user_content)
            return self._responder(texts, call_number)
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def sample_srt(tmp_path: Path) -> Path:
    """Copy of the sample subtitle file in a writable directory."""
    target = tmp_path / "sample.srt"
    target.write_text((FIXTURES_DIR / "sample.srt").read_text(encoding="utf-8"), encoding="utf-8")
    return target


@pytest.fixture
def sample_units() -> list[TextUnit]:
    return make_units("Hello", "World", "How are you?", "Fine, thanks.")


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def tmp_cache(tmp_path: Path):
    """Create a temporary translation cache."""
    from subtranslator.translation.cache import TranslationCache
    cache = TranslationCache(db_path=tmp_path / "test_cache.db")
    yield cache
    cache.close()
