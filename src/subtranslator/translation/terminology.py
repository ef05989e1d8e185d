"""Terminology extraction: build one glossary for a whole job before translating.

Extraction is an optimization. A chunk whose request fails or whose answer
cannot be parsed contributes no terms, and the job carries on with whatever
glossary it has.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from subtranslator.backends.base import ProviderClient
from subtranslator.errors import FormatError, MissingProviderOutput, ProviderError
from subtranslator.translation.batching import Batch
from subtranslator.translation.cache import KIND_REQUEST, CacheGuard, request_key
from subtranslator.translation.glossary import Glossary
from subtranslator.translation.options import TerminologyScope
from subtranslator.translation.prompts import (
    extraction_instruction,
    extraction_user_content,
    render_glossary,
)
from subtranslator.translation.validator import is_missing, load_payload
from subtranslator.translation.workers import run_bounded

logger = logging.getLogger(__name__)

TERMINOLOGY_KEY = "terminology"
ALTERNATE_KEYS = ("terms", "entries", "glossary", "dictionary", "translations")

# Accepted (original, translated) field-name pairs inside entry objects
_PAIR_FIELDS = (
    ("original", "translated"),
    ("source", "target"),
    ("term", "translation"),
    ("key", "value"),
)


def _entry_pair(entry: Any) -> tuple[str, str] | None:
    if not isinstance(entry, dict):
        return None
    for source_field, target_field in _PAIR_FIELDS:
        source, target = entry.get(source_field), entry.get(target_field)
        if isinstance(source, str) and isinstance(target, str):
            return source, target
    # Fall back to the first two values, whatever their names
    values = list(entry.values())
    if len(values) >= 2 and isinstance(values[0], str) and isinstance(values[1], str):
        return values[0], values[1]
    return None


def _entries_to_terms(entries: list[Any]) -> dict[str, str]:
    terms: dict[str, str] = {}
    for entry in entries:
        pair = _entry_pair(entry)
        if pair is None:
            continue
        source, target = pair[0].strip(), pair[1].strip()
        if source and target:
            terms[source] = target
    return terms


def parse_terminology(content: str) -> dict[str, str] | None:
    """Parse a terminology answer into ``{original: translated}``.

    Returns None when the content is not usable at all; an empty dict means the
    provider found no terms.
    """
    payload = load_payload(content)
    if is_missing(payload):
        return None

    if isinstance(payload, dict):
        entries = payload.get(TERMINOLOGY_KEY)
        if isinstance(entries, list):
            return _entries_to_terms(entries)

        for key in ALTERNATE_KEYS:
            entries = payload.get(key)
            if isinstance(entries, list):
                terms = _entries_to_terms(entries)
                if terms:
                    return terms

        flat = {
            k.strip(): v.strip()
            for k, v in payload.items()
            if k != TERMINOLOGY_KEY and isinstance(v, str) and k.strip() and v.strip()
        }
        if flat:
            return flat
        return None

    if isinstance(payload, list):
        terms = _entries_to_terms(payload)
        return terms if terms else None

    return None


class TerminologyCoordinator:
    """Issues extraction requests and merges their answers into one Glossary."""

    def __init__(
        self,
        provider: ProviderClient,
        cache: CacheGuard,
        *,
        model: str,
        temperature: float | None = None,
        use_cache: bool = True,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._model = model
        self._temperature = temperature
        self._use_cache = use_cache
        self.failed_chunks = 0
        self.cache_hits = 0
        self.provider_calls = 0

    async def extract(
        self,
        batch_text: str,
        source_lang: str | None,
        target_lang: str,
        seed: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Ask the provider for the recurring terms in *batch_text*.

        Raises:
            ProviderError: transport failure, empty or unparseable answer.
        """
        instruction = extraction_instruction(target_lang, source_lang, seed)
        user_content = extraction_user_content(batch_text)
        key = request_key(self._model, instruction, user_content, self._temperature)

        if self._use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                terms = parse_terminology(cached)
                if terms is not None:
                    self.cache_hits += 1
                    return terms

        self.provider_calls += 1
        content = await self._provider.complete(self._model, instruction, user_content)
        if not content:
            raise MissingProviderOutput("No content in terminology extraction response")

        terms = parse_terminology(content)
        if terms is None:
            raise FormatError(
                "Terminology response could not be parsed", excerpt=content[:200]
            )

        if self._use_cache:
            self._cache.set(key, content, kind=KIND_REQUEST)
        return terms

    @staticmethod
    def merge(existing: Glossary, incoming: Mapping[str, str]) -> Glossary:
        """Union by key; incoming wins except over seed entries."""
        merged = existing.copy()
        merged.merge(incoming)
        return merged

    @staticmethod
    def render(glossary: Glossary) -> str:
        return render_glossary(glossary.terms)

    async def build(
        self,
        batches: Sequence[Batch],
        source_lang: str | None,
        target_lang: str,
        *,
        seed: Glossary | None = None,
        scope: TerminologyScope = TerminologyScope.corpus,
        concurrency: int = 1,
    ) -> Glossary:
        """Extract terms over *batches* and return the merged glossary.

        Chunks are extracted concurrently but merged in batch order only after
        every request has finished, so the result does not depend on timing.
        """
        glossary = Glossary.seeded(seed.terms) if seed is not None else Glossary()
        if not batches:
            return glossary

        if scope == TerminologyScope.batch:
            chunks = ["\n".join(b.texts) for b in batches]
        else:
            chunks = ["\n".join(text for b in batches for text in b.texts)]

        known = dict(glossary.terms)

        async def handle(index: int) -> dict[str, str] | None:
            try:
                return await self.extract(chunks[index], source_lang, target_lang, known)
            except ProviderError as e:
                self.failed_chunks += 1
                logger.warning("Terminology extraction failed for chunk %d: %s", index, e)
                return None

        results = await run_bounded(len(chunks), concurrency, handle)
        for terms in results:
            if terms:
                glossary = self.merge(glossary, terms)

        logger.info(
            "Terminology: %d term(s) from %d chunk(s), %d failed",
            len(glossary), len(chunks), self.failed_chunks,
        )
        return glossary
