"""Batch translation engine: cache → batches → terminology → bounded dispatch → reassembly.

One job runs on a single asyncio event loop. Provider calls are the only
suspension points besides retry sleeps, so per-job counters and the
batch-indexed results list are updated without locks, and the SQLite cache
is only touched from the loop's thread.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from subtranslator.backends.base import ProviderClient
from subtranslator.errors import (
    BatchFailure,
    ConfigurationError,
    CountMismatch,
    MissingProviderOutput,
    ProviderError,
    TranslationAborted,
)
from subtranslator.translation.batching import Batch, TextUnit, compose
from subtranslator.translation.cache import (
    KIND_REQUEST,
    KIND_UNIT,
    CacheGuard,
    TranslationCache,
    request_key,
    unit_key,
)
from subtranslator.translation.glossary import Glossary
from subtranslator.translation.options import BatchFailurePolicy, TranslationOptions
from subtranslator.translation.prompts import translation_instruction, translation_user_content
from subtranslator.translation.terminology import TerminologyCoordinator
from subtranslator.translation.validator import parse_translations, raise_for
from subtranslator.translation.workers import run_bounded

logger = logging.getLogger(__name__)

# Type alias for progress callback: (phase, current, total, message)
ProgressCallback = Callable[[str, int, int, str], None]


@dataclass
class TranslationResult:
    """Outcome of one job: translations keyed by unit id, in input order."""

    translations: dict[str, str] = field(default_factory=dict)
    total_units: int = 0
    cache_hits: int = 0
    request_cache_hits: int = 0
    provider_calls: int = 0
    batch_count: int = 0
    retries: int = 0
    degraded_batches: int = 0
    glossary: Glossary = field(default_factory=Glossary)
    failures: list[BatchFailure] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def texts(self) -> list[str]:
        return list(self.translations.values())

    @property
    def terminology_count(self) -> int:
        return len(self.glossary)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class _BatchOutcome:
    values: list[str]
    attempts: int
    failure: BatchFailure | None = None
    degraded: bool = False


@dataclass
class _JobStats:
    request_cache_hits: int = 0
    provider_calls: int = 0
    retries: int = 0
    done_batches: int = 0


class TranslationOrchestrator:
    """Translate ordered text units through a provider with caching and retries."""

    def __init__(
        self,
        provider: ProviderClient,
        cache: TranslationCache | CacheGuard | None = None,
    ) -> None:
        self._provider = provider
        self._cache = cache if isinstance(cache, CacheGuard) else CacheGuard(cache)

    def translate_sync(
        self,
        units: Sequence[TextUnit],
        options: TranslationOptions,
        on_progress: ProgressCallback | None = None,
    ) -> TranslationResult:
        """Blocking wrapper around :meth:`translate` for non-async callers."""
        return asyncio.run(self.translate(units, options, on_progress=on_progress))

    async def translate(
        self,
        units: Sequence[TextUnit],
        options: TranslationOptions,
        on_progress: ProgressCallback | None = None,
    ) -> TranslationResult:
        """Translate *units* and return a result that covers every unit id.

        Raises:
            ConfigurationError: invalid options or duplicate unit ids.
            TranslationAborted: a batch exhausted its retries under the
                ``abort`` failure policy.
        """
        options.validate()
        units = list(units)
        _check_unique_ids(units)

        t0 = time.monotonic()
        result = TranslationResult(total_units=len(units))
        stats = _JobStats()
        use_cache = options.use_cache and self._cache.enabled

        # ── Unit-level cache ──
        keys: dict[str, str] = {}
        cached: dict[str, str] = {}
        if use_cache:
            keys = {
                u.id: unit_key(u.content, options.target_language, options.source_language, options.model)
                for u in units
            }
            found = self._cache.get_many(sorted(set(keys.values())))
            cached = {uid: found[k] for uid, k in keys.items() if k in found}
        result.cache_hits = len(cached)

        to_translate = [u for u in units if u.id not in cached]
        batches = compose(to_translate, options.max_batch_length)
        result.batch_count = len(batches)
        logger.debug(
            "%d unit(s): %d cached, %d to translate in %d batch(es)",
            len(units), len(cached), len(to_translate), len(batches),
        )

        # ── Terminology (complete before any translation dispatch) ──
        glossary = (
            Glossary.seeded(options.seed_glossary.terms)
            if options.seed_glossary is not None else Glossary()
        )
        if options.terminology and batches:
            if on_progress:
                on_progress("terminology", 0, 1, "Extracting terminology")
            coordinator = TerminologyCoordinator(
                self._provider, self._cache,
                model=options.model,
                temperature=options.temperature,
                use_cache=use_cache,
            )
            glossary = await coordinator.build(
                batches, options.source_language, options.target_language,
                seed=glossary,
                scope=options.terminology_scope,
                concurrency=options.concurrency,
            )
            stats.request_cache_hits += coordinator.cache_hits
            stats.provider_calls += coordinator.provider_calls
            if on_progress:
                on_progress("terminology", 1, 1, f"{len(glossary)} term(s)")
        result.glossary = glossary

        instruction = translation_instruction(
            options.target_language, options.source_language, glossary.terms or None,
        )

        # ── Bounded dispatch ──
        stop = asyncio.Event()
        fatal: list[ConfigurationError] = []

        async def handle(index: int) -> _BatchOutcome | None:
            batch = batches[index]
            try:
                outcome = await self._run_batch(batch, instruction, options, use_cache, stats, keys)
            except ConfigurationError as e:
                fatal.append(e)
                stop.set()
                return None
            if outcome.failure is not None and options.failure_policy == BatchFailurePolicy.abort:
                stop.set()
            stats.done_batches += 1
            if on_progress:
                on_progress("translate", stats.done_batches, len(batches), "")
            return outcome

        outcomes = await run_bounded(len(batches), options.concurrency, handle, stop)

        result.request_cache_hits = stats.request_cache_hits
        result.provider_calls = stats.provider_calls
        result.retries = stats.retries
        result.elapsed_seconds = time.monotonic() - t0

        if fatal:
            raise fatal[0]

        failures = [o.failure for o in outcomes if o is not None and o.failure is not None]
        result.failures = failures
        if failures and options.failure_policy == BatchFailurePolicy.abort:
            raise TranslationAborted(failures)

        # ── Reassembly in original order ──
        translated: dict[str, str] = {}
        for batch, outcome in zip(batches, outcomes, strict=True):
            if outcome is None:
                # Only a stopped pool leaves slots empty, and that raised above
                raise RuntimeError(f"Batch {batch.index} was never dispatched")
            if outcome.degraded:
                result.degraded_batches += 1
            for unit, value in zip(batch.units, outcome.values, strict=True):
                translated[unit.id] = value

        result.translations = {
            u.id: cached[u.id] if u.id in cached else translated[u.id] for u in units
        }

        logger.info(
            "Translated %d unit(s): %d from cache, %d batch(es), %d request cache hit(s), "
            "%d provider call(s), %d retr%s, %d failed batch(es), %d glossary term(s)",
            result.total_units, result.cache_hits, result.batch_count,
            result.request_cache_hits, result.provider_calls, result.retries,
            "y" if result.retries == 1 else "ies", len(failures), len(glossary),
        )
        return result

    async def _run_batch(
        self,
        batch: Batch,
        instruction: str,
        options: TranslationOptions,
        use_cache: bool,
        stats: _JobStats,
        unit_keys: dict[str, str],
    ) -> _BatchOutcome:
        """Translate one batch with retries; apply the failure policy when exhausted."""
        user_content = translation_user_content(batch.texts)
        key = request_key(options.model, instruction, user_content, options.temperature)
        last_error: ProviderError | None = None

        for attempt in range(1, options.max_attempts + 1):
            logger.debug("Batch %d: attempt %d (%d unit(s))", batch.index, attempt, len(batch))
            try:
                values, degraded = await self._attempt(
                    batch, instruction, user_content, key, options, use_cache, stats,
                )
            except ProviderError as e:
                last_error = e
                if attempt < options.max_attempts:
                    stats.retries += 1
                    logger.warning(
                        "Batch %d attempt %d/%d failed: %s",
                        batch.index, attempt, options.max_attempts, e,
                    )
                    await asyncio.sleep(options.retry_delay * attempt)
                continue

            if use_cache and not degraded:
                self._cache.set_many(
                    [(unit_keys[u.id], v) for u, v in zip(batch.units, values, strict=True)],
                    kind=KIND_UNIT,
                )
            return _BatchOutcome(values=values, attempts=attempt, degraded=degraded)

        failure = BatchFailure(
            batch_index=batch.index,
            attempts=options.max_attempts,
            unit_ids=batch.unit_ids,
            message=str(last_error),
        )
        logger.error(
            "Batch %d failed after %d attempt(s): %s",
            batch.index, options.max_attempts, last_error,
        )
        if options.failure_policy == BatchFailurePolicy.source:
            values = batch.texts
        else:
            values = [""] * len(batch)
        return _BatchOutcome(values=values, attempts=options.max_attempts, failure=failure)

    async def _attempt(
        self,
        batch: Batch,
        instruction: str,
        user_content: str,
        key: str,
        options: TranslationOptions,
        use_cache: bool,
        stats: _JobStats,
    ) -> tuple[list[str], bool]:
        """One request: request cache first, then the provider. Returns (values, degraded)."""
        expected = len(batch)

        if use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                parsed = parse_translations(cached, expected, batch.texts)
                if parsed.ok:
                    stats.request_cache_hits += 1
                    return parsed.values, False
                logger.debug("Batch %d: cached response unusable, refetching", batch.index)

        stats.provider_calls += 1
        content = await self._provider.complete(options.model, instruction, user_content)
        if not content or not content.strip():
            raise MissingProviderOutput(f"No content in translation response for batch {batch.index}")

        parsed = parse_translations(content, expected, batch.texts)
        if not parsed.ok:
            if not options.strict_count:
                logger.warning(
                    "Batch %d: %s; keeping source text", batch.index, parsed.reason,
                )
                return batch.texts, True
            raise_for(parsed, expected)

        values = parsed.values
        if len(values) != expected:
            raise CountMismatch(expected, len(values), excerpt=content[:200])

        if use_cache:
            self._cache.set(key, content, kind=KIND_REQUEST)
        return values, False


def _check_unique_ids(units: Sequence[TextUnit]) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for u in units:
        if u.id in seen:
            duplicates.append(u.id)
        seen.add(u.id)
    if duplicates:
        raise ConfigurationError(
            f"Unit ids must be unique within a job; duplicated: {', '.join(duplicates[:5])}"
        )
