"""Shared pipeline logic for single-file and batch subtitle translation.

Used by the CLI (cli.py). Wraps the orchestrator with file I/O, cache setup,
glossary export and reporting, with callback-based progress reporting.

A whole command runs on one event loop so that a network client bound to
the loop can be reused across files; the provider is closed when the run
ends.
"""

from __future__ import annotations

import asyncio
import glob as _glob
import logging
import time as _time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from subtranslator.backends.base import ProviderClient
from subtranslator.core.subtitles import (
    SubtitleDocument,
    is_srt_file,
    load_subtitles,
    output_path_for,
)
from subtranslator.errors import (
    CacheIOError,
    ConfigurationError,
    SubtranslatorError,
)
from subtranslator.reporting.formatters import save_report
from subtranslator.reporting.report import TranslationReport
from subtranslator.translation.cache import DEFAULT_CACHE_DB, TranslationCache
from subtranslator.translation.options import DEFAULT_TEMPERATURE, TranslationOptions
from subtranslator.translation.orchestrator import (
    ProgressCallback,
    TranslationOrchestrator,
    TranslationResult,
)

logger = logging.getLogger(__name__)

CACHE_DB_NAME = "cache.db"
PROVIDERS = ("openai", "dummy")

T = TypeVar("T")


@dataclass
class FileResult:
    """Outcome of translating one subtitle file."""
    source: Path
    output: Path | None
    result: TranslationResult
    report: TranslationReport
    document: SubtitleDocument


@dataclass
class BatchResult:
    """Result of a batch translation operation."""
    success_count: int = 0
    error_count: int = 0
    total_units: int = 0
    elapsed_seconds: float = 0.0
    files: list[FileResult] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)


# ── Provider and cache creation ──


def create_provider(
    name: str,
    *,
    api_key: str | None = None,
    base_url: str | None = None,
    target_lang: str = "XX",
    temperature: float = DEFAULT_TEMPERATURE,
) -> tuple[ProviderClient, str]:
    """Create a provider client.

    Returns:
        Tuple of (provider_instance, provider_label_for_report).

    Raises:
        ConfigurationError: Unknown provider, or OpenAI selected without an API key.
    """
    if name == "dummy":
        from subtranslator.backends.dummy import DummyProvider
        return DummyProvider(target_lang), "dummy"
    elif name == "openai":
        from subtranslator.backends.openai import OpenAIProvider
        provider = OpenAIProvider(api_key or "", base_url, temperature=temperature)
        return provider, "openai"
    raise ConfigurationError(
        f"Unknown provider '{name}'. Choose one of: {', '.join(PROVIDERS)}"
    )


def cache_path_for(cache_dir: str | Path | None) -> Path:
    if cache_dir is None:
        return DEFAULT_CACHE_DB
    return Path(cache_dir).expanduser() / CACHE_DB_NAME


def open_cache(cache_dir: str | Path | None = None, *, no_cache: bool = False) -> TranslationCache | None:
    """Open the on-disk cache, or return None when disabled or unusable."""
    if no_cache:
        return None
    try:
        return TranslationCache(cache_path_for(cache_dir))
    except CacheIOError as e:
        logger.warning("Translation cache unavailable, continuing without it: %s", e)
        return None


# ── Single file ──


def _fill_report(rpt: TranslationReport, result: TranslationResult) -> None:
    failed_units = sum(len(f.unit_ids) for f in result.failures)
    rpt.total_units = result.total_units
    rpt.units_from_cache = result.cache_hits
    rpt.units_failed = failed_units
    rpt.units_translated = result.total_units - result.cache_hits - failed_units
    rpt.batches = result.batch_count
    rpt.request_cache_hits = result.request_cache_hits
    rpt.provider_calls = result.provider_calls
    rpt.retries = result.retries
    rpt.glossary_terms = result.terminology_count
    for failure in result.failures:
        rpt.errors.append(
            f"Batch {failure.batch_index} failed after {failure.attempts} attempt(s): {failure.message}"
        )


async def translate_document(
    path: Path,
    *,
    options: TranslationOptions,
    orchestrator: TranslationOrchestrator,
    output: Path | None = None,
    glossary_out: Path | None = None,
    report: Path | None = None,
    dry_run: bool = False,
    provider_label: str = "",
    encoding: str = "utf-8",
    on_progress: ProgressCallback | None = None,
) -> FileResult:
    """Parse *path*, translate every cue and write the translated file.

    The report is saved (when requested) even if the job fails.

    Raises:
        ConfigurationError: Unreadable input or invalid options.
        TranslationAborted: A batch failed under the ``abort`` policy.
        OSError: The translated file or glossary could not be written.
    """
    rpt = TranslationReport(
        source_file=str(path),
        source_lang=options.source_language or "",
        target_lang=options.target_language,
        model=options.model,
        provider=provider_label,
        failure_policy=options.failure_policy.value,
        dry_run=dry_run,
    )
    if options.seed_glossary is not None:
        rpt.glossary_terms = len(options.seed_glossary)

    try:
        doc = load_subtitles(path, encoding=encoding)
        rpt.total_units = len(doc)
        if on_progress:
            on_progress("parse", 1, 1, f"Found {len(doc)} subtitle entries")

        result = await orchestrator.translate(doc.units(), options, on_progress=on_progress)
        _fill_report(rpt, result)

        out_path: Path | None = None
        if not dry_run:
            doc.apply(result.translations)
            out_path = doc.save(output or output_path_for(path, options.target_language))
            rpt.output_file = str(out_path)
            logger.info("Translated subtitles saved to %s", out_path)

            if glossary_out is not None:
                result.glossary.save(glossary_out)
                rpt.glossary_file = str(glossary_out)
                logger.info("Glossary (%d terms) saved to %s", len(result.glossary), glossary_out)
    except (SubtranslatorError, OSError) as e:
        rpt.errors.append(str(e))
        rpt.finish()
        if report:
            save_report(rpt, report)
        raise

    rpt.finish()
    if report:
        save_report(rpt, report)
    return FileResult(source=path, output=out_path, result=result, report=rpt, document=doc)


async def _run_and_close(provider: ProviderClient, coro: Awaitable[T]) -> T:
    try:
        return await coro
    finally:
        await provider.aclose()


def translate_file(
    path: str | Path,
    *,
    options: TranslationOptions,
    provider: ProviderClient,
    provider_label: str = "",
    cache: TranslationCache | None = None,
    output: str | Path | None = None,
    glossary_out: str | Path | None = None,
    report: str | Path | None = None,
    dry_run: bool = False,
    encoding: str = "utf-8",
    on_progress: ProgressCallback | None = None,
) -> FileResult:
    """Translate one SRT file. Closes *provider* when done."""
    orchestrator = TranslationOrchestrator(provider, cache)
    coro = translate_document(
        Path(path),
        options=options,
        orchestrator=orchestrator,
        output=Path(output) if output else None,
        glossary_out=Path(glossary_out) if glossary_out else None,
        report=Path(report) if report else None,
        dry_run=dry_run,
        provider_label=provider_label or provider.name,
        encoding=encoding,
        on_progress=on_progress,
    )
    return asyncio.run(_run_and_close(provider, coro))


# ── Batch ──


def expand_patterns(patterns: list[str]) -> list[Path]:
    """Expand glob patterns to a sorted, de-duplicated list of SRT files."""
    seen: set[Path] = set()
    files: list[Path] = []
    for pattern in patterns:
        matches = _glob.glob(pattern, recursive=True)
        if not matches and Path(pattern).is_file():
            matches = [pattern]
        for match in sorted(matches):
            p = Path(match)
            if p.is_file() and is_srt_file(p) and p not in seen:
                seen.add(p)
                files.append(p)
    return files


async def _translate_many(
    files: list[Path],
    *,
    options: TranslationOptions,
    orchestrator: TranslationOrchestrator,
    provider_label: str,
    output_dir: Path | None,
    glossary_dir: Path | None,
    dry_run: bool,
    encoding: str,
    on_progress: ProgressCallback | None,
) -> BatchResult:
    t0 = _time.monotonic()
    result = BatchResult()

    for i, path in enumerate(files):
        if on_progress:
            on_progress("file", i, len(files), path.name)

        out = None
        if output_dir is not None:
            out = output_dir / output_path_for(path, options.target_language).name
        glossary_out = None
        if glossary_dir is not None:
            glossary_out = glossary_dir / f"{path.stem}.{options.target_language}.glossary.json"

        try:
            fr = await translate_document(
                path,
                options=options,
                orchestrator=orchestrator,
                output=out,
                glossary_out=glossary_out,
                dry_run=dry_run,
                provider_label=provider_label,
                encoding=encoding,
            )
        except (SubtranslatorError, OSError) as e:
            result.error_count += 1
            result.errors.append((path.name, str(e)))
            logger.error("Error processing %s: %s", path, e)
            continue

        result.success_count += 1
        result.total_units += fr.result.total_units
        result.files.append(fr)

    if on_progress:
        on_progress("file", len(files), len(files), "")
    result.elapsed_seconds = _time.monotonic() - t0
    return result


def batch_translate_files(
    patterns: list[str],
    *,
    options: TranslationOptions,
    provider: ProviderClient,
    provider_label: str = "",
    cache: TranslationCache | None = None,
    output_dir: str | Path | None = None,
    glossary_dir: str | Path | None = None,
    dry_run: bool = False,
    encoding: str = "utf-8",
    on_progress: ProgressCallback | None = None,
) -> BatchResult:
    """Translate every SRT file matched by *patterns*, one file at a time.

    A file that fails is recorded in the result and the remaining files
    are still processed. Closes *provider* when done.

    Raises:
        ConfigurationError: No files matched, or the options are invalid.
    """
    options.validate()
    files = expand_patterns(patterns)
    if not files:
        raise ConfigurationError("No SRT files found matching the provided patterns")

    out_dir = Path(output_dir) if output_dir is not None else None
    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)
    gloss_dir = Path(glossary_dir) if glossary_dir is not None else None
    if gloss_dir is not None:
        gloss_dir.mkdir(parents=True, exist_ok=True)

    orchestrator = TranslationOrchestrator(provider, cache)
    coro = _translate_many(
        files,
        options=options,
        orchestrator=orchestrator,
        provider_label=provider_label or provider.name,
        output_dir=out_dir,
        glossary_dir=gloss_dir,
        dry_run=dry_run,
        encoding=encoding,
        on_progress=on_progress,
    )
    return asyncio.run(_run_and_close(provider, coro))


# ── Cache maintenance ──


def get_cache_info(cache_dir: str | Path | None = None) -> dict[str, object]:
    """Return cache statistics."""
    cache = TranslationCache(cache_path_for(cache_dir))
    try:
        by_kind = cache.count_by_kind()
        info: dict[str, object] = {
            "count": cache.size(),
            "units": by_kind.get("unit", 0),
            "requests": by_kind.get("request", 0),
            "path": str(cache.path),
        }
    finally:
        cache.close()
    return info


def clear_cache(cache_dir: str | Path | None = None) -> int:
    """Clear the translation cache. Returns number of entries deleted."""
    cache = TranslationCache(cache_path_for(cache_dir))
    try:
        return cache.clear()
    finally:
        cache.close()
