"""CLI interface for subtranslator using Typer."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from subtranslator import __version__
from subtranslator.core.subtitles import SubtitleDocument
from subtranslator.errors import SubtranslatorError
from subtranslator.translation.glossary import Glossary
from subtranslator.translation.options import (
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_BATCH_LENGTH,
    DEFAULT_MODEL,
    BatchFailurePolicy,
    TerminologyScope,
    TranslationOptions,
)
from subtranslator.translation.orchestrator import ProgressCallback, TranslationResult

# Number of glossary entries shown after a job
_GLOSSARY_PREVIEW = 10
_DRY_RUN_PREVIEW = 20

app = typer.Typer(
    name="subtranslator",
    help="Translate SRT subtitle files with an LLM.",
    add_completion=False,
)
console = Console()

_verbose = False
_quiet = False


def _print(msg: str, *, verbose_only: bool = False) -> None:
    """Print respecting --verbose/--quiet flags. Errors bypass --quiet."""
    if _quiet:
        return
    if verbose_only and not _verbose:
        return
    console.print(msg)


def _setup_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _load_glossary(paths: list[Path] | None) -> Glossary | None:
    if not paths:
        return None
    gloss = Glossary.from_multiple_files(paths)
    _print(
        f"Loaded glossary: [cyan]{len(gloss)}[/cyan] terms"
        f" from {len(paths)} file(s)",
    )
    return gloss


def _build_options(
    *,
    target_lang: str | None,
    source_lang: str | None,
    model: str,
    max_batch_length: int,
    concurrency: int,
    no_cache: bool,
    terminology: bool,
    terminology_scope: TerminologyScope,
    glossary: list[Path] | None,
    on_failure: BatchFailurePolicy,
    lenient_count: bool,
) -> TranslationOptions:
    options = TranslationOptions(
        target_language=target_lang or "",
        source_language=source_lang or None,
        model=model,
        max_batch_length=max_batch_length,
        concurrency=concurrency,
        use_cache=not no_cache,
        terminology=terminology,
        terminology_scope=terminology_scope,
        seed_glossary=_load_glossary(glossary),
        strict_count=not lenient_count,
        failure_policy=on_failure,
    )
    options.validate()
    return options


def _make_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
        TextColumn("ETA"),
        TimeRemainingColumn(),
        console=console,
        transient=True,
        disable=_quiet,
    )


def _progress_callback(progress: Progress) -> ProgressCallback:
    """Map orchestrator/pipeline phases onto rich progress tasks."""
    labels = {
        "terminology": "Extracting terminology",
        "translate": "Translating",
        "file": "Files",
    }
    tasks: dict[str, int] = {}

    def on_progress(phase: str, current: int, total: int, message: str) -> None:
        if phase not in labels:
            if message:
                _print(message, verbose_only=True)
            return
        if phase not in tasks:
            tasks[phase] = progress.add_task(labels[phase], total=total)
        description = f"{labels[phase]} {message}".rstrip()
        progress.update(tasks[phase], completed=current, total=total, description=description)

    return on_progress


def _print_summary(result: TranslationResult) -> None:
    if result.total_units:
        _print(f"Cache hits: [green]{result.cache_hits}[/green]/{result.total_units}")
    _print(f"Created [cyan]{result.batch_count}[/cyan] batches for translation")
    if result.request_cache_hits or result.retries:
        _print(
            f"Request cache hits: {result.request_cache_hits}, retries: {result.retries}",
            verbose_only=True,
        )
    if result.degraded_batches:
        _print(
            f"[yellow]{result.degraded_batches} batch(es) kept source text "
            "(unusable response)[/yellow]"
        )
    for failure in result.failures:
        console.print(
            f"[yellow]Batch {failure.batch_index} failed after "
            f"{failure.attempts} attempt(s):[/yellow] {failure.message}"
        )


def _print_glossary(glossary: Glossary) -> None:
    if not glossary:
        _print("No terminology entries extracted from the content.")
        return
    table = Table(title=f"Terminology ({len(glossary)} terms)")
    table.add_column("Original")
    table.add_column("Translation", style="green")
    for original, translated in list(glossary.terms.items())[:_GLOSSARY_PREVIEW]:
        table.add_row(original, translated)
    if not _quiet:
        console.print(table)
    remaining = len(glossary) - _GLOSSARY_PREVIEW
    if remaining > 0:
        _print(f"... and {remaining} more")


def _print_preview(doc: SubtitleDocument, result: TranslationResult) -> None:
    console.print("[yellow]Dry run: no file written.[/yellow]")
    table = Table(title=f"Translation Preview (first {_DRY_RUN_PREVIEW})")
    table.add_column("#", style="dim")
    table.add_column("Original")
    table.add_column("Translated", style="green")
    for sub, unit in list(zip(doc.subs, doc.units(), strict=True))[:_DRY_RUN_PREVIEW]:
        table.add_row(
            str(sub.index),
            unit.content[:50],
            result.translations.get(unit.id, "")[:50],
        )
    console.print(table)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"subtranslator {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show extra info (provider, retries, timing).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show errors.",
    ),
) -> None:
    """subtranslator: Translate SRT subtitle files with an LLM."""
    global _verbose, _quiet
    _verbose = verbose
    _quiet = quiet
    load_dotenv(find_dotenv(usecwd=True))
    _setup_logging(verbose, quiet)


@app.command()
def translate(
    file: Path = typer.Argument(
        ..., help="Path to the SRT file to translate.",
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o",
        help="Output file path. Defaults to <name>.<lang>.srt.",
    ),
    source_lang: str | None = typer.Option(
        None, "--source-language", "-s",
        help="Source language (auto-detect if not specified).",
    ),
    target_lang: str | None = typer.Option(
        None, "--target-language", "-t",
        envvar="DEFAULT_TARGET_LANGUAGE", help="Target language.",
    ),
    model: str = typer.Option(
        DEFAULT_MODEL, "--model", "-m",
        envvar="DEFAULT_MODEL", help="Model to use.",
    ),
    api_key: str | None = typer.Option(
        None, "--api-key", "-k",
        envvar="OPENAI_API_KEY", help="OpenAI API key.",
    ),
    base_url: str | None = typer.Option(
        None, "--base-url", "-b",
        envvar="OPENAI_API_BASE_URL", help="OpenAI-compatible API base URL.",
    ),
    max_batch_length: int = typer.Option(
        DEFAULT_MAX_BATCH_LENGTH, "--max-batch-length", "-l",
        help="Maximum character length per batch.",
    ),
    concurrency: int = typer.Option(
        DEFAULT_CONCURRENCY, "--concurrent-requests", "-c",
        help="Number of concurrent translation requests.",
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Disable translation cache.",
    ),
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir",
        envvar="SUBTRANSLATOR_CACHE_DIR", help="Directory to store translation cache.",
    ),
    terminology: bool = typer.Option(
        False, "--terminology",
        help="Extract terminology first and use it for consistent translation.",
    ),
    terminology_scope: TerminologyScope = typer.Option(
        TerminologyScope.corpus, "--terminology-scope",
        help="One extraction over the whole file (corpus) or one per batch.",
    ),
    glossary: list[Path] | None = typer.Option(
        None, "--glossary", "-g",
        help="Glossary file(s) (TOML or JSON). Entries are never overridden.",
    ),
    glossary_out: Path | None = typer.Option(
        None, "--glossary-out",
        help="Save the final glossary to this JSON file.",
    ),
    on_failure: BatchFailurePolicy = typer.Option(
        BatchFailurePolicy.abort, "--on-failure",
        help="What to do with a batch that still fails after retries.",
    ),
    lenient_count: bool = typer.Option(
        False, "--lenient-count",
        help="Keep source text instead of retrying when a response can't be matched.",
    ),
    report: Path | None = typer.Option(
        None, "--report", "-r",
        help="Save report to file (json/md/csv).",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run",
        help="Translate but don't write the output file.",
    ),
    use_dummy: bool = typer.Option(
        False, "--dummy",
        help="Use the dummy provider (no network).",
    ),
) -> None:
    """Translate a single SRT file."""
    from subtranslator.core.subtitles import output_path_for
    from subtranslator.pipeline import create_provider, open_cache, translate_file

    try:
        options = _build_options(
            target_lang=target_lang, source_lang=source_lang, model=model,
            max_batch_length=max_batch_length, concurrency=concurrency,
            no_cache=no_cache, terminology=terminology,
            terminology_scope=terminology_scope, glossary=glossary,
            on_failure=on_failure, lenient_count=lenient_count,
        )
        if not file.exists():
            raise _fail(f"Input file not found: {file}")

        provider, label = create_provider(
            "dummy" if use_dummy else "openai",
            api_key=api_key, base_url=base_url,
            target_lang=options.target_language, temperature=options.temperature,
        )
    except SubtranslatorError as e:
        raise _fail(str(e)) from e

    _print(f"Translating file: [cyan]{file}[/cyan]")
    _print(f"Target language: [cyan]{options.target_language}[/cyan]")
    if not dry_run:
        _print(f"Output file: [cyan]{output or output_path_for(file, options.target_language)}[/cyan]")
    _print(f"Provider: [cyan]{label}[/cyan], model: [cyan]{options.model}[/cyan]", verbose_only=True)
    _print(f"Concurrent requests: {options.concurrency}", verbose_only=True)

    cache = open_cache(cache_dir, no_cache=no_cache)
    if cache is not None:
        _print(f"Cache: enabled ([dim]{cache.path}[/dim])", verbose_only=True)
    else:
        _print("Cache: disabled", verbose_only=True)

    try:
        with _make_progress() as progress:
            fr = translate_file(
                file,
                options=options,
                provider=provider,
                provider_label=label,
                cache=cache,
                output=output,
                glossary_out=glossary_out,
                report=report,
                dry_run=dry_run,
                on_progress=_progress_callback(progress),
            )
    except (SubtranslatorError, OSError) as e:
        raise _fail(str(e)) from e
    finally:
        if cache is not None:
            cache.close()

    _print_summary(fr.result)
    if terminology or options.seed_glossary:
        _print_glossary(fr.result.glossary)

    if dry_run:
        _print_preview(fr.document, fr.result)
    else:
        _print(f"Saved: [cyan]{fr.output}[/cyan]")
        if fr.report.glossary_file:
            _print(f"Glossary saved: [cyan]{fr.report.glossary_file}[/cyan]")
    if report:
        _print(f"Report saved: [cyan]{report}[/cyan]")


@app.command()
def batch(
    patterns: list[str] = typer.Argument(
        ..., help="Glob patterns of SRT files (e.g. 'movies/**/*.srt').",
    ),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-O",
        help="Output directory. Defaults to next to each input file.",
    ),
    source_lang: str | None = typer.Option(
        None, "--source-language", "-s",
    ),
    target_lang: str | None = typer.Option(
        None, "--target-language", "-t", envvar="DEFAULT_TARGET_LANGUAGE",
    ),
    model: str = typer.Option(
        DEFAULT_MODEL, "--model", "-m", envvar="DEFAULT_MODEL",
    ),
    api_key: str | None = typer.Option(
        None, "--api-key", "-k", envvar="OPENAI_API_KEY",
    ),
    base_url: str | None = typer.Option(
        None, "--base-url", "-b", envvar="OPENAI_API_BASE_URL",
    ),
    max_batch_length: int = typer.Option(
        DEFAULT_MAX_BATCH_LENGTH, "--max-batch-length", "-l",
    ),
    concurrency: int = typer.Option(
        DEFAULT_CONCURRENCY, "--concurrent-requests", "-c",
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Disable translation cache.",
    ),
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir", envvar="SUBTRANSLATOR_CACHE_DIR",
    ),
    terminology: bool = typer.Option(False, "--terminology"),
    terminology_scope: TerminologyScope = typer.Option(
        TerminologyScope.corpus, "--terminology-scope",
    ),
    glossary: list[Path] | None = typer.Option(
        None, "--glossary", "-g",
    ),
    glossary_dir: Path | None = typer.Option(
        None, "--glossary-out",
        help="Directory to save one glossary JSON per file.",
    ),
    on_failure: BatchFailurePolicy = typer.Option(
        BatchFailurePolicy.abort, "--on-failure",
    ),
    lenient_count: bool = typer.Option(False, "--lenient-count"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    use_dummy: bool = typer.Option(False, "--dummy"),
) -> None:
    """Translate multiple SRT files matched by glob patterns."""
    from subtranslator.pipeline import (
        batch_translate_files,
        create_provider,
        expand_patterns,
        open_cache,
    )

    try:
        options = _build_options(
            target_lang=target_lang, source_lang=source_lang, model=model,
            max_batch_length=max_batch_length, concurrency=concurrency,
            no_cache=no_cache, terminology=terminology,
            terminology_scope=terminology_scope, glossary=glossary,
            on_failure=on_failure, lenient_count=lenient_count,
        )
    except SubtranslatorError as e:
        raise _fail(str(e)) from e

    files = expand_patterns(patterns)
    if not files:
        raise _fail("No SRT files found matching the provided patterns")
    console.print(f"Found [green]{len(files)}[/green] SRT files to process\n")

    try:
        provider, label = create_provider(
            "dummy" if use_dummy else "openai",
            api_key=api_key, base_url=base_url,
            target_lang=options.target_language, temperature=options.temperature,
        )
    except SubtranslatorError as e:
        raise _fail(str(e)) from e
    _print(f"Provider: [cyan]{label}[/cyan], model: [cyan]{options.model}[/cyan]", verbose_only=True)

    cache = open_cache(cache_dir, no_cache=no_cache)
    try:
        with _make_progress() as progress:
            result = batch_translate_files(
                patterns,
                options=options,
                provider=provider,
                provider_label=label,
                cache=cache,
                output_dir=output_dir,
                glossary_dir=glossary_dir,
                dry_run=dry_run,
                on_progress=_progress_callback(progress),
            )
    except (SubtranslatorError, OSError) as e:
        raise _fail(str(e)) from e
    finally:
        if cache is not None:
            cache.close()

    # Summary table
    summary = Table(title="Batch Summary")
    summary.add_column("Metric", style="bold")
    summary.add_column("Count", justify="right")
    summary.add_row("Translated", f"[green]{result.success_count}[/green]")
    summary.add_row("Errors", f"[red]{result.error_count}[/red]")
    summary.add_row("Subtitles", str(result.total_units))
    summary.add_row("Total", str(len(files)))
    if not _quiet:
        console.print(summary)

    if _verbose:
        for fr in result.files:
            _print(
                f"  {fr.source.name}: {fr.result.cache_hits}/{fr.result.total_units} cached, "
                f"{fr.result.batch_count} batches, {fr.result.terminology_count} terms",
            )

    if result.errors:
        err_table = Table(title="Errors")
        err_table.add_column("File", style="red")
        err_table.add_column("Error")
        for fname, err_msg in result.errors:
            err_table.add_row(fname, err_msg)
        console.print(err_table)


@app.command(name="cache-info")
def cache_info(
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir", envvar="SUBTRANSLATOR_CACHE_DIR",
    ),
) -> None:
    """Show translation cache statistics."""
    from subtranslator.pipeline import get_cache_info

    try:
        info = get_cache_info(cache_dir)
    except SubtranslatorError as e:
        raise _fail(str(e)) from e
    console.print(
        f"Cached entries: [green]{info['count']}[/green]"
        f" ({info['units']} subtitles, {info['requests']} responses)"
    )
    console.print(f"Cache location: [dim]{info['path']}[/dim]")


@app.command(name="cache-clear")
def cache_clear(
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir", envvar="SUBTRANSLATOR_CACHE_DIR",
    ),
) -> None:
    """Clear the translation cache."""
    from subtranslator.pipeline import clear_cache

    try:
        deleted = clear_cache(cache_dir)
    except SubtranslatorError as e:
        raise _fail(str(e)) from e
    console.print(f"Cleared [yellow]{deleted}[/yellow] cached entries.")


if __name__ == "__main__":
    app()
