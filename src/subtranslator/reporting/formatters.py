"""Output formatters for translation reports."""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from subtranslator.reporting.report import TranslationReport


def to_json(report: TranslationReport, indent: int = 2) -> str:
    """Format report as JSON string."""
    return json.dumps(report.to_dict(), indent=indent, default=str, ensure_ascii=False)


def to_markdown(report: TranslationReport) -> str:
    """Format report as Markdown."""
    lines = [
        "# Translation Report",
        "",
        "| Field | Value |",
        "|-------|-------|",
        f"| Source | `{report.source_file}` |",
        f"| Output | `{report.output_file}` |",
        f"| Languages | {report.source_lang or 'auto'} → {report.target_lang} |",
        f"| Provider | {report.provider} |",
        f"| Model | {report.model} |",
        f"| Failure policy | {report.failure_policy} |",
        f"| Dry run | {report.dry_run} |",
        "",
        "## Statistics",
        "",
        "| Metric | Count |",
        "|--------|-------|",
        f"| Subtitles found | {report.total_units} |",
        f"| From cache | {report.units_from_cache} |",
        f"| Translated | {report.units_translated} |",
        f"| Failed | {report.units_failed} |",
        f"| Batches | {report.batches} |",
        f"| Request cache hits | {report.request_cache_hits} |",
        f"| Provider calls | {report.provider_calls} |",
        f"| Retries | {report.retries} |",
        f"| Duration | {report.duration_seconds:.1f}s |",
    ]

    if report.glossary_terms or report.glossary_file:
        lines.extend([
            "",
            "## Glossary",
            "",
            f"- Terms: {report.glossary_terms}",
        ])
        if report.glossary_file:
            lines.append(f"- File: `{report.glossary_file}`")

    if report.errors:
        lines.extend([
            "",
            "## Errors",
            "",
        ])
        for err in report.errors:
            lines.append(f"- {err}")

    return "\n".join(lines) + "\n"


def to_csv(report: TranslationReport) -> str:
    """Format report as a single-row CSV."""
    output = io.StringIO()
    data = report.to_dict()
    # Flatten errors list
    data["errors"] = "; ".join(data["errors"])
    writer = csv.DictWriter(output, fieldnames=data.keys())
    writer.writeheader()
    writer.writerow(data)
    return output.getvalue()


def save_report(report: TranslationReport, path: str | Path) -> None:
    """Save report to file, auto-detecting format from extension."""
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in (".md", ".markdown"):
        content = to_markdown(report)
    elif suffix == ".csv":
        content = to_csv(report)
    else:
        content = to_json(report)

    path.write_text(content, encoding="utf-8")
