"""Tests for report formatting and saving."""

import csv
import io
import json
from datetime import datetime, timedelta

from subtranslator.reporting.formatters import save_report, to_csv, to_json, to_markdown
from subtranslator.reporting.report import TranslationReport


def _report(**overrides):
    values = dict(
        source_file="movie.srt",
        output_file="movie.fr.srt",
        target_lang="fr",
        model="gpt-4o-mini",
        provider="openai",
        total_units=10,
        units_from_cache=4,
        units_translated=6,
        batches=2,
        failure_policy="abort",
    )
    values.update(overrides)
    return TranslationReport(**values)


class TestTranslationReport:
    def test_duration(self):
        rpt = _report()
        assert rpt.duration_seconds == 0.0
        rpt.finished_at = rpt.started_at + timedelta(seconds=3)
        assert rpt.duration_seconds == 3.0

    def test_finish_sets_timestamp(self):
        rpt = _report()
        rpt.finish()
        assert isinstance(rpt.finished_at, datetime)


class TestFormatters:
    def test_json(self):
        data = json.loads(to_json(_report()))
        assert data["total_units"] == 10
        assert data["units_from_cache"] == 4
        assert data["errors"] == []

    def test_markdown(self):
        md = to_markdown(_report(errors=["Batch 1 failed"], glossary_terms=3))
        assert "# Translation Report" in md
        assert "| Subtitles found | 10 |" in md
        assert "| Languages | auto → fr |" in md
        assert "## Glossary" in md
        assert "- Terms: 3" in md
        assert "- Batch 1 failed" in md

    def test_markdown_without_optional_sections(self):
        md = to_markdown(_report())
        assert "## Glossary" not in md
        assert "## Errors" not in md

    def test_csv_single_row(self):
        content = to_csv(_report(errors=["a", "b"]))
        rows = list(csv.DictReader(io.StringIO(content)))
        assert len(rows) == 1
        assert rows[0]["source_file"] == "movie.srt"
        assert rows[0]["errors"] == "a; b"

    def test_save_by_suffix(self, tmp_path):
        rpt = _report()
        save_report(rpt, tmp_path / "r.md")
        save_report(rpt, tmp_path / "r.csv")
        save_report(rpt, tmp_path / "r.json")
        assert (tmp_path / "r.md").read_text(encoding="utf-8").startswith("# Translation Report")
        assert (tmp_path / "r.csv").read_text(encoding="utf-8").startswith("source_file,")
        assert json.loads((tmp_path / "r.json").read_text(encoding="utf-8"))["model"] == "gpt-4o-mini"
