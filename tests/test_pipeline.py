"""Tests for the shared pipeline (file I/O, batch runs, cache maintenance)."""

import json
import shutil

import pytest

from conftest import FIXTURES_DIR, FakeProvider, translations_json
from subtranslator.backends.dummy import DummyProvider
from subtranslator.errors import ConfigurationError, TranslationAborted
from subtranslator.pipeline import (
    batch_translate_files,
    cache_path_for,
    clear_cache,
    create_provider,
    expand_patterns,
    get_cache_info,
    open_cache,
    translate_file,
)
from subtranslator.translation.cache import DEFAULT_CACHE_DB
from subtranslator.translation.glossary import Glossary
from subtranslator.translation.options import BatchFailurePolicy, TranslationOptions


def _options(**overrides):
    values = {"target_language": "fr", "use_cache": False, "retry_delay": 0.0}
    values.update(overrides)
    return TranslationOptions(**values)


class TestCreateProvider:
    def test_dummy(self):
        provider, label = create_provider("dummy", target_lang="fr")
        assert isinstance(provider, DummyProvider)
        assert provider.target_lang == "fr"
        assert label == "dummy"

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown provider"):
            create_provider("carrier-pigeon")

    def test_openai_without_key(self):
        with pytest.raises(ConfigurationError, match="API key"):
            create_provider("openai", api_key=None)


class TestCacheHelpers:
    def test_cache_path_default(self):
        assert cache_path_for(None) == DEFAULT_CACHE_DB

    def test_cache_path_in_dir(self, tmp_path):
        assert cache_path_for(tmp_path) == tmp_path / "cache.db"

    def test_open_cache_disabled(self, tmp_path):
        assert open_cache(tmp_path, no_cache=True) is None

    def test_open_cache_unusable_location(self, tmp_path, caplog):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with caplog.at_level("WARNING"):
            assert open_cache(blocker) is None
        assert "cache unavailable" in caplog.text

    def test_info_and_clear(self, tmp_path):
        cache = open_cache(tmp_path)
        cache.set("k1", "v1", kind="unit")
        cache.set("k2", "v2", kind="request")
        cache.close()

        info = get_cache_info(tmp_path)
        assert info["count"] == 2
        assert info["units"] == 1
        assert info["requests"] == 1
        assert clear_cache(tmp_path) == 2
        assert get_cache_info(tmp_path)["count"] == 0


class TestTranslateFile:
    def test_writes_translated_file_and_closes_provider(self, sample_srt):
        provider = FakeProvider()
        fr = translate_file(sample_srt, options=_options(), provider=provider)

        assert fr.output == sample_srt.with_name("sample.fr.srt")
        assert "WELCOME TO WINTERFELL." in fr.output.read_text(encoding="utf-8")
        assert fr.report.total_units == 5
        assert fr.report.units_translated == 5
        assert fr.report.provider == "fake"
        assert provider.closed

    def test_dry_run_writes_nothing(self, sample_srt, tmp_path):
        glossary_out = tmp_path / "g.json"
        fr = translate_file(
            sample_srt, options=_options(), provider=FakeProvider(),
            dry_run=True, glossary_out=glossary_out,
        )
        assert fr.output is None
        assert not sample_srt.with_name("sample.fr.srt").exists()
        assert not glossary_out.exists()
        assert len(fr.result.translations) == 5

    def test_dry_run_returns_parsed_document(self, sample_srt):
        fr = translate_file(sample_srt, options=_options(), provider=FakeProvider(), dry_run=True)
        assert len(fr.document) == 5
        assert fr.document.units()[0].content == "Welcome to Winterfell."

    def test_glossary_out_saved(self, sample_srt, tmp_path):
        glossary_out = tmp_path / "g.json"
        options = _options(seed_glossary=Glossary(terms={"Winterfell": "Invernalia"}))
        fr = translate_file(sample_srt, options=options, provider=FakeProvider(), glossary_out=glossary_out)
        assert Glossary.from_file(glossary_out).terms == {"Winterfell": "Invernalia"}
        assert fr.report.glossary_file == str(glossary_out)
        assert fr.report.glossary_terms == 1

    def test_report_saved_on_abort(self, sample_srt, tmp_path):
        report = tmp_path / "report.json"
        provider = FakeProvider(lambda texts, n: translations_json(["only one"]))
        with pytest.raises(TranslationAborted):
            translate_file(sample_srt, options=_options(), provider=provider, report=report)

        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["errors"]
        assert "Translation aborted" in data["errors"][0]
        assert provider.closed
        assert not sample_srt.with_name("sample.fr.srt").exists()

    def test_source_policy_reports_failed_units(self, sample_srt):
        provider = FakeProvider(lambda texts, n: translations_json(["only one"]))
        fr = translate_file(
            sample_srt, options=_options(failure_policy=BatchFailurePolicy.source), provider=provider,
        )
        assert fr.report.units_failed == 5
        assert fr.report.units_translated == 0
        assert len(fr.report.errors) == 1
        assert "Welcome to Winterfell." in fr.output.read_text(encoding="utf-8")

    def test_missing_input(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            translate_file(tmp_path / "nope.srt", options=_options(), provider=FakeProvider())


class TestBatch:
    def _make_files(self, tmp_path, *names):
        for name in names:
            shutil.copy(FIXTURES_DIR / "sample.srt", tmp_path / name)

    def test_expand_patterns_dedupes_and_filters(self, tmp_path):
        self._make_files(tmp_path, "a.srt", "b.srt")
        (tmp_path / "notes.txt").write_text("x")
        files = expand_patterns([str(tmp_path / "*"), str(tmp_path / "a.srt")])
        assert [p.name for p in files] == ["a.srt", "b.srt"]

    def test_expand_patterns_recursive(self, tmp_path):
        nested = tmp_path / "season1"
        nested.mkdir()
        self._make_files(nested, "e1.srt")
        files = expand_patterns([str(tmp_path / "**" / "*.srt")])
        assert [p.name for p in files] == ["e1.srt"]

    def test_batch_translates_all(self, tmp_path):
        self._make_files(tmp_path, "a.srt", "b.srt")
        out_dir = tmp_path / "out"
        provider = FakeProvider()
        result = batch_translate_files(
            [str(tmp_path / "*.srt")], options=_options(), provider=provider, output_dir=out_dir,
        )
        assert result.success_count == 2
        assert result.error_count == 0
        assert result.total_units == 10
        assert (out_dir / "a.fr.srt").exists()
        assert (out_dir / "b.fr.srt").exists()
        assert provider.closed

    def test_batch_shares_cache_across_files(self, tmp_path, tmp_cache):
        self._make_files(tmp_path, "a.srt", "b.srt")
        provider = FakeProvider()
        result = batch_translate_files(
            [str(tmp_path / "*.srt")], options=_options(use_cache=True),
            provider=provider, cache=tmp_cache,
        )
        assert len(provider.calls) == 1
        assert result.files[1].result.cache_hits == 5

    def test_batch_records_failed_file_and_continues(self, tmp_path):
        self._make_files(tmp_path, "a.srt")
        (tmp_path / "bad.srt").write_bytes("1\n00:00:01,000 --> 00:00:02,000\nCañón\n".encode("latin-1"))
        result = batch_translate_files(
            [str(tmp_path / "*.srt")], options=_options(), provider=FakeProvider(),
        )
        assert result.success_count == 1
        assert result.error_count == 1
        assert result.errors[0][0] == "bad.srt"

    def test_batch_continues_after_unwritable_output(self, tmp_path):
        self._make_files(tmp_path, "a.srt", "b.srt")
        (tmp_path / "a.fr.srt").mkdir()
        result = batch_translate_files(
            [str(tmp_path / "*.srt")], options=_options(), provider=FakeProvider(),
        )
        assert result.error_count == 1
        assert result.errors[0][0] == "a.srt"
        assert result.success_count == 1
        assert (tmp_path / "b.fr.srt").is_file()

    def test_batch_no_files(self, tmp_path):
        with pytest.raises(ConfigurationError, match="No SRT files"):
            batch_translate_files([str(tmp_path / "*.srt")], options=_options(), provider=FakeProvider())
