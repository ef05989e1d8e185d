"""Tests for the translation cache."""

import sqlite3

import pytest

from subtranslator.errors import CacheIOError
from subtranslator.translation.cache import (
    KIND_REQUEST,
    KIND_UNIT,
    CacheGuard,
    TranslationCache,
    request_key,
    unit_key,
)


class TestKeys:
    def test_unit_key_is_deterministic(self):
        assert unit_key("Hello", "fr", "en", "m") == unit_key("Hello", "fr", "en", "m")

    def test_unit_key_varies_with_every_part(self):
        base = unit_key("Hello", "fr", "en", "m")
        assert unit_key("Hello!", "fr", "en", "m") != base
        assert unit_key("Hello", "de", "en", "m") != base
        assert unit_key("Hello", "fr", "es", "m") != base
        assert unit_key("Hello", "fr", "en", "other") != base

    def test_missing_source_equals_empty_source(self):
        assert unit_key("Hi", "fr", None, "m") == unit_key("Hi", "fr", "", "m")

    def test_request_key_varies_with_instruction(self):
        assert request_key("m", "a", "u") != request_key("m", "b", "u")
        assert request_key("m", "a", "u", 0.3) != request_key("m", "a", "u", 0.7)

    def test_unit_and_request_keys_do_not_collide(self):
        assert unit_key("x", "fr", None, "m") != request_key("m", "x", "fr")


class TestTranslationCache:
    def test_set_and_get(self, tmp_cache):
        tmp_cache.set("k1", "Bonjour")
        assert tmp_cache.get("k1") == "Bonjour"

    def test_get_missing_returns_none(self, tmp_cache):
        assert tmp_cache.get("nonexistent") is None

    def test_get_many(self, tmp_cache):
        tmp_cache.set("k1", "Uno")
        tmp_cache.set("k2", "Dos")
        assert tmp_cache.get_many(["k1", "k2", "k3"]) == {"k1": "Uno", "k2": "Dos"}

    def test_get_many_empty(self, tmp_cache):
        assert tmp_cache.get_many([]) == {}

    def test_get_many_more_keys_than_sqlite_limit(self, tmp_cache):
        entries = [(f"k{i}", f"v{i}") for i in range(2000)]
        tmp_cache.set_many(entries)
        result = tmp_cache.get_many([k for k, _ in entries])
        assert len(result) == 2000
        assert result["k1999"] == "v1999"

    def test_existing_entry_is_never_overwritten(self, tmp_cache):
        tmp_cache.set("k1", "first")
        tmp_cache.set("k1", "second")
        assert tmp_cache.get("k1") == "first"
        assert tmp_cache.size() == 1

    def test_size_and_kinds(self, tmp_cache):
        assert tmp_cache.size() == 0
        tmp_cache.set_many([("a", "1"), ("b", "2")], kind=KIND_UNIT)
        tmp_cache.set("r", "{}", kind=KIND_REQUEST)
        assert tmp_cache.size() == 3
        assert tmp_cache.count_by_kind() == {KIND_UNIT: 2, KIND_REQUEST: 1}

    def test_clear(self, tmp_cache):
        tmp_cache.set("k1", "a")
        tmp_cache.set("k2", "b")
        assert tmp_cache.clear() == 2
        assert tmp_cache.size() == 0

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "cache.db"
        first = TranslationCache(path)
        first.set("k", "v")
        first.close()

        second = TranslationCache(path)
        assert second.get("k") == "v"
        second.close()

    def test_unicode_round_trip(self, tmp_cache):
        tmp_cache.set("k", "こんにちは、世界")
        assert tmp_cache.get("k") == "こんにちは、世界"

    def test_closed_cache_raises_cache_io_error(self, tmp_path):
        cache = TranslationCache(tmp_path / "c.db")
        cache.close()
        with pytest.raises(CacheIOError):
            cache.get("k")
        with pytest.raises(CacheIOError):
            cache.set("k", "v")

    def test_unopenable_path_raises_cache_io_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(CacheIOError):
            TranslationCache(blocker / "cache.db")


class _BrokenCache(TranslationCache):
    """Opens fine, then fails on every operation."""

    def __init__(self) -> None:
        self._db_path = None
        self.calls = 0

    def get(self, key):
        self.calls += 1
        raise CacheIOError("disk I/O error")

    def get_many(self, keys):
        self.calls += 1
        raise CacheIOError("disk I/O error")

    def set_many(self, entries, kind=KIND_UNIT):
        self.calls += 1
        raise CacheIOError("disk I/O error")


class TestCacheGuard:
    def test_passthrough(self, tmp_cache):
        guard = CacheGuard(tmp_cache)
        guard.set("k", "v")
        assert guard.get("k") == "v"
        assert guard.get_many(["k", "x"]) == {"k": "v"}
        assert guard.enabled

    def test_none_cache_is_disabled(self):
        guard = CacheGuard(None)
        assert not guard.enabled
        assert guard.get("k") is None
        assert guard.get_many(["k"]) == {}
        guard.set("k", "v")  # no-op

    def test_first_error_disables_cache(self, caplog):
        broken = _BrokenCache()
        guard = CacheGuard(broken)
        with caplog.at_level("WARNING"):
            assert guard.get_many(["k"]) == {}
        assert not guard.enabled
        assert "Cache unavailable" in caplog.text

        # Later operations do not touch the broken store again
        assert guard.get("k") is None
        guard.set("k", "v")
        assert broken.calls == 1

    def test_sqlite_error_surfaces_through_guard(self, tmp_path):
        cache = TranslationCache(tmp_path / "c.db")
        cache._conn.close()
        guard = CacheGuard(cache)
        assert guard.get("k") is None
        assert not guard.enabled

    def test_sqlite_error_type(self, tmp_path):
        cache = TranslationCache(tmp_path / "c.db")
        cache._conn.close()
        with pytest.raises(CacheIOError) as exc_info:
            cache.size()
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)
