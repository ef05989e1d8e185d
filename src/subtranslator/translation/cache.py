"""SQLite cache for provider responses and unit translations to avoid redundant API calls."""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
from pathlib import Path

from subtranslator.errors import CacheIOError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".subtranslator"
DEFAULT_CACHE_DB = DEFAULT_CACHE_DIR / "cache.db"

KIND_UNIT = "unit"
KIND_REQUEST = "request"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    key TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    value TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


def _fingerprint(parts: dict[str, object]) -> str:
    canonical = json.dumps(parts, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def unit_key(
    text: str, target_lang: str, source_lang: str | None, model: str,
) -> str:
    """Fingerprint of a single unit translation."""
    return _fingerprint({
        "kind": KIND_UNIT,
        "text": text,
        "source": source_lang or "",
        "target": target_lang,
        "model": model,
    })


def request_key(
    model: str, instruction: str, user_content: str, temperature: float | None = None,
) -> str:
    """Fingerprint of a whole provider request payload."""
    return _fingerprint({
        "kind": KIND_REQUEST,
        "model": model,
        "instruction": instruction,
        "user": user_content,
        "temperature": temperature,
    })


class TranslationCache:
    """Persistent SQLite store mapping fingerprint → cached value.

    Entries are never mutated or evicted automatically; ``clear()`` is the only
    way to drop them. Every sqlite3 failure surfaces as ``CacheIOError``.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        if db_path is None:
            db_path = DEFAULT_CACHE_DB
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise CacheIOError(f"Cannot open cache at {self._db_path}: {e}") from e

    @property
    def path(self) -> Path:
        return self._db_path

    def get(self, key: str) -> str | None:
        """Look up a cached value. Returns None if not found."""
        try:
            cursor = self._conn.execute("SELECT value FROM entries WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise CacheIOError(f"Cache read failed: {e}") from e
        return row[0] if row else None

    def get_many(self, keys: list[str]) -> dict[str, str]:
        """Look up multiple keys at once. Returns dict of found {key: value}."""
        if not keys:
            return {}
        # SQLite has a limit of ~999 variables; chunk to stay well within it
        chunk_size = 900
        result: dict[str, str] = {}
        try:
            for i in range(0, len(keys), chunk_size):
                chunk = keys[i : i + chunk_size]
                placeholders = ",".join("?" for _ in chunk)
                cursor = self._conn.execute(
                    f"SELECT key, value FROM entries WHERE key IN ({placeholders})",
                    chunk,
                )
                result.update({row[0]: row[1] for row in cursor.fetchall()})
        except sqlite3.Error as e:
            raise CacheIOError(f"Cache read failed: {e}") from e
        return result

    def set(self, key: str, value: str, kind: str = KIND_UNIT) -> None:
        """Store a value. An existing entry for the key is left untouched."""
        self.set_many([(key, value)], kind=kind)

    def set_many(self, entries: list[tuple[str, str]], kind: str = KIND_UNIT) -> None:
        """Store multiple (key, value) pairs."""
        if not entries:
            return
        try:
            self._conn.executemany(
                "INSERT OR IGNORE INTO entries (key, kind, value) VALUES (?, ?, ?)",
                [(k, kind, v) for k, v in entries],
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise CacheIOError(f"Cache write failed: {e}") from e

    def size(self) -> int:
        """Return total number of cached entries."""
        try:
            cursor = self._conn.execute("SELECT COUNT(*) FROM entries")
            return cursor.fetchone()[0]  # type: ignore[no-any-return]
        except sqlite3.Error as e:
            raise CacheIOError(f"Cache read failed: {e}") from e

    def count_by_kind(self) -> dict[str, int]:
        try:
            cursor = self._conn.execute("SELECT kind, COUNT(*) FROM entries GROUP BY kind")
            return {row[0]: row[1] for row in cursor.fetchall()}
        except sqlite3.Error as e:
            raise CacheIOError(f"Cache read failed: {e}") from e

    def clear(self) -> int:
        """Clear all cached entries. Returns number of entries deleted."""
        try:
            cursor = self._conn.execute("DELETE FROM entries")
            self._conn.commit()
        except sqlite3.Error as e:
            raise CacheIOError(f"Cache clear failed: {e}") from e
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()


class CacheGuard:
    """Best-effort access to an optional cache.

    The first ``CacheIOError`` is logged and disables the cache for the
    lifetime of the guard; lookups then miss and writes are dropped.
    """

    def __init__(self, cache: TranslationCache | None) -> None:
        self._cache = cache

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    def _disable(self, error: CacheIOError) -> None:
        logger.warning("Cache unavailable, continuing without it: %s", error)
        self._cache = None

    def get(self, key: str) -> str | None:
        if self._cache is None:
            return None
        try:
            return self._cache.get(key)
        except CacheIOError as e:
            self._disable(e)
            return None

    def get_many(self, keys: list[str]) -> dict[str, str]:
        if self._cache is None:
            return {}
        try:
            return self._cache.get_many(keys)
        except CacheIOError as e:
            self._disable(e)
            return {}

    def set(self, key: str, value: str, kind: str = KIND_UNIT) -> None:
        self.set_many([(key, value)], kind=kind)

    def set_many(self, entries: list[tuple[str, str]], kind: str = KIND_UNIT) -> None:
        if self._cache is None:
            return
        try:
            self._cache.set_many(entries, kind=kind)
        except CacheIOError as e:
            self._disable(e)
