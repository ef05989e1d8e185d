"""Parse provider responses into exactly-sized lists of translated strings.

Provider output is not schema-guaranteed, so parsing is an ordered chain of
strategies. Each strategy either produces a list of the expected length or
declines. The first success wins; when every strategy declines, the result
records why, so callers can raise or fall back without nested try/except.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from subtranslator.errors import CountMismatch, FormatError

EXPECTED_KEY = "translations"
ALTERNATE_KEYS = ("terms",)

_EXCERPT_CHARS = 200
_RE_FENCED_BLOCK = re.compile(r"^```(?:json)?\s*([\s\S]*?)```\s*$")

_MISSING = object()


@dataclass
class ParseResult:
    """Tagged outcome of the strategy chain."""

    ok: bool
    values: list[str] = field(default_factory=list)
    strategy: str = ""
    reason: str = ""
    # Length of the closest array found, or None when none was recognised
    actual_count: int | None = None
    excerpt: str = ""


def strip_code_fence(content: str) -> str:
    """Remove markdown code fences wrapping a JSON payload."""
    cleaned = content.strip()

    match = _RE_FENCED_BLOCK.match(cleaned)
    if match:
        return match.group(1).strip()

    # Only an opening fence
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        if first_newline != -1:
            cleaned = cleaned[first_newline + 1 :]

    # Only a closing fence
    if cleaned.endswith("```"):
        cleaned = cleaned[: cleaned.rfind("```")].strip()

    return cleaned


def load_payload(content: str) -> Any:
    """Strip fences and decode JSON. Returns the module-level sentinel on failure."""
    try:
        return json.loads(strip_code_fence(content))
    except (json.JSONDecodeError, ValueError):
        return _MISSING


def is_missing(payload: Any) -> bool:
    return payload is _MISSING


def _coerce_strings(items: list[Any]) -> list[str] | None:
    """Return items as strings, or None if any item is not a scalar text value."""
    out: list[str] = []
    for item in items:
        if isinstance(item, str):
            out.append(item)
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            out.append(str(item))
        else:
            return None
    return out


# ── Strategies: (payload, expected) -> list[str] | None ──


def _alternate_keys(payload: Any, expected: int) -> list[Any] | None:
    if isinstance(payload, dict):
        for key in ALTERNATE_KEYS:
            value = payload.get(key)
            if isinstance(value, list) and len(value) == expected:
                return value
    return None


def _any_array_field(payload: Any, expected: int) -> list[Any] | None:
    if isinstance(payload, dict):
        for value in payload.values():
            if isinstance(value, list) and len(value) == expected:
                return value
    return None


def _bare_array(payload: Any, expected: int) -> list[Any] | None:
    if isinstance(payload, list) and len(payload) == expected:
        return payload
    return None


def _indexed_object(payload: Any, expected: int) -> list[Any] | None:
    if not isinstance(payload, dict) or expected == 0:
        return None
    wanted = [str(i) for i in range(expected)]
    if set(payload.keys()) != set(wanted):
        return None
    return [payload[k] for k in wanted]


_STRATEGIES: list[tuple[str, Callable[[Any, int], list[Any] | None]]] = [
    ("alternate-key", _alternate_keys),
    ("any-array-field", _any_array_field),
    ("bare-array", _bare_array),
    ("indexed-object", _indexed_object),
]


def _closest_array_length(payload: Any) -> int | None:
    """Length of the array the provider most likely meant, for error reporting."""
    if isinstance(payload, list):
        return len(payload)
    if isinstance(payload, dict):
        for key in ALTERNATE_KEYS:
            if isinstance(payload.get(key), list):
                return len(payload[key])
        for value in payload.values():
            if isinstance(value, list):
                return len(value)
    return None


def _lines_allowed(expected_count: int, sources: list[str] | None) -> bool:
    # A line count only equals a unit count when every source is a single line
    if expected_count < 2 or sources is None or len(sources) != expected_count:
        return False
    return not any("\n" in text for text in sources)


def parse_translations(
    content: str,
    expected_count: int,
    sources: list[str] | None = None,
) -> ParseResult:
    """Run the strategy chain over raw provider *content*.

    *sources* are the batch's source strings. A plain-text answer is split
    into lines only when they are given and none of them spans several lines.
    """
    excerpt = content.strip()[:_EXCERPT_CHARS]
    payload = load_payload(content)

    if is_missing(payload):
        if _lines_allowed(expected_count, sources):
            lines = [line for line in strip_code_fence(content).split("\n") if line.strip()]
            if len(lines) == expected_count:
                return ParseResult(ok=True, values=lines, strategy="lines")
        return ParseResult(
            ok=False, reason="response is not valid JSON", excerpt=excerpt,
        )

    # A "translations" array is authoritative: no other field may stand in for it
    if isinstance(payload, dict) and isinstance(payload.get(EXPECTED_KEY), list):
        found = payload[EXPECTED_KEY]
        if len(found) != expected_count:
            return ParseResult(
                ok=False,
                reason=f"expected {expected_count} items, found {len(found)}",
                actual_count=len(found),
                excerpt=excerpt,
            )
        values = _coerce_strings(found)
        if values is None:
            return ParseResult(
                ok=False, reason="array items are not strings", excerpt=excerpt,
            )
        return ParseResult(ok=True, values=values, strategy="translations")

    rejected = False
    for name, strategy in _STRATEGIES:
        found = strategy(payload, expected_count)
        if found is None:
            continue
        values = _coerce_strings(found)
        if values is None:
            rejected = True
            continue
        return ParseResult(ok=True, values=values, strategy=name)

    actual = _closest_array_length(payload)
    if rejected:
        reason = "array items are not strings"
    elif actual is not None:
        reason = f"expected {expected_count} items, found {actual}"
    else:
        reason = f'no "{EXPECTED_KEY}" array in response'
    return ParseResult(ok=False, reason=reason, actual_count=actual, excerpt=excerpt)


def raise_for(result: ParseResult, expected_count: int) -> None:
    """Raise the error matching a failed ParseResult."""
    if result.actual_count is not None and result.actual_count != expected_count:
        raise CountMismatch(expected_count, result.actual_count, excerpt=result.excerpt)
    raise FormatError(
        f"Invalid response format: {result.reason}. Content: {result.excerpt}",
        excerpt=result.excerpt,
    )


def validate(
    content: str,
    expected_count: int,
    *,
    strict: bool = True,
    fallback: list[str] | None = None,
    sources: list[str] | None = None,
) -> list[str]:
    """Return exactly *expected_count* strings parsed from *content*.

    With ``strict`` on, failures raise ``FormatError`` (``CountMismatch`` when
    an array of the wrong length was found). With ``strict`` off, *fallback*
    (normally the batch's source strings) is returned instead.
    """
    result = parse_translations(content, expected_count, sources)
    if result.ok:
        return result.values
    if not strict and fallback is not None and len(fallback) == expected_count:
        return list(fallback)
    raise_for(result, expected_count)
    return []  # unreachable, but satisfies type checker
