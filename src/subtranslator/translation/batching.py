"""Group ordered text units into batches bounded by cumulative character length."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from subtranslator.errors import ConfigurationError


@dataclass(frozen=True)
class TextUnit:
    """One translatable piece of text with an opaque, job-unique identifier."""

    id: str
    content: str


@dataclass(frozen=True)
class Batch:
    """An ordered, non-empty run of units sent together in one provider request."""

    index: int
    units: tuple[TextUnit, ...]
    length: int

    @property
    def texts(self) -> list[str]:
        return [u.content for u in self.units]

    @property
    def unit_ids(self) -> tuple[str, ...]:
        return tuple(u.id for u in self.units)

    def __len__(self) -> int:
        return len(self.units)


def compose(units: Sequence[TextUnit], max_length: int) -> list[Batch]:
    """Split *units* into batches whose total content length stays <= *max_length*.

    A unit longer than *max_length* on its own is emitted as a one-unit batch;
    content is never truncated or split. Concatenating the batches' units
    reproduces *units* exactly.
    """
    if max_length < 1:
        raise ConfigurationError(f"max_length must be >= 1, got {max_length}")

    batches: list[Batch] = []
    current: list[TextUnit] = []
    current_length = 0

    for unit in units:
        size = len(unit.content)
        if current and current_length + size > max_length:
            batches.append(Batch(len(batches), tuple(current), current_length))
            current = []
            current_length = 0
        current.append(unit)
        current_length += size

    if current:
        batches.append(Batch(len(batches), tuple(current), current_length))

    return batches
