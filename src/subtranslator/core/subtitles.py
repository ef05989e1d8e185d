"""Read and write SRT files, exposing each cue as a TextUnit.

Unit ids are derived from the cue's position and timing, so they are stable
across runs over the same file and unique within it.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import pysrt

from subtranslator.errors import InputFileError
from subtranslator.translation.batching import TextUnit

SRT_SUFFIX = ".srt"
_ID_LENGTH = 12


def cue_id(index: int, start: str, end: str) -> str:
    """Stable opaque id for a cue."""
    digest = hashlib.sha256(f"{index}|{start}|{end}".encode("utf-8")).hexdigest()
    return digest[:_ID_LENGTH]


def is_srt_file(path: str | Path) -> bool:
    return Path(path).suffix.lower() == SRT_SUFFIX


def output_path_for(input_path: str | Path, target_lang: str) -> Path:
    """``movie.srt`` → ``movie.<lang>.srt`` next to the input."""
    p = Path(input_path)
    return p.with_name(f"{p.stem}.{target_lang}{p.suffix}")


@dataclass
class SubtitleDocument:
    """A parsed SRT file plus the ids assigned to its cues."""

    path: Path
    subs: pysrt.SubRipFile
    ids: list[str]
    encoding: str = "utf-8"

    def __len__(self) -> int:
        return len(self.subs)

    def units(self) -> list[TextUnit]:
        return [TextUnit(id=uid, content=sub.text) for uid, sub in zip(self.ids, self.subs, strict=True)]

    def apply(self, translations: Mapping[str, str]) -> int:
        """Replace cue text with translations by id. Returns number of cues changed."""
        changed = 0
        for uid, sub in zip(self.ids, self.subs, strict=True):
            if uid in translations:
                sub.text = translations[uid]
                changed += 1
        return changed

    def save(self, path: str | Path | None = None) -> Path:
        out = Path(path) if path is not None else self.path
        out.parent.mkdir(parents=True, exist_ok=True)
        self.subs.save(str(out), encoding=self.encoding)
        return out


def load_subtitles(path: str | Path, encoding: str = "utf-8") -> SubtitleDocument:
    """Parse an SRT file.

    Raises:
        InputFileError: the file is missing, not an .srt file, or cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise InputFileError(f"Input file not found: {path}")
    if not is_srt_file(path):
        raise InputFileError(f"Input file must be an SRT file: {path}")

    try:
        subs = pysrt.open(str(path), encoding=encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise InputFileError(f"Cannot decode {path} as {encoding}: {e}") from e
    ids = [cue_id(i, str(sub.start), str(sub.end)) for i, sub in enumerate(subs)]
    return SubtitleDocument(path=path, subs=subs, ids=ids, encoding=encoding)
