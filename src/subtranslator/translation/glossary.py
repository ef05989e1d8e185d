"""Glossary support: keep recurring terms translated the same way across a file."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from subtranslator.errors import ConfigurationError


@dataclass
class Glossary:
    """Mapping of source term → fixed target-language rendering.

    Keys listed in ``seed_keys`` came from a caller-supplied glossary. They are
    authoritative: merges may add new terms but never change a seed value.
    """

    # source_term → target_term
    terms: dict[str, str] = field(default_factory=dict)
    seed_keys: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def seeded(cls, terms: Mapping[str, str]) -> Glossary:
        """Build a glossary whose entries are all authoritative seeds."""
        return cls(terms=dict(terms), seed_keys=frozenset(terms))

    def __len__(self) -> int:
        return len(self.terms)

    def __bool__(self) -> bool:
        return bool(self.terms)

    def is_seed(self, term: str) -> bool:
        return term in self.seed_keys

    def merge(self, other: Glossary | Mapping[str, str]) -> None:
        """Merge another glossary in place. Other's terms override on conflict,
        except for this glossary's seed entries, which are kept verbatim.
        Seed keys of *other* become seed keys here."""
        incoming = other.terms if isinstance(other, Glossary) else other
        for source, target in incoming.items():
            if self.is_seed(source):
                continue
            self.terms[source] = target
        if isinstance(other, Glossary) and other.seed_keys:
            self.seed_keys = self.seed_keys | other.seed_keys

    def copy(self) -> Glossary:
        return Glossary(terms=dict(self.terms), seed_keys=self.seed_keys)

    @classmethod
    def from_toml(cls, path: str | Path) -> Glossary:
        """Load a glossary from a TOML file.

        Expected format:
            [terms]
            Winterfell = "Invernalia"
            "Night's Watch" = "Guardia de la Noche"
        """
        path = Path(path)
        with open(path, "rb") as f:
            data = tomllib.load(f)

        terms = data.get("terms", {})
        return cls(terms={str(k): str(v) for k, v in terms.items()})

    @classmethod
    def from_json(cls, path: str | Path) -> Glossary:
        """Load a glossary from JSON: either a flat object or a list of
        ``{"original": ..., "translated": ...}`` entries."""
        path = Path(path)
        data = json.loads(path.read_text(encoding="utf-8"))

        if isinstance(data, dict):
            for wrapper in ("terminology", "terms"):
                if wrapper in data:
                    data = data[wrapper]
                    break
        if isinstance(data, dict):
            return cls(terms={str(k): str(v) for k, v in data.items()})
        if isinstance(data, list):
            terms: dict[str, str] = {}
            for entry in data:
                if isinstance(entry, dict) and entry.get("original") and entry.get("translated"):
                    terms[str(entry["original"])] = str(entry["translated"])
            return cls(terms=terms)
        raise ConfigurationError(f"Unsupported glossary layout in {path}")

    @classmethod
    def from_file(cls, path: str | Path) -> Glossary:
        """Load a glossary, choosing the format from the file extension."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Glossary file not found: {path}")
        try:
            if path.suffix.lower() == ".toml":
                return cls.from_toml(path)
            return cls.from_json(path)
        except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot parse glossary {path}: {e}") from e

    @classmethod
    def from_multiple_files(cls, paths: list[Path]) -> Glossary:
        """Load and merge multiple files. Later files override earlier ones."""
        if not paths:
            return cls()
        result = cls.from_file(paths[0])
        for p in paths[1:]:
            result.merge(cls.from_file(p))
        return result

    def to_entries(self) -> list[dict[str, str]]:
        return [{"original": k, "translated": v} for k, v in self.terms.items()]

    def to_json(self, indent: int = 2) -> str:
        return json.dumps({"terminology": self.to_entries()}, ensure_ascii=False, indent=indent)

    def save(self, path: str | Path) -> None:
        """Write the glossary as JSON (the format ``from_json`` reads back)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json() + "\n", encoding="utf-8")
