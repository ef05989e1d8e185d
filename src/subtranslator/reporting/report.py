"""Translation report data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class TranslationReport:
    """Collects statistics about a translation run."""

    source_file: str = ""
    output_file: str = ""
    source_lang: str = ""
    target_lang: str = ""
    model: str = ""
    provider: str = ""

    total_units: int = 0
    units_from_cache: int = 0
    units_translated: int = 0
    units_failed: int = 0
    batches: int = 0
    request_cache_hits: int = 0
    provider_calls: int = 0
    retries: int = 0

    glossary_file: str | None = None
    glossary_terms: int = 0

    failure_policy: str = ""
    dry_run: bool = False
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def finish(self) -> None:
        self.finished_at = datetime.now()

    def to_dict(self) -> dict:
        return {
            "source_file": self.source_file,
            "output_file": self.output_file,
            "source_lang": self.source_lang,
            "target_lang": self.target_lang,
            "model": self.model,
            "provider": self.provider,
            "total_units": self.total_units,
            "units_from_cache": self.units_from_cache,
            "units_translated": self.units_translated,
            "units_failed": self.units_failed,
            "batches": self.batches,
            "request_cache_hits": self.request_cache_hits,
            "provider_calls": self.provider_calls,
            "retries": self.retries,
            "glossary_file": self.glossary_file,
            "glossary_terms": self.glossary_terms,
            "failure_policy": self.failure_policy,
            "dry_run": self.dry_run,
            "duration_seconds": self.duration_seconds,
            "errors": self.errors,
        }
