"""Per-job translation settings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from subtranslator.errors import ConfigurationError
from subtranslator.translation.glossary import Glossary

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_BATCH_LENGTH = 2000
DEFAULT_CONCURRENCY = 5
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_TEMPERATURE = 0.3


class BatchFailurePolicy(str, Enum):
    """What happens to a batch that still fails after all retry attempts."""
    abort = "abort"    # strict: stop scheduling and fail the whole job
    empty = "empty"    # lenient: substitute empty strings
    source = "source"  # lenient: keep the untranslated source strings


class TerminologyScope(str, Enum):
    """How terminology extraction requests are cut."""
    corpus = "corpus"  # one request over all text
    batch = "batch"    # one request per batch, bounded concurrency


@dataclass
class TranslationOptions:
    """Settings for one translation job."""

    target_language: str
    source_language: str | None = None
    model: str = DEFAULT_MODEL
    max_batch_length: int = DEFAULT_MAX_BATCH_LENGTH
    concurrency: int = DEFAULT_CONCURRENCY
    use_cache: bool = True
    terminology: bool = False
    terminology_scope: TerminologyScope = TerminologyScope.corpus
    seed_glossary: Glossary | None = None
    # When off, unparseable responses fall back to the source strings
    strict_count: bool = True
    failure_policy: BatchFailurePolicy = BatchFailurePolicy.abort
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS
    temperature: float = DEFAULT_TEMPERATURE

    def validate(self) -> None:
        """Raise ConfigurationError listing every invalid setting."""
        errors: list[str] = []

        if not self.target_language or not self.target_language.strip():
            errors.append("Target language is required.")
        if not self.model:
            errors.append("Model is required.")
        if self.max_batch_length < 1:
            errors.append(f"max_batch_length must be >= 1 (got {self.max_batch_length}).")
        if self.concurrency < 1:
            errors.append(f"concurrency must be >= 1 (got {self.concurrency}).")
        if self.max_attempts < 1:
            errors.append(f"max_attempts must be >= 1 (got {self.max_attempts}).")
        if self.retry_delay < 0:
            errors.append(f"retry_delay must be >= 0 (got {self.retry_delay}).")
        if self.terminology and not self.strict_count:
            errors.append(
                "Terminology mode requires strict count enforcement; "
                "mismatched counts would break line alignment."
            )

        if errors:
            bullet_list = "\n".join(f"- {message}" for message in errors)
            raise ConfigurationError(
                "Configuration validation errors detected:\n" + bullet_list
            )
