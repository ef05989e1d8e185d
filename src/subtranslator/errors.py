"""Exception hierarchy for subtranslator."""

from __future__ import annotations

from dataclasses import dataclass


class SubtranslatorError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(SubtranslatorError):
    """Raised when required settings are missing or invalid. Never retried."""


class InputFileError(ConfigurationError):
    """An input subtitle file is missing, of the wrong type or unreadable."""


class CacheIOError(SubtranslatorError):
    """Raised when the local cache store cannot be read or written."""


class ProviderError(SubtranslatorError):
    """Base for failures of a single provider request (retryable)."""


class ProviderTransportError(ProviderError):
    """Network, authentication or rate-limit failure talking to the provider."""


class MissingProviderOutput(ProviderError):
    """The provider answered with an empty content field."""


class FormatError(ProviderError):
    """Provider output could not be parsed into the expected structure."""

    def __init__(self, message: str, excerpt: str = "") -> None:
        super().__init__(message)
        self.excerpt = excerpt


class CountMismatch(FormatError):
    """A translations array was found but its length differs from the batch size."""

    def __init__(self, expected: int, actual: int, excerpt: str = "") -> None:
        super().__init__(
            f"Expected {expected} translations, got {actual}", excerpt=excerpt
        )
        self.expected = expected
        self.actual = actual


@dataclass
class BatchFailure:
    """A batch that still failed after all retry attempts."""

    batch_index: int
    attempts: int
    unit_ids: tuple[str, ...]
    message: str


class TranslationAborted(SubtranslatorError):
    """Raised in strict mode when a batch exhausts its retries."""

    def __init__(self, failures: list[BatchFailure]) -> None:
        self.failures = failures
        summary = ", ".join(
            f"batch {f.batch_index} after {f.attempts} attempt(s): {f.message}"
            for f in failures
        )
        super().__init__(f"Translation aborted, {len(failures)} batch(es) failed ({summary})")
