"""Error types raised by a generation run."""

from __future__ import annotations

from dataclasses import dataclass


GENERIC_FAILURE_MESSAGE = "Failed to generate assignment solutions."


class GenerationError(RuntimeError):
    """Base class for failures that end a run.

    ``str(error)`` is meant to be shown to the user as-is.
    """


class InvalidInputError(GenerationError):
    """Raised when neither question text nor a document was supplied."""


class AttachmentError(InvalidInputError):
    """Raised when a document cannot be accepted as an attachment."""


class ServiceCallError(GenerationError):
    """Raised when a call to the generative-language service fails."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__((message or "").strip() or GENERIC_FAILURE_MESSAGE)


class RunStateError(GenerationError):
    """Raised when a run is started twice or reused after finishing."""


class GenerationCancelled(GenerationError):
    """Raised when the consumer abandoned the run before it finished."""


class SerializationError(ValueError):
    """Structured extraction output could not be parsed.

    Always absorbed by the question extractor; never leaves a run.
    """


@dataclass(frozen=True, slots=True)
class ExtractionDegradedNotice:
    """Record that structured extraction failed and a fallback was used."""

    strategy: str
    reason: str


__all__ = [
    "AttachmentError",
    "ExtractionDegradedNotice",
    "GENERIC_FAILURE_MESSAGE",
    "GenerationCancelled",
    "GenerationError",
    "InvalidInputError",
    "RunStateError",
    "SerializationError",
    "ServiceCallError",
]
