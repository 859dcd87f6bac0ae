"""Turn user input into the ordered request parts sent to the service."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

from .errors import InvalidInputError


logger = logging.getLogger(__name__)


MISSING_INPUT_MESSAGE = "Please provide either text questions or a PDF file."


@dataclass(frozen=True, slots=True)
class BinaryAttachment:
    """A document supplied alongside (or instead of) pasted text."""

    data: bytes
    mime_type: str
    filename: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return (
            f"BinaryAttachment(mime_type={self.mime_type!r}, filename={self.filename!r}, "
            f"size={self.size})"
        )


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Everything the user submitted for one run."""

    raw_text: str = ""
    document: BinaryAttachment | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.raw_text and self.raw_text.strip())

    @property
    def is_empty(self) -> bool:
        return not self.has_text and self.document is None


@dataclass(frozen=True, slots=True)
class RequestPart:
    """One element of the prompt: either text or inline binary data."""

    text: str | None = None
    inline_data: str | None = None
    mime_type: str | None = None

    @classmethod
    def from_text(cls, text: str) -> "RequestPart":
        return cls(text=text)

    @classmethod
    def from_attachment(cls, attachment: BinaryAttachment) -> "RequestPart":
        encoded = base64.b64encode(attachment.data).decode("ascii")
        return cls(inline_data=encoded, mime_type=attachment.mime_type)

    @property
    def is_binary(self) -> bool:
        return self.inline_data is not None

    def to_payload(self) -> dict[str, Any]:
        if self.inline_data is not None:
            return {"inline_data": {"mime_type": self.mime_type, "data": self.inline_data}}
        return {"text": self.text or ""}


def normalize_request(request: GenerationRequest) -> list[RequestPart]:
    """Return the request parts for ``request``, document first.

    Raises :class:`InvalidInputError` when there is neither usable text nor
    a document. Document contents are not inspected.
    """

    if request.is_empty:
        raise InvalidInputError(MISSING_INPUT_MESSAGE)

    parts: list[RequestPart] = []
    if request.document is not None:
        parts.append(RequestPart.from_attachment(request.document))
    if request.has_text:
        parts.append(RequestPart.from_text(request.raw_text))
    logger.debug(
        "Normalised request",
        extra={
            "part_count": len(parts),
            "has_document": request.document is not None,
            "text_length": len(request.raw_text or ""),
        },
    )
    return parts


__all__ = [
    "BinaryAttachment",
    "GenerationRequest",
    "MISSING_INPUT_MESSAGE",
    "RequestPart",
    "normalize_request",
]
