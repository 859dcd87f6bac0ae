"""Load documents from disk as :class:`BinaryAttachment` objects."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from .errors import AttachmentError
from .input_normalizer import BinaryAttachment


logger = logging.getLogger(__name__)


# Inline data sent to the service is capped at 20MB.
MAX_ATTACHMENT_BYTES = 20 * 1024 * 1024


def guess_mime_type(path: Path) -> str | None:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type


def is_supported_mime_type(mime_type: str | None) -> bool:
    if not mime_type:
        return False
    return mime_type == "application/pdf" or mime_type.startswith("image/")


def load_attachment(
    path: str | Path, *, max_bytes: int = MAX_ATTACHMENT_BYTES
) -> BinaryAttachment:
    """Read ``path`` and return it as an attachment.

    Only PDFs and images are accepted, up to ``max_bytes`` in size.
    """

    resolved = Path(path).expanduser()
    if not resolved.is_file():
        raise AttachmentError(f"Missing document: {resolved}")

    mime_type = guess_mime_type(resolved)
    if not is_supported_mime_type(mime_type):
        raise AttachmentError("Please upload a valid PDF or Image file.")

    size = resolved.stat().st_size
    if size > max_bytes:
        limit_mb = max_bytes / 1024 / 1024
        raise AttachmentError(
            f"File is too large ({size / 1024 / 1024:.2f}MB). "
            f"Maximum allowed size is {limit_mb:g}MB."
        )

    data = resolved.read_bytes()
    logger.info(
        "Loaded attachment",
        extra={"path": str(resolved), "mime_type": mime_type, "bytes": len(data)},
    )
    return BinaryAttachment(data=data, mime_type=mime_type or "", filename=resolved.name)


__all__ = [
    "MAX_ATTACHMENT_BYTES",
    "guess_mime_type",
    "is_supported_mime_type",
    "load_attachment",
]
