from __future__ import annotations

import base64
from pathlib import Path

import pytest

from assignment_solver.services import (
    AttachmentError,
    BinaryAttachment,
    GenerationRequest,
    InvalidInputError,
    RequestPart,
    load_attachment,
    normalize_request,
)


def test_text_only_request_becomes_single_text_part() -> None:
    parts = normalize_request(GenerationRequest(raw_text="Q1. Explain X.\n"))

    assert parts == [RequestPart(text="Q1. Explain X.\n")]
    assert parts[0].to_payload() == {"text": "Q1. Explain X.\n"}


def test_document_part_comes_before_text_part() -> None:
    document = BinaryAttachment(data=b"%PDF-1.7", mime_type="application/pdf")

    parts = normalize_request(GenerationRequest(raw_text="Answer all questions", document=document))

    assert [part.is_binary for part in parts] == [True, False]
    assert parts[0].to_payload() == {
        "inline_data": {
            "mime_type": "application/pdf",
            "data": base64.b64encode(b"%PDF-1.7").decode("ascii"),
        }
    }


def test_blank_text_is_dropped_when_a_document_is_present() -> None:
    document = BinaryAttachment(data=b"img", mime_type="image/jpeg")

    parts = normalize_request(GenerationRequest(raw_text="  \n ", document=document))

    assert len(parts) == 1
    assert parts[0].mime_type == "image/jpeg"


@pytest.mark.parametrize("raw_text", ["", "   ", "\n\t\n"])
def test_missing_text_and_document_is_invalid(raw_text: str) -> None:
    with pytest.raises(InvalidInputError):
        normalize_request(GenerationRequest(raw_text=raw_text))


def test_attachment_repr_hides_payload() -> None:
    document = BinaryAttachment(data=b"x" * 2048, mime_type="application/pdf", filename="a.pdf")

    assert "2048" in repr(document)
    assert "xxxx" not in repr(document)


def test_load_attachment_reads_pdf(tmp_path: Path) -> None:
    path = tmp_path / "assignment.pdf"
    path.write_bytes(b"%PDF-1.4 sample")

    attachment = load_attachment(path)

    assert attachment.data == b"%PDF-1.4 sample"
    assert attachment.mime_type == "application/pdf"
    assert attachment.filename == "assignment.pdf"


def test_load_attachment_accepts_images(tmp_path: Path) -> None:
    path = tmp_path / "scan.png"
    path.write_bytes(b"\x89PNG\r\n")

    assert load_attachment(path).mime_type == "image/png"


def test_load_attachment_rejects_unsupported_types(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("Q1. Explain X.", encoding="utf-8")

    with pytest.raises(AttachmentError, match="valid PDF or Image"):
        load_attachment(path)


def test_load_attachment_rejects_large_files(tmp_path: Path) -> None:
    path = tmp_path / "big.pdf"
    path.write_bytes(b"0" * 2048)

    with pytest.raises(AttachmentError, match=r"File is too large \(0\.00MB\)"):
        load_attachment(path, max_bytes=1024)


def test_load_attachment_reports_missing_files(tmp_path: Path) -> None:
    with pytest.raises(InvalidInputError, match="Missing document"):
        load_attachment(tmp_path / "absent.pdf")
