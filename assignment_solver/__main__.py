"""Command line entry point: ``python -m assignment_solver``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from .config import ConfigManager, SolverSettings
from .logging import install_exception_hook, setup_logging
from .services.attachments import load_attachment
from .services.errors import GenerationError, InvalidInputError
from .services.export_service import DEFAULT_EXPORT_FILENAME, ExportService
from .services.input_normalizer import GenerationRequest
from .services.orchestrator import GenerationRun


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assignment_solver",
        description="Generate long-form academic answers for assignment questions.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--text", default="", help="Questions pasted as text.")
    source.add_argument("--text-file", type=Path, help="Read the questions from a text file.")
    parser.add_argument("--document", type=Path, help="PDF or image containing the questions.")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(DEFAULT_EXPORT_FILENAME),
        help=f"Where to write the answers (default: {DEFAULT_EXPORT_FILENAME}).",
    )
    parser.add_argument("--html", action="store_true", help="Write HTML instead of Markdown.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def _print_status(document_snapshot: str, status_label: str) -> None:
    print(status_label, file=sys.stderr, flush=True)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    install_exception_hook(logger)

    try:
        settings = SolverSettings.load(ConfigManager())
    except (ValueError, OSError) as exc:
        logger.error("Unable to load settings", extra={"error": str(exc)})
        print(f"Error: Invalid settings: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    try:
        text = args.text
        if args.text_file is not None:
            try:
                text = args.text_file.read_text(encoding="utf-8")
            except OSError as exc:
                raise InvalidInputError(f"Unable to read {args.text_file}: {exc}") from exc
        document = load_attachment(args.document) if args.document is not None else None
        request = GenerationRequest(raw_text=text, document=document)
        result = GenerationRun(request, _print_status, settings=settings).run()
    except InvalidInputError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except GenerationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED

    exporter = ExportService()
    if args.html:
        content = exporter.to_html(result)
        destination = args.output
        if destination == Path(DEFAULT_EXPORT_FILENAME):
            destination = destination.with_suffix(".html")
    else:
        content = exporter.to_markdown(result)
        destination = args.output
    path = exporter.write_text(destination, content)
    logger.info("Assignment written", extra={"path": str(path)})
    print(f"Completed: {path}", file=sys.stderr)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
