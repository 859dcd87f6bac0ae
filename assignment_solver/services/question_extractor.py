"""Split the submitted material into an ordered list of questions.

Extraction is an ordered chain of strategies. The first one asks the
service for a JSON array of question strings; the rest are local fallbacks
that only look at the pasted text. The chain stops at the first strategy
that produces at least one question, and the last strategy always does.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..logging import log_call
from .calls import GenerativeClient, call_service
from .errors import ExtractionDegradedNotice, SerializationError
from .gemini_client import GenerationConfig
from .input_normalizer import RequestPart


logger = logging.getLogger(__name__)


EXTRACTION_INSTRUCTION = (
    "Analyze the provided content and extract all assignment questions.\n"
    "Return ONLY a JSON array of strings, where each string is a question text "
    "(including its number).\n"
    'Example output: ["Q1. Explain...", "Q2. Discuss..."].\n'
    "Ensure all questions from the document are captured."
)

QUESTION_LIST_SCHEMA = {"type": "ARRAY", "items": {"type": "STRING"}}

SYNTHESIZED_QUESTION = "Solve the assignment questions found in the document."

# Segments this short are numbering noise rather than questions.
MIN_QUESTION_LENGTH = 10

STRUCTURED_SERVICE = "structured-service"
MARKER_SPLIT = "marker-split"
SINGLE_QUESTION = "single-question"
SYNTHESIZED_FALLBACK = "synthesized-fallback"

# "Q3." or "12." at the start of a line, but not "1.5".
_QUESTION_MARKER_RE = re.compile(r"^(?=[ \t]*[Qq]?\d+\.(?!\d))", re.MULTILINE)
_CODE_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


@dataclass(frozen=True, slots=True)
class ExtractionContext:
    """Inputs shared by every strategy in the chain."""

    raw_text: str
    parts: tuple[RequestPart, ...]
    client: GenerativeClient | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.raw_text and self.raw_text.strip())


@dataclass(frozen=True, slots=True)
class ExtractionStrategy:
    name: str
    run: Callable[[ExtractionContext], list[str]]


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Questions chosen for a run and how they were obtained."""

    questions: tuple[str, ...]
    strategy: str
    notice: ExtractionDegradedNotice | None = None

    @property
    def degraded(self) -> bool:
        return self.notice is not None


def parse_question_list(text: str | None) -> list[str]:
    """Parse the service's JSON array of questions.

    Raises :class:`SerializationError` when ``text`` is not a JSON array.
    String entries are trimmed and blank ones dropped; numbers are kept as
    text and any other entry is ignored.
    """

    cleaned = _CODE_FENCE_RE.sub("", (text or "").strip()) or "[]"
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SerializationError(f"Question list is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, list):
        raise SerializationError(
            f"Expected a JSON array of questions, got {type(data).__name__}"
        )
    questions: list[str] = []
    for item in data:
        if isinstance(item, bool):
            continue
        if isinstance(item, (int, float)):
            item = str(item)
        if isinstance(item, str) and item.strip():
            questions.append(item.strip())
    return questions


def split_on_question_markers(text: str) -> list[str]:
    """Split pasted text in front of every numbered question line."""

    segments = _QUESTION_MARKER_RE.split(text)
    return [
        segment.strip()
        for segment in segments
        if len(segment.strip()) > MIN_QUESTION_LENGTH
    ]


def _structured_service(context: ExtractionContext) -> list[str]:
    if context.client is None:
        return []
    text = call_service(
        context.client,
        context.parts,
        EXTRACTION_INSTRUCTION,
        config=GenerationConfig(
            response_mime_type="application/json",
            response_schema=QUESTION_LIST_SCHEMA,
        ),
    )
    return parse_question_list(text)


def _marker_split(context: ExtractionContext) -> list[str]:
    if not context.has_text or _QUESTION_MARKER_RE.search(context.raw_text) is None:
        return []
    return split_on_question_markers(context.raw_text)


def _single_question(context: ExtractionContext) -> list[str]:
    if not context.has_text:
        return []
    return [context.raw_text]


def _synthesized_fallback(context: ExtractionContext) -> list[str]:
    return [SYNTHESIZED_QUESTION]


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy(STRUCTURED_SERVICE, _structured_service),
    ExtractionStrategy(MARKER_SPLIT, _marker_split),
    ExtractionStrategy(SINGLE_QUESTION, _single_question),
    ExtractionStrategy(SYNTHESIZED_FALLBACK, _synthesized_fallback),
)


class QuestionExtractor:
    """Run the strategy chain against one request."""

    def __init__(
        self,
        client: GenerativeClient | None,
        *,
        strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
    ) -> None:
        if not strategies:
            raise ValueError("at least one extraction strategy is required")
        self.client = client
        self.strategies = tuple(strategies)

    @log_call(logger=logger, include_args=False, include_result=True)
    def extract(self, raw_text: str, parts: Sequence[RequestPart]) -> ExtractionResult:
        """Return the questions for a run.

        Never fails because of empty or malformed structured output; a
        :class:`ServiceCallError` from the extraction call does propagate.
        """

        context = ExtractionContext(raw_text=raw_text or "", parts=tuple(parts), client=self.client)
        reasons: list[str] = []
        for position, strategy in enumerate(self.strategies):
            try:
                questions = strategy.run(context)
            except SerializationError as exc:
                logger.warning(
                    "Structured extraction output could not be parsed",
                    extra={"strategy": strategy.name, "error": str(exc)},
                )
                reasons.append(f"{strategy.name}: {exc}")
                continue
            if not questions:
                reasons.append(f"{strategy.name}: no questions")
                continue
            notice = None
            if position > 0:
                notice = ExtractionDegradedNotice(
                    strategy=strategy.name, reason="; ".join(reasons)
                )
                logger.warning(
                    "Question extraction degraded",
                    extra={"strategy": strategy.name, "reason": notice.reason},
                )
            logger.info(
                "Questions extracted",
                extra={"strategy": strategy.name, "question_count": len(questions)},
            )
            return ExtractionResult(
                questions=tuple(questions), strategy=strategy.name, notice=notice
            )
        raise RuntimeError("No extraction strategy produced a question")


__all__ = [
    "DEFAULT_STRATEGIES",
    "EXTRACTION_INSTRUCTION",
    "ExtractionContext",
    "ExtractionResult",
    "ExtractionStrategy",
    "MIN_QUESTION_LENGTH",
    "QUESTION_LIST_SCHEMA",
    "QuestionExtractor",
    "SYNTHESIZED_QUESTION",
    "parse_question_list",
    "split_on_question_markers",
]
