"""Write one academic answer per question and collect them in order."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Iterator

from ..logging import log_call
from .calls import GenerativeClient, call_service
from .errors import ServiceCallError
from .gemini_client import GenerationConfig
from .input_normalizer import RequestPart


logger = logging.getLogger(__name__)


SYSTEM_INSTRUCTION_TEMPLATE = """You are an {institution} Academic Expert.
Your task is to write 'Human polished' comprehensive, 500-word academic answers for each question provided by the user.
The user will either provide a list of questions text or a PDF containing the questions.

STRICT GUIDELINES:
1.  **Format:** Use a formal academic tone. Structure each answer with clear Sub-headings, Bullet points where applicable, and a Concluding Summary.
2.  **Source Material:** Base your answers on standard {institution} study material concepts.
3.  **Context:** Ensure data and references are relevant to the {academic_session} academic session.
4.  **Region:** If a question requires current affairs or specific examples, use the **{region} Context**.
5.  **Structure:**
    *   Start with the Question Title/Number.
    *   Introduction.
    *   Body Paragraphs (with sub-headings).
    *   Conclusion/Summary.
6.  **Volume:** Aim for approximately 500 words per answer unless the question specifically asks for a short note.
"""

ANSWER_INSTRUCTION_TEMPLATE = (
    "Based on the provided document/context, write a comprehensive, academic answer "
    "for the following question.\n\n"
    "QUESTION: {question}\n\n"
    "Follow the academic guidelines provided in the system instruction."
)

SECTION_SEPARATOR = "---"

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_OUTPUT_TOKENS = 8192


def build_system_instruction(
    *, institution: str = "IGNOU", academic_session: str = "2025-2026", region: str = "INDIAN"
) -> str:
    return SYSTEM_INSTRUCTION_TEMPLATE.format(
        institution=institution, academic_session=academic_session, region=region
    )


@dataclass(frozen=True, slots=True)
class AnswerSection:
    """One question and the answer written for it."""

    question_text: str
    body: str

    def render(self) -> str:
        return f"### {self.question_text}\n\n{self.body}\n\n{SECTION_SEPARATOR}\n\n"


@dataclass
class GenerationDocument:
    """Append-only collection of answer sections in question order."""

    _sections: list[AnswerSection] = field(default_factory=list)

    def append(self, section: AnswerSection) -> None:
        self._sections.append(section)

    @property
    def sections(self) -> tuple[AnswerSection, ...]:
        return tuple(self._sections)

    def render(self) -> str:
        return "".join(section.render() for section in self._sections)

    def __len__(self) -> int:
        return len(self._sections)

    def __iter__(self) -> Iterator[AnswerSection]:
        return iter(tuple(self._sections))


def solving_label(index: int, total: int) -> str:
    return f"Solving Question {index + 1} of {total}..."


def completed_label(index: int, total: int) -> str:
    return f"Completed {index + 1} of {total}"


ProgressEmitter = Callable[[str, str], object]


class AnswerSynthesizer:
    """Solve questions one at a time, reusing the same context parts."""

    def __init__(
        self,
        client: GenerativeClient,
        *,
        system_instruction: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> None:
        self.client = client
        self.system_instruction = system_instruction or build_system_instruction()
        self.config = GenerationConfig(
            temperature=temperature, max_output_tokens=max_output_tokens
        )

    @log_call(logger=logger, include_args=False)
    def answer(self, question: str, context: Sequence[RequestPart]) -> AnswerSection:
        """Issue the answer call for ``question`` and return its section."""

        body = call_service(
            self.client,
            context,
            ANSWER_INSTRUCTION_TEMPLATE.format(question=question),
            system_instruction=self.system_instruction,
            config=self.config,
        )
        if not body or not body.strip():
            raise ServiceCallError("The service returned an empty answer.")
        return AnswerSection(question_text=question, body=body)

    def synthesize(
        self,
        questions: Sequence[str],
        context: Sequence[RequestPart],
        emit: ProgressEmitter,
        *,
        document: GenerationDocument | None = None,
        before_question: Callable[[int], None] | None = None,
    ) -> GenerationDocument:
        """Answer every question in order, reporting before and after each call.

        ``before_question`` is called with each index ahead of its progress
        event and may raise to stop the loop. The first failure propagates;
        sections already appended stay in ``document``.
        """

        document = document if document is not None else GenerationDocument()
        total = len(questions)
        for index, question in enumerate(questions):
            if before_question is not None:
                before_question(index)
            emit(document.render(), solving_label(index, total))
            logger.info(
                "Solving question",
                extra={"index": index + 1, "total": total},
            )
            document.append(self.answer(question, context))
            emit(document.render(), completed_label(index, total))
        return document


__all__ = [
    "ANSWER_INSTRUCTION_TEMPLATE",
    "AnswerSection",
    "AnswerSynthesizer",
    "GenerationDocument",
    "SECTION_SEPARATOR",
    "SYSTEM_INSTRUCTION_TEMPLATE",
    "build_system_instruction",
    "completed_label",
    "solving_label",
]
