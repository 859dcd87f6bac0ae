"""Drive one assignment generation run from raw input to finished document."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from enum import Enum

from ..config import SolverSettings
from ..logging import log_call
from .answer_synthesizer import AnswerSynthesizer, GenerationDocument, build_system_instruction
from .calls import GenerativeClient
from .errors import (
    GenerationCancelled,
    GenerationError,
    RunStateError,
    ServiceCallError,
)
from .gemini_client import GeminiClient
from .input_normalizer import GenerationRequest, normalize_request
from .progress import ProgressCallback, ProgressChannel
from .question_extractor import ExtractionResult, QuestionExtractor


logger = logging.getLogger(__name__)


ANALYZING_LABEL = "Analyzing document to identify questions..."


class RunState(Enum):
    """Fine-grained position of a run in its lifecycle."""

    IDLE = "idle"
    NORMALIZING = "normalizing"
    EXTRACTING = "extracting"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {RunState.COMPLETED, RunState.FAILED}


class RunPhase(Enum):
    """Coarse lifecycle used by the start guard."""

    NOT_STARTED = "not-started"
    RUNNING = "running"
    FINISHED = "finished"


class GenerationRun:
    """Own a single generation run.

    A run goes ``IDLE -> NORMALIZING -> EXTRACTING -> SYNTHESIZING(i) ->
    COMPLETED`` or ends in ``FAILED``. Both end states are final; start a new
    :class:`GenerationRun` to try again.
    """

    def __init__(
        self,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
        *,
        client: GenerativeClient | None = None,
        settings: SolverSettings | None = None,
        extractor: QuestionExtractor | None = None,
        synthesizer: AnswerSynthesizer | None = None,
        weak_progress: bool = False,
    ) -> None:
        self.request = request
        self.settings = settings or SolverSettings.load()
        if client is None and (extractor is None or synthesizer is None):
            client = GeminiClient.from_settings(self.settings)
        self.extractor = extractor or QuestionExtractor(client)
        self.synthesizer = synthesizer or AnswerSynthesizer(
            client,  # type: ignore[arg-type]
            system_instruction=build_system_instruction(
                institution=self.settings.institution,
                academic_session=self.settings.academic_session,
                region=self.settings.region,
            ),
            temperature=self.settings.temperature,
            max_output_tokens=self.settings.max_output_tokens,
        )
        self.progress = ProgressChannel(on_progress, weak=weak_progress)
        self.document = GenerationDocument()
        self.extraction: ExtractionResult | None = None
        self.result: str | None = None
        self.error: GenerationError | None = None
        self._state = RunState.IDLE
        self._current_index: int | None = None
        self._started = False
        self._cancelled = threading.Event()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # State
    @property
    def state(self) -> RunState:
        return self._state

    @property
    def phase(self) -> RunPhase:
        if self._state.is_terminal:
            return RunPhase.FINISHED
        if self._started:
            return RunPhase.RUNNING
        return RunPhase.NOT_STARTED

    @property
    def current_index(self) -> int | None:
        """Index of the question being solved while ``SYNTHESIZING``."""

        return self._current_index

    @property
    def questions(self) -> tuple[str, ...]:
        return self.extraction.questions if self.extraction else ()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _set_state(self, state: RunState, *, index: int | None = None) -> None:
        previous = self._state
        self._state = state
        self._current_index = index
        logger.info(
            "Run state changed",
            extra={"from": previous.value, "to": state.value, "index": index},
        )

    # ------------------------------------------------------------------
    # Public API
    def run(self) -> str:
        """Execute the run on the calling thread and return the document."""

        self._claim()
        return self._execute()

    def start(self) -> "Future[str]":
        """Execute the run on a worker thread.

        The start guard is applied immediately, so a second call raises
        :class:`RunStateError` here rather than through the future.
        """

        self._claim()
        future: Future[str] = Future()

        def worker() -> None:
            if not future.set_running_or_notify_cancel():
                self.cancel()
                return
            try:
                future.set_result(self._execute())
            except BaseException as exc:
                future.set_exception(exc)

        threading.Thread(target=worker, name="GenerationRun", daemon=True).start()
        return future

    @log_call(logger=logger)
    def cancel(self) -> None:
        """Abandon the run.

        No further progress is delivered. A call already in flight is left to
        finish; the run then stops with :class:`GenerationCancelled` instead
        of making its next call.
        """

        self._cancelled.set()
        self.progress.close()

    # ------------------------------------------------------------------
    # Internals
    def _claim(self) -> None:
        with self._lock:
            if self._state.is_terminal:
                raise RunStateError(
                    "This generation run has already finished; start a new run."
                )
            if self._started:
                raise RunStateError("A generation run is already in progress.")
            self._started = True

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise GenerationCancelled("Generation was cancelled.")

    def _enter_question(self, index: int) -> None:
        self._check_cancelled()
        self._set_state(RunState.SYNTHESIZING, index=index)

    def _execute(self) -> str:
        try:
            self._check_cancelled()
            self._set_state(RunState.NORMALIZING)
            parts = normalize_request(self.request)

            self._set_state(RunState.EXTRACTING)
            self.progress.emit("", ANALYZING_LABEL)
            self.extraction = self.extractor.extract(self.request.raw_text, parts)
            if not self.extraction.questions:
                raise RuntimeError("Question extraction produced no questions")

            self.synthesizer.synthesize(
                self.extraction.questions,
                parts,
                self.progress.emit,
                document=self.document,
                before_question=self._enter_question,
            )
        except GenerationError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            error = ServiceCallError(str(exc))
            self._fail(error)
            raise error from exc

        self.result = self.document.render()
        self._set_state(RunState.COMPLETED)
        logger.info(
            "Generation completed",
            extra={"sections": len(self.document), "characters": len(self.result)},
        )
        return self.result

    def _fail(self, error: GenerationError) -> None:
        self.error = error
        self._set_state(RunState.FAILED)
        logger.error(
            "Generation failed",
            extra={"error": str(error), "error_type": type(error).__name__},
        )


def run_generation(
    request: GenerationRequest,
    on_progress: ProgressCallback | None = None,
    *,
    client: GenerativeClient | None = None,
    settings: SolverSettings | None = None,
) -> str:
    """Run one generation and return the finished document.

    ``on_progress`` receives ``(document_snapshot, status_label)`` after each
    step. Failures raise :class:`GenerationError` subclasses whose message can
    be shown to the user directly.
    """

    return GenerationRun(request, on_progress, client=client, settings=settings).run()


__all__ = [
    "ANALYZING_LABEL",
    "GenerationRun",
    "RunPhase",
    "RunState",
    "run_generation",
]
