from __future__ import annotations

import threading
from typing import Any

import pytest

from assignment_solver.config import SolverSettings
from assignment_solver.services import (
    BinaryAttachment,
    GeminiClient,
    GeminiConnectionError,
    GenerationCancelled,
    GenerationConfig,
    GenerationRequest,
    GenerationResponse,
    GenerationRun,
    InvalidInputError,
    RunPhase,
    RunState,
    RunStateError,
    ServiceCallError,
    run_generation,
)
from assignment_solver.services.orchestrator import ANALYZING_LABEL
from assignment_solver.services.question_extractor import MARKER_SPLIT, SYNTHESIZED_QUESTION


class FakeClient:
    """Answer extraction calls with ``extraction`` and answer calls from ``answers``."""

    def __init__(self, extraction: str | Exception, answers: list[str | Exception] | None = None) -> None:
        self.extraction = extraction
        self.answers = list(answers or [])
        self.extraction_calls: list[dict[str, Any]] = []
        self.answer_calls: list[dict[str, Any]] = []

    def generate_content(
        self,
        parts,
        *,
        system_instruction: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResponse:
        call = {"parts": list(parts), "system_instruction": system_instruction, "config": config}
        if config is not None and config.response_schema is not None:
            self.extraction_calls.append(call)
            outcome = self.extraction
        else:
            self.answer_calls.append(call)
            outcome = self.answers.pop(0) if self.answers else f"Answer {len(self.answer_calls)}"
        if isinstance(outcome, Exception):
            raise outcome
        return GenerationResponse(text=outcome, finish_reason="STOP", raw_response={})


class Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def __call__(self, snapshot: str, label: str) -> None:
        self.events.append((snapshot, label))


def _run(request: GenerationRequest, client: FakeClient, recorder: Recorder | None = None) -> GenerationRun:
    return GenerationRun(request, recorder, client=client, settings=SolverSettings())


def test_round_trip_produces_sections_in_question_order() -> None:
    client = FakeClient('["Q1. Explain X.", "Q2. Discuss Y."]', ["BODY1", "BODY2"])
    recorder = Recorder()

    result = run_generation(
        GenerationRequest(raw_text="Q1. Explain X.\nQ2. Discuss Y."),
        recorder,
        client=client,
        settings=SolverSettings(),
    )

    assert result == (
        "### Q1. Explain X.\n\nBODY1\n\n---\n\n"
        "### Q2. Discuss Y.\n\nBODY2\n\n---\n\n"
    )
    assert [label for _, label in recorder.events] == [
        ANALYZING_LABEL,
        "Solving Question 1 of 2...",
        "Completed 1 of 2",
        "Solving Question 2 of 2...",
        "Completed 2 of 2",
    ]
    assert recorder.events[-1][0] == result


def test_blank_input_fails_before_any_service_call() -> None:
    client = FakeClient('["unused"]')
    recorder = Recorder()
    run = _run(GenerationRequest(raw_text="   \n\t"), client, recorder)

    with pytest.raises(InvalidInputError, match="Please provide either text questions or a PDF file."):
        run.run()

    assert client.extraction_calls == []
    assert client.answer_calls == []
    assert recorder.events == []
    assert run.state is RunState.FAILED
    assert isinstance(run.error, InvalidInputError)


def test_one_answer_call_per_question() -> None:
    questions = [f"Q{i}. Question number {i}?" for i in range(1, 6)]
    client = FakeClient(repr(questions).replace("'", '"'))
    run = _run(GenerationRequest(raw_text="\n".join(questions)), client)

    run.run()

    assert len(client.answer_calls) == 5
    assert [section.question_text for section in run.document.sections] == questions
    for call, question in zip(client.answer_calls, questions):
        instruction = call["parts"][-1]["text"]
        assert f"QUESTION: {question}" in instruction
        assert "IGNOU Academic Expert" in call["system_instruction"]
        assert call["config"].temperature == 0.3
        assert call["config"].max_output_tokens == 8192


def test_progress_counts_never_regress() -> None:
    client = FakeClient('["A question one?", "A question two?", "A question three?"]')
    recorder = Recorder()

    result = _run(GenerationRequest(raw_text="three questions"), client, recorder).run()

    completed = [
        int(label.split()[1]) for _, label in recorder.events if label.startswith("Completed")
    ]
    assert completed == [1, 2, 3]
    snapshots = [snapshot for snapshot, _ in recorder.events]
    for earlier, later in zip(snapshots, snapshots[1:]):
        assert later.startswith(earlier)
    assert snapshots[-1] == result


def test_empty_extraction_uses_marker_split_on_text() -> None:
    text = "Q1. Explain the water cycle in detail.\nQ2. Discuss the monsoon system of India."
    client = FakeClient("[]")
    run = _run(GenerationRequest(raw_text=text), client)

    run.run()

    assert run.extraction is not None
    assert run.extraction.strategy == MARKER_SPLIT
    assert run.questions == (
        "Q1. Explain the water cycle in detail.",
        "Q2. Discuss the monsoon system of India.",
    )
    assert len(client.answer_calls) == 2


def test_document_only_run_with_empty_extraction_answers_once() -> None:
    document = BinaryAttachment(data=b"%PDF-1.4 fake", mime_type="application/pdf", filename="a.pdf")
    client = FakeClient("[]")
    run = _run(GenerationRequest(document=document), client)

    result = run.run()

    assert run.questions == (SYNTHESIZED_QUESTION,)
    assert len(client.answer_calls) == 1
    parts = client.answer_calls[0]["parts"]
    assert parts[0]["inline_data"]["mime_type"] == "application/pdf"
    assert len(parts) == 2
    assert result.startswith(f"### {SYNTHESIZED_QUESTION}")


def test_document_part_precedes_text_in_every_call() -> None:
    document = BinaryAttachment(data=b"\x89PNG", mime_type="image/png")
    client = FakeClient('["Q1. Explain the picture."]')

    _run(GenerationRequest(raw_text="See the image", document=document), client).run()

    for call in client.extraction_calls + client.answer_calls:
        assert "inline_data" in call["parts"][0]
        assert call["parts"][1] == {"text": "See the image"}


def test_failed_answer_call_ends_run_but_keeps_captured_progress() -> None:
    client = FakeClient(
        '["Q1. Explain X.", "Q2. Discuss Y.", "Q3. Evaluate Z."]',
        ["BODY1", GeminiConnectionError("Gemini request timed out")],
    )
    recorder = Recorder()
    run = _run(GenerationRequest(raw_text="questions"), client, recorder)

    with pytest.raises(ServiceCallError, match="timed out"):
        run.run()

    assert run.state is RunState.FAILED
    assert run.phase is RunPhase.FINISHED
    assert len(client.answer_calls) == 2
    assert recorder.events[-1] == ("### Q1. Explain X.\n\nBODY1\n\n---\n\n", "Solving Question 2 of 3...")
    assert len(run.document) == 1


def test_empty_answer_is_a_service_failure() -> None:
    client = FakeClient('["Q1. Explain X."]', ["   "])

    with pytest.raises(ServiceCallError, match="empty answer"):
        _run(GenerationRequest(raw_text="Q1. Explain X."), client).run()


def test_unexpected_client_exception_is_wrapped() -> None:
    client = FakeClient('["Q1. Explain X."]', [RuntimeError("socket closed")])

    with pytest.raises(ServiceCallError, match="socket closed") as excinfo:
        _run(GenerationRequest(raw_text="Q1. Explain X."), client).run()

    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_missing_api_key_surfaces_as_service_error() -> None:
    client = GeminiClient(api_key=None)
    run = GenerationRun(
        GenerationRequest(raw_text="Q1. Explain X."), client=client, settings=SolverSettings()
    )

    with pytest.raises(ServiceCallError, match="API Key is missing"):
        run.run()


def test_finished_run_cannot_be_restarted() -> None:
    run = _run(GenerationRequest(raw_text="Q1. Explain X."), FakeClient('["Q1. Explain X."]'))
    assert run.phase is RunPhase.NOT_STARTED

    run.run()

    assert run.state is RunState.COMPLETED
    assert run.phase is RunPhase.FINISHED
    with pytest.raises(RunStateError, match="already finished"):
        run.run()


class BlockingClient(FakeClient):
    """Hold the first answer call until ``release`` is set."""

    def __init__(self, extraction: str) -> None:
        super().__init__(extraction)
        self.entered = threading.Event()
        self.release = threading.Event()

    def generate_content(self, parts, *, system_instruction=None, config=None):
        if config is not None and config.response_schema is None:
            self.entered.set()
            assert self.release.wait(5)
        return super().generate_content(
            parts, system_instruction=system_instruction, config=config
        )


def test_second_start_while_running_is_rejected() -> None:
    client = BlockingClient('["Q1. Explain X."]')
    run = _run(GenerationRequest(raw_text="Q1. Explain X."), client)

    future = run.start()
    assert client.entered.wait(5)
    assert run.phase is RunPhase.RUNNING
    assert run.state is RunState.SYNTHESIZING
    assert run.current_index == 0

    with pytest.raises(RunStateError, match="already in progress"):
        run.start()
    with pytest.raises(RunStateError):
        run.run()

    client.release.set()
    assert future.result(timeout=5).startswith("### Q1. Explain X.")
    assert len(client.answer_calls) == 1


def test_cancel_stops_progress_and_further_calls() -> None:
    client = BlockingClient('["Q1. Explain X.", "Q2. Discuss Y."]')
    recorder = Recorder()
    run = _run(GenerationRequest(raw_text="questions"), client, recorder)

    future = run.start()
    assert client.entered.wait(5)
    events_before_cancel = list(recorder.events)
    run.cancel()
    client.release.set()

    with pytest.raises(GenerationCancelled):
        future.result(timeout=5)
    assert recorder.events == events_before_cancel
    assert len(client.answer_calls) == 1
    assert run.state is RunState.FAILED
    assert run.cancelled


def test_cancel_during_last_answer_keeps_finished_document() -> None:
    client = BlockingClient('["Q1. Explain X."]')
    recorder = Recorder()
    run = _run(GenerationRequest(raw_text="Q1. Explain X."), client, recorder)

    future = run.start()
    assert client.entered.wait(5)
    events_before_cancel = list(recorder.events)
    run.cancel()
    client.release.set()

    assert future.result(timeout=5) == "### Q1. Explain X.\n\nAnswer 1\n\n---\n\n"
    assert run.state is RunState.COMPLETED
    assert run.cancelled
    assert recorder.events == events_before_cancel


def test_raising_progress_consumer_does_not_fail_run() -> None:
    calls: list[str] = []

    def consumer(snapshot: str, label: str) -> None:
        calls.append(label)
        raise RuntimeError("widget gone")

    client = FakeClient('["Q1. Explain X."]', ["BODY1"])
    result = _run(GenerationRequest(raw_text="Q1. Explain X."), client, consumer).run()

    assert result.endswith("BODY1\n\n---\n\n")
    assert calls == [ANALYZING_LABEL]


def test_settings_shape_the_answer_calls() -> None:
    settings = SolverSettings(
        temperature=0.1,
        max_output_tokens=2048,
        institution="Open University",
        academic_session="2026-2027",
        region="GLOBAL",
    )
    client = FakeClient('["Q1. Explain X."]')

    GenerationRun(GenerationRequest(raw_text="Q1. Explain X."), client=client, settings=settings).run()

    call = client.answer_calls[0]
    assert call["config"].temperature == 0.1
    assert call["config"].max_output_tokens == 2048
    assert "Open University Academic Expert" in call["system_instruction"]
    assert "2026-2027 academic session" in call["system_instruction"]
    assert "**GLOBAL Context**" in call["system_instruction"]
