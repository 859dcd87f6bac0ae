from __future__ import annotations

from pathlib import Path

import pytest

import assignment_solver.__main__ as cli
from assignment_solver.services import ServiceCallError


class StubRun:
    instances: list["StubRun"] = []
    outcome: str | Exception = "### Q1. Explain X.\n\nBODY\n\n---\n\n"

    def __init__(self, request, on_progress=None, *, settings=None, **kwargs) -> None:
        self.request = request
        self.on_progress = on_progress
        self.settings = settings
        StubRun.instances.append(self)

    def run(self) -> str:
        if isinstance(self.outcome, Exception):
            raise self.outcome
        if self.on_progress is not None:
            self.on_progress(self.outcome, "Completed 1 of 1")
        return self.outcome


@pytest.fixture()
def stub_run(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> type[StubRun]:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "config"))
    monkeypatch.setattr(cli, "GenerationRun", StubRun)
    StubRun.instances = []
    StubRun.outcome = "### Q1. Explain X.\n\nBODY\n\n---\n\n"
    return StubRun


def test_cli_writes_markdown(stub_run: type[StubRun], tmp_path: Path, capsys) -> None:
    output = tmp_path / "answers.md"

    code = cli.main(["--text", "Q1. Explain X.", "--output", str(output)])

    assert code == cli.EXIT_OK
    assert output.read_text(encoding="utf-8") == "### Q1. Explain X.\n\nBODY\n\n---\n"
    assert stub_run.instances[0].request.raw_text == "Q1. Explain X."
    assert "Completed 1 of 1" in capsys.readouterr().err


def test_cli_reads_text_file_and_document(stub_run: type[StubRun], tmp_path: Path) -> None:
    questions = tmp_path / "questions.txt"
    questions.write_text("Q1. Explain X.\nQ2. Discuss Y.", encoding="utf-8")
    document = tmp_path / "paper.pdf"
    document.write_bytes(b"%PDF-1.4")

    code = cli.main(
        [
            "--text-file",
            str(questions),
            "--document",
            str(document),
            "--output",
            str(tmp_path / "out.html"),
            "--html",
        ]
    )

    assert code == cli.EXIT_OK
    request = stub_run.instances[0].request
    assert request.raw_text.startswith("Q1. Explain X.")
    assert request.document.mime_type == "application/pdf"
    assert "<h3>Q1. Explain X.</h3>" in (tmp_path / "out.html").read_text(encoding="utf-8")


def test_cli_reports_invalid_document(stub_run: type[StubRun], tmp_path: Path, capsys) -> None:
    code = cli.main(["--document", str(tmp_path / "missing.pdf")])

    assert code == cli.EXIT_INVALID_INPUT
    assert "Missing document" in capsys.readouterr().err
    assert stub_run.instances == []


@pytest.mark.parametrize(
    "contents, message",
    [
        ('{"temperature": "hot"}', "Invalid numeric setting"),
        ("{not json", "Invalid settings"),
    ],
)
def test_cli_reports_broken_settings_file(
    stub_run: type[StubRun], tmp_path: Path, capsys, contents: str, message: str
) -> None:
    settings_dir = tmp_path / "config" / "AssignmentSolver"
    settings_dir.mkdir(parents=True, exist_ok=True)
    (settings_dir / "settings.json").write_text(contents, encoding="utf-8")

    code = cli.main(["--text", "Q1. Explain X.", "--output", str(tmp_path / "x.md")])

    assert code == cli.EXIT_INVALID_INPUT
    assert message in capsys.readouterr().err
    assert stub_run.instances == []
    assert not (tmp_path / "x.md").exists()


def test_cli_reports_service_failures(stub_run: type[StubRun], tmp_path: Path, capsys) -> None:
    stub_run.outcome = ServiceCallError("Gemini returned HTTP 429: quota")

    code = cli.main(["--text", "Q1. Explain X.", "--output", str(tmp_path / "x.md")])

    assert code == cli.EXIT_FAILED
    assert "Error: Gemini returned HTTP 429: quota" in capsys.readouterr().err
    assert not (tmp_path / "x.md").exists()
