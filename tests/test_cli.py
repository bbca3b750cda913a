import json

from typer.testing import CliRunner

import aceexam.cli as cli
from aceexam.diagram_generator import DiagramGenerator
from aceexam.processing_service import StudyGuideWorkflow
from aceexam.question_extractor import QuestionExtractor
from aceexam.solution_generator import SolutionGenerator

from conftest import FakeGemini, make_pdf, no_wait_retry

runner = CliRunner()

EXTRACTED = json.dumps([{"number": "1", "question": "What is 2+2?"}])
SOLVED = json.dumps([{
    "number": "1", "question": "What is 2+2?", "answer": "Final Answer: 4",
    "referenceDocUrl": "https://example.edu/add", "referenceVideoUrl": "https://www.youtube.com/watch?v=add",
}])


def test_fields_lists_catalog():
    result = runner.invoke(cli.app, ["fields"])
    assert result.exit_code == 0
    assert "Engineering" in result.output
    assert "Commerce" in result.output


def test_solve_rejects_missing_file(tmp_path):
    result = runner.invoke(cli.app, ["solve", str(tmp_path / "missing.pdf"), "--subject", "Physics"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_solve_rejects_non_pdf(tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("hello")
    result = runner.invoke(cli.app, ["solve", str(notes), "--subject", "Physics"])
    assert result.exit_code == 1


def test_solve_without_key_fails(tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    exam = tmp_path / "exam.pdf"
    exam.write_bytes(make_pdf("1. What is 2+2?"))

    result = runner.invoke(cli.app, ["solve", str(exam), "--subject", "Physics"])
    assert result.exit_code == 1


def test_solve_writes_study_guide(tmp_path, monkeypatch):
    fake = FakeGemini(extract=EXTRACTED, solve=SOLVED)

    def workflow_factory(auth_gate, output_dir):
        return StudyGuideWorkflow(
            question_extractor=QuestionExtractor(client_factory=fake, retry=no_wait_retry),
            solution_generator=SolutionGenerator(client_factory=fake, retry=no_wait_retry),
            diagram_generator=DiagramGenerator(client_factory=fake, retry=no_wait_retry),
            auth_gate=auth_gate,
            output_dir=output_dir,
        )

    monkeypatch.setattr(cli, "StudyGuideWorkflow", workflow_factory)
    exam = tmp_path / "exam.pdf"
    exam.write_bytes(make_pdf("1. What is 2+2?"))
    out = tmp_path / "guides"

    result = runner.invoke(cli.app, [
        "solve", str(exam),
        "--subject", "Intro Physics",
        "--field", "Natural Sciences",
        "--sub-field", "Theoretical Physics",
        "--output", str(out),
        "--api-key", "cli-key",
    ])

    assert result.exit_code == 0, result.output
    assert (out / "AceExam_Guide_Intro_Physics.pdf").exists()
    assert fake.api_keys == ["cli-key", "cli-key"]
