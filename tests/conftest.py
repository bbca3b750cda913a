import base64
import io
import os
import sys
import tempfile
import threading
from pathlib import Path

import pytest

# add src to python path so we can import the package without installing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
# keep generated guides out of the working tree
os.environ.setdefault("ACEEXAM_OUTPUT_DIR", tempfile.mkdtemp(prefix="aceexam-test-"))

import fitz  # PyMuPDF
from PIL import Image

from aceexam.diagram_generator import DiagramGenerator
from aceexam.processing_service import AuthGate, StudyGuideWorkflow
from aceexam.question_extractor import QuestionExtractor
from aceexam.retry import with_retry
from aceexam.solution_generator import SolutionGenerator


def make_pdf(*pages: str) -> bytes:
    """Build a pdf with one page per string (empty string -> blank page)"""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_textbox(fitz.Rect(50, 50, 550, 800), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(width: int = 40, height: int = 30) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


def make_image_only_pdf() -> bytes:
    """A 'scanned' page: an image and no text layer"""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_image(fitz.Rect(50, 50, 450, 350), stream=make_png(400, 300))
    data = doc.tobytes()
    doc.close()
    return data


def image_response(png: bytes, mime_type: str = "image/png") -> dict:
    return {"candidates": [{"content": {"parts": [
        {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(png).decode()}}
    ]}}]}


def no_wait_retry(action):
    return with_retry(action, sleep=lambda seconds: None)


class FakeGemini:
    """Stand-in for create_llm_client.

    Routes each request to a scripted reply by prompt kind (extract, solve,
    diagram) and records every call. A reply may be a value, an exception to
    raise, or a callable taking the prompt.
    """

    def __init__(self, **routes):
        self.routes = routes
        self.calls = []
        self.api_keys = []
        self.closed = 0
        self._lock = threading.Lock()

    def __call__(self, api_key):
        with self._lock:
            self.api_keys.append(api_key)
        return FakeGeminiClient(self)

    @staticmethod
    def route_for(prompt: str) -> str:
        if prompt.startswith("Extract all academic exam questions"):
            return "extract"
        if prompt.startswith("Act as an expert Academic Solver"):
            return "solve"
        return "diagram"

    def reply(self, prompt, **kwargs):
        route = self.route_for(prompt)
        with self._lock:
            self.calls.append((route, prompt, kwargs))
        reply = self.routes.get(route)
        if callable(reply) and not isinstance(reply, BaseException):
            reply = reply(prompt)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def count(self, route: str) -> int:
        return sum(1 for call in self.calls if call[0] == route)


class FakeGeminiClient:
    def __init__(self, fake: FakeGemini):
        self.fake = fake

    def generate_text(self, prompt, **kwargs):
        return self.fake.reply(prompt, **kwargs)

    def generate_content(self, model, parts, generation_config=None, tools=None):
        return self.fake.reply(parts[0]["text"], model=model, generation_config=generation_config, tools=tools)

    def close(self):
        with self.fake._lock:
            self.fake.closed += 1


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def make_workflow(tmp_path):
    """Workflow wired to a FakeGemini, with a key available unless api_key=None"""
    def _make(fake: FakeGemini, api_key="test-key"):
        return StudyGuideWorkflow(
            question_extractor=QuestionExtractor(client_factory=fake, retry=no_wait_retry),
            solution_generator=SolutionGenerator(client_factory=fake, retry=no_wait_retry),
            diagram_generator=DiagramGenerator(client_factory=fake, retry=no_wait_retry),
            auth_gate=AuthGate(env_lookup=lambda: api_key),
            output_dir=tmp_path / "outputs",
        )
    return _make
