import base64

from aceexam.diagram_generator import DiagramGenerator
from aceexam.errors import QuotaExceeded, RemoteServiceError
from aceexam.models import QuestionItem

from conftest import FakeGemini, image_response, no_wait_retry


def generator(fake, max_workers=4):
    return DiagramGenerator(client_factory=fake, retry=no_wait_retry, max_workers=max_workers)


def test_render_returns_data_url(png_bytes):
    fake = FakeGemini(diagram=image_response(png_bytes))
    data_url = generator(fake).render("free body diagram of a block", "key")

    assert data_url == "data:image/png;base64," + base64.b64encode(png_bytes).decode()
    _, prompt, kwargs = fake.calls[0]
    assert prompt.startswith("High-quality academic diagram: free body diagram of a block")
    assert kwargs["generation_config"]["responseModalities"] == ["IMAGE"]
    assert kwargs["generation_config"]["imageConfig"]["aspectRatio"] == "4:3"


def test_blank_description_makes_no_call():
    fake = FakeGemini(diagram={})
    assert generator(fake).render("  ", "key") is None
    assert generator(fake).render(None, "key") is None
    assert fake.calls == []


def test_failures_mean_no_diagram():
    assert generator(FakeGemini(diagram=RemoteServiceError("boom"))).render("x", "key") is None
    assert generator(FakeGemini(diagram={"candidates": []})).render("x", "key") is None


def test_quota_failure_is_retried_then_dropped():
    fake = FakeGemini(diagram=QuotaExceeded())
    assert generator(fake).render("x", "key") is None
    assert fake.count("diagram") == 3


def test_render_all_calls_once_per_prompt(png_bytes):
    fake = FakeGemini(diagram=image_response(png_bytes))
    questions = [
        QuestionItem(number="1", question="a", diagram_prompt="circuit"),
        QuestionItem(number="2", question="b"),
        QuestionItem(number="3", question="c", diagram_prompt="lever"),
        QuestionItem(number="4", question="d", diagram_prompt="   "),
    ]

    results = generator(fake).render_all(questions, "key")

    assert fake.count("diagram") == 2
    assert [r.number for r in results] == ["1", "2", "3", "4"]
    assert results[0].diagram_data_url.startswith("data:image/png;base64,")
    assert results[1].diagram_data_url is None
    assert results[2].diagram_data_url.startswith("data:image/png;base64,")
    assert results[3].diagram_data_url is None
    # inputs are left untouched
    assert questions[0].diagram_data_url is None


def test_one_failed_diagram_does_not_affect_others(png_bytes):
    def reply(prompt):
        if "lever" in prompt:
            raise RemoteServiceError("image model unavailable")
        return image_response(png_bytes)

    questions = [
        QuestionItem(number="1", question="a", diagram_prompt="circuit"),
        QuestionItem(number="2", question="b", diagram_prompt="lever"),
        QuestionItem(number="3", question="c", diagram_prompt="pulley"),
    ]
    results = generator(FakeGemini(diagram=reply), max_workers=2).render_all(questions, "key")

    assert results[0].diagram_data_url is not None
    assert results[1].diagram_data_url is None
    assert results[1].diagram_prompt == "lever"
    assert results[2].diagram_data_url is not None


def test_nothing_to_render():
    fake = FakeGemini(diagram={})
    questions = [QuestionItem(number="1", question="a")]
    assert generator(fake).render_all(questions, "key") == questions
    assert fake.calls == []
