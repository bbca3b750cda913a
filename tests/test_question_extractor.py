import json

import pytest

from aceexam.errors import AuthenticationRequired, InvalidInput, QuotaExceeded
from aceexam.question_extractor import QUESTION_LIST_SCHEMA, QuestionExtractor, parse_json_array

from conftest import FakeGemini, no_wait_retry


def extractor(fake):
    return QuestionExtractor(client_factory=fake, retry=no_wait_retry)


def test_extracts_questions_in_order():
    fake = FakeGemini(extract=json.dumps([
        {"number": "1", "question": "What is 2+2?"},
        {"number": "2a", "question": "Define inertia."},
        {"number": "2b", "question": "State Newton's second law."},
    ]))

    questions = extractor(fake).extract("1. What is 2+2? 2. (a) Define inertia. (b) ...", "key")

    assert [q.number for q in questions] == ["1", "2a", "2b"]
    assert questions[1].question == "Define inertia."
    assert all(q.answer is None for q in questions)
    assert fake.api_keys == ["key"]
    assert fake.closed == 1


def test_requests_structured_output():
    fake = FakeGemini(extract="[]")
    extractor(fake).extract("some text", "key")

    _, prompt, kwargs = fake.calls[0]
    assert "some text" in prompt
    assert kwargs["response_schema"] == QUESTION_LIST_SCHEMA
    assert QUESTION_LIST_SCHEMA["items"]["required"] == ["number", "question"]
    assert kwargs["temperature"] == 0.1


def test_blank_text_is_rejected_before_calling():
    fake = FakeGemini(extract="[]")
    with pytest.raises(InvalidInput):
        extractor(fake).extract("   \n", "key")
    assert fake.calls == []


@pytest.mark.parametrize("reply", ["", "   ", "not json", '{"number": "1"}', "[{broken"])
def test_unparseable_reply_is_an_empty_result(reply):
    assert extractor(FakeGemini(extract=reply)).extract("text", "key") == []


def test_fenced_json_is_accepted():
    reply = '```json\n[{"number": "1", "question": "Why?"}]\n```'
    questions = extractor(FakeGemini(extract=reply)).extract("text", "key")
    assert [(q.number, q.question) for q in questions] == [("1", "Why?")]


def test_incomplete_entries_are_dropped():
    reply = json.dumps([
        {"number": "1", "question": "  "},
        {"number": "", "question": "orphan"},
        {"question": "no number"},
        {"number": " 3 ", "question": " Kept "},
    ])
    questions = extractor(FakeGemini(extract=reply)).extract("text", "key")
    assert [(q.number, q.question) for q in questions] == [("3", "Kept")]


def test_authentication_failure_propagates():
    with pytest.raises(AuthenticationRequired):
        extractor(FakeGemini(extract=AuthenticationRequired())).extract("text", "key")


def test_quota_error_is_retried():
    replies = [QuotaExceeded(), '[{"number": "1", "question": "Q"}]']
    fake = FakeGemini(extract=lambda prompt: replies.pop(0))

    questions = extractor(fake).extract("text", "key")

    assert len(questions) == 1
    assert fake.count("extract") == 2
    assert fake.closed == 2


def test_parse_json_array_finds_embedded_array():
    assert parse_json_array('Here they are: [{"number": "1"}] done') == [{"number": "1"}]
    assert parse_json_array(None) is None
