import pytest

from aceexam.errors import QuotaExceeded, RemoteServiceError
from aceexam.retry import is_quota_error, with_retry


class Flaky:
    """fails with the given errors, then returns 'ok'"""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def test_success_needs_no_wait():
    sleeps = []
    action = Flaky()

    assert with_retry(action, retries=2, delay=2.0, sleep=sleeps.append) == "ok"
    assert action.calls == 1
    assert sleeps == []


def test_quota_error_retried_with_doubling_delay():
    sleeps = []
    action = Flaky(QuotaExceeded(), QuotaExceeded())

    assert with_retry(action, retries=2, delay=2.0, sleep=sleeps.append) == "ok"
    assert action.calls == 3
    assert sleeps == [2.0, 4.0]


def test_retry_budget_is_bounded():
    sleeps = []
    action = Flaky(*[QuotaExceeded() for _ in range(10)])

    with pytest.raises(QuotaExceeded):
        with_retry(action, retries=2, delay=2.0, sleep=sleeps.append)
    assert action.calls == 3
    assert sleeps == [2.0, 4.0]


def test_rate_limit_message_surfaces_as_quota_exceeded():
    action = Flaky(*[RemoteServiceError("Too Many Requests", status_code=429) for _ in range(5)])

    with pytest.raises(QuotaExceeded):
        with_retry(action, retries=1, delay=0.5, sleep=lambda s: None)
    assert action.calls == 2


def test_other_errors_propagate_immediately():
    sleeps = []
    action = Flaky(RemoteServiceError("AI service error 500: boom"))

    with pytest.raises(RemoteServiceError):
        with_retry(action, retries=3, delay=2.0, sleep=sleeps.append)
    assert action.calls == 1
    assert sleeps == []


def test_quota_signatures():
    assert is_quota_error(QuotaExceeded())
    assert is_quota_error(RuntimeError("status: RESOURCE_EXHAUSTED"))
    assert is_quota_error(RemoteServiceError("Too Many Requests", status_code=429))
    assert not is_quota_error(RuntimeError("got 429"))
    assert not is_quota_error(RemoteServiceError("AI service error 500: request 4291 failed", status_code=500))
    assert not is_quota_error(RemoteServiceError("AI service error 503: unavailable"))
    assert not is_quota_error(ValueError("bad json"))


def test_server_error_quoting_429_is_not_retried():
    sleeps = []
    action = Flaky(RemoteServiceError("AI service error 500: trace id 84293", status_code=500))

    with pytest.raises(RemoteServiceError) as exc_info:
        with_retry(action, retries=2, delay=2.0, sleep=sleeps.append)
    assert not isinstance(exc_info.value, QuotaExceeded)
    assert action.calls == 1
    assert sleeps == []
