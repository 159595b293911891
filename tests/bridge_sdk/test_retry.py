"""Tests for the opt-in caller retry policy."""

from datetime import datetime, timedelta, timezone

import pytest

from BridgeSDK.errors import InvalidCredentials, NotFound, ServerError, TransportError
from BridgeSDK.rest.retry import (
    _parse_retry_after_value,
    create_transport_retry_policy,
    is_retryable,
)


class _Flaky:
    def __init__(self, failures):
        self.failures = list(failures)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


def test_retryable_classification():
    assert is_retryable(TransportError("down"))
    assert is_retryable(ServerError("boom", status_code=502))
    assert not is_retryable(NotFound("x", status_code=404))
    assert not is_retryable(InvalidCredentials("bad"))
    assert not is_retryable(ValueError("plain"))


def test_transport_errors_retried_until_success():
    sleeps = []
    policy = create_transport_retry_policy(max_attempts=4, sleep=sleeps.append)
    call = _Flaky([TransportError("a"), TransportError("b")])

    assert policy(call) == "ok"
    assert call.calls == 3
    assert len(sleeps) == 2
    assert all(delay >= 0 for delay in sleeps)


def test_retry_after_honoured_for_server_errors():
    sleeps = []
    policy = create_transport_retry_policy(max_attempts=3, sleep=sleeps.append)
    call = _Flaky([ServerError("busy", status_code=503, headers={"Retry-After": "7"})])

    assert policy(call) == "ok"
    assert sleeps == [7.0]


def test_retry_after_capped_by_max_delay():
    sleeps = []
    policy = create_transport_retry_policy(max_attempts=2, max_delay_seconds=5, sleep=sleeps.append)
    call = _Flaky([ServerError("busy", status_code=503, headers={"Retry-After": "120"})])

    policy(call)
    assert sleeps == [5.0]


def test_non_retryable_raised_immediately():
    sleeps = []
    policy = create_transport_retry_policy(sleep=sleeps.append)
    call = _Flaky([NotFound("missing", status_code=404)])

    with pytest.raises(NotFound):
        policy(call)
    assert call.calls == 1
    assert sleeps == []


def test_final_error_reraised_after_attempts():
    policy = create_transport_retry_policy(max_attempts=3, sleep=lambda _: None)
    call = _Flaky([ServerError("boom", status_code=500) for _ in range(5)])

    with pytest.raises(ServerError):
        policy(call)
    assert call.calls == 3


def test_parse_retry_after_value():
    assert _parse_retry_after_value("5") == 5.0
    assert _parse_retry_after_value("-3") == 0.0
    assert _parse_retry_after_value(None) is None
    assert _parse_retry_after_value("soon") is None

    future = datetime.now(timezone.utc) + timedelta(seconds=30)
    wait = _parse_retry_after_value(future.strftime("%a, %d %b %Y %H:%M:%S GMT"))
    assert wait is not None
    assert 0.0 <= wait <= 30.0
