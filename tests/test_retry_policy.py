# tests/test_retry_policy.py
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from core.exceptions import DeliveryError, ValidationError, ValidationErrorKind
from services.delivery.retry_policy import (
    RetryPolicy,
    backoff_ms,
    is_transient,
    is_transient_status,
    parse_retry_after,
)


@pytest.mark.parametrize(
    "status,expected",
    [(None, True), (500, True), (503, True), (429, True), (408, True), (400, False), (404, False), (422, False)],
)
def test_transient_statuses(status, expected):
    assert is_transient_status(status) is expected
    assert is_transient(DeliveryError("x", status=status)) is expected


def test_exception_classification():
    request = httpx.Request("POST", "http://api.test/api/news")
    assert is_transient(httpx.ConnectError("refused", request=request))
    assert is_transient(httpx.ReadTimeout("slow", request=request))
    assert not is_transient(ValidationError(ValidationErrorKind.MISSING_FIELD, "title"))
    assert not is_transient(ValueError("unrelated"))

    response = httpx.Response(502, request=request)
    assert is_transient(httpx.HTTPStatusError("bad gateway", request=request, response=response))


def test_backoff_doubles():
    delays = [backoff_ms(attempt, 500) for attempt in (1, 2, 3, 4)]
    assert delays == [500, 1000, 2000, 4000]


def test_retry_after_raises_delay_for_429_only():
    policy = RetryPolicy(max_attempts=3, base_delay_ms=500)
    limited = DeliveryError("slow down", status=429, retry_after=5)
    assert policy.delay_ms(1, limited) >= 5000

    # a shorter Retry-After never lowers the exponential delay
    assert policy.delay_ms(3, DeliveryError("slow down", status=429, retry_after=0.1)) == 2000
    # Retry-After on another status is ignored
    assert policy.delay_ms(1, DeliveryError("down", status=503, retry_after=5)) == 500


def test_should_retry_respects_attempts_and_classification():
    policy = RetryPolicy(max_attempts=3)
    assert policy.should_retry(DeliveryError("down", status=500), 1)
    assert not policy.should_retry(DeliveryError("down", status=500), 3)
    assert not policy.should_retry(DeliveryError("bad", status=400), 1)


def test_parse_retry_after():
    assert parse_retry_after("5") == 5.0
    assert parse_retry_after(" 2.5 ") == 2.5
    assert parse_retry_after(None) is None
    assert parse_retry_after("soon") is None

    future = datetime.now(timezone.utc) + timedelta(seconds=120)
    seconds = parse_retry_after(format_datetime(future, usegmt=True))
    assert 100 < seconds <= 120


@pytest.mark.parametrize("value", ["inf", "-inf", "nan", "Infinity"])
def test_parse_retry_after_rejects_non_finite(value):
    assert parse_retry_after(value) is None


def test_retry_after_is_clamped_to_ceiling():
    policy = RetryPolicy(base_delay_ms=500, max_retry_after_ms=30_000)
    assert policy.delay_ms(1, DeliveryError("slow down", status=429, retry_after=86_400)) == 30_000
    # the ceiling never lowers the exponential delay itself
    assert policy.delay_ms(8, DeliveryError("slow down", status=429, retry_after=86_400)) == 64_000
    assert policy.delay_ms(1, DeliveryError("slow down", status=429, retry_after=float("inf"))) == 500


class _Outcome:
    def __init__(self, exc=None):
        self._exc = exc
        self.failed = exc is not None

    def exception(self):
        return self._exc


class _RetryState:
    def __init__(self, attempt_number, exc=None):
        self.attempt_number = attempt_number
        self.outcome = _Outcome(exc)


def test_tenacity_retry_predicate_follows_should_retry():
    policy = RetryPolicy(max_attempts=3)
    assert policy.tenacity_retry(_RetryState(1, DeliveryError("down", status=503)))
    assert not policy.tenacity_retry(_RetryState(3, DeliveryError("down", status=503)))
    assert not policy.tenacity_retry(_RetryState(1, DeliveryError("bad", status=422)))
    assert not policy.tenacity_retry(_RetryState(1))
