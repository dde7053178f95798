# services/delivery/retry_policy.py
"""
Pure retry policy: which failures are worth retrying and how long to wait.

No I/O happens here, so the policy can be exercised directly in tests and
plugged into ``tenacity`` by the delivery client and the GET client alike.

Transient failures:
* no HTTP response at all (connection error, timeout)
* HTTP 5xx
* HTTP 429 (rate limited) – honouring ``Retry-After`` when it is longer
* HTTP 408 (request timeout)

Everything else (400, 401, 404, 422, a 2xx body saying ``success: false``,
payload validation errors) is permanent.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import httpx

from core.exceptions import DeliveryError, ValidationError

TRANSIENT_CLIENT_STATUSES = frozenset({408, 429})


def is_transient_status(status: Optional[int]) -> bool:
    if status is None:
        return True
    return status >= 500 or status in TRANSIENT_CLIENT_STATUSES


def status_of(exc: BaseException) -> Optional[int]:
    if isinstance(exc, DeliveryError):
        return exc.status
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def is_transient(exc: BaseException) -> bool:
    """Classify an exception raised by a request attempt."""
    if isinstance(exc, ValidationError):
        return False
    if isinstance(exc, DeliveryError):
        return is_transient_status(exc.status)
    if isinstance(exc, httpx.HTTPStatusError):
        return is_transient_status(exc.response.status_code)
    return isinstance(exc, httpx.TransportError)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """``Retry-After`` header in seconds (delta-seconds or HTTP-date form)."""
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(0.0, seconds) if math.isfinite(seconds) else None
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def backoff_ms(attempt: int, base_delay_ms: float) -> float:
    """Exponential backoff: ``base * 2^(attempt-1)`` for attempt 1, 2, 3…"""
    return base_delay_ms * (2 ** (max(1, attempt) - 1))


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: float = 500.0
    max_retry_after_ms: float = 120_000.0

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        return attempt < self.max_attempts and is_transient(exc)

    def delay_ms(self, attempt: int, exc: Optional[BaseException] = None) -> float:
        """Delay before the attempt following ``attempt``."""
        delay = backoff_ms(attempt, self.base_delay_ms)
        if exc is not None and status_of(exc) == 429:
            retry_after = getattr(exc, "retry_after", None)
            if retry_after is not None and math.isfinite(retry_after):
                delay = max(delay, min(retry_after * 1000.0, self.max_retry_after_ms))
        return delay

    # tenacity adapters: ``retry=policy.tenacity_retry, wait=policy.tenacity_wait``
    def tenacity_retry(self, retry_state) -> bool:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return False
        return self.should_retry(outcome.exception(), retry_state.attempt_number)

    def tenacity_wait(self, retry_state) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return self.delay_ms(retry_state.attempt_number, exc) / 1000.0
