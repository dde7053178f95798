# tests/test_delivery.py
import asyncio
import json

import httpx
import pytest

from conftest import SleepRecorder, make_http, make_settings
from core.exceptions import DeliveryError, ValidationError
from models.article import ArticlePayload
from services.delivery.client import DeliveryClient


def _payload(n: int = 1, **overrides) -> ArticlePayload:
    values = dict(
        title=f"Climate report released {n}",
        content="A long description of the climate report findings.",
        lang="en",
        category="Changement climatique",
        source_url=f"https://a.example/article/{n}",
        published_at="2024-05-01T10:00:00Z",
    )
    values.update(overrides)
    return ArticlePayload(**values)


class FakeApi:
    """Content API double: answers with the scripted responses, last one repeating."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]
        if isinstance(response, Exception):
            raise response
        status, kwargs = response
        return httpx.Response(status, **kwargs)


def _send(api, payload, settings=None, sleep=None, **kwargs):
    settings = settings or make_settings()
    sleep = sleep or SleepRecorder()

    async def go():
        async with make_http(settings, api) as http:
            client = DeliveryClient(http, settings, sleep=sleep)
            return await client.send_with_retry(payload, **kwargs)

    return asyncio.run(go())


def test_created_is_success():
    api = FakeApi((201, {"json": {"success": True, "id": 1}}))
    assert _send(api, _payload()) is True
    assert len(api.requests) == 1

    request = api.requests[0]
    assert str(request.url) == "http://api.test/api/news"
    body = json.loads(request.content)
    assert body["sourceUrl"] == "https://a.example/article/1"
    assert body["publishedAt"] == "2024-05-01T10:00:00Z"


def test_bad_request_is_not_retried():
    api = FakeApi((400, {"json": {"error": "bad"}}))
    sleep = SleepRecorder()

    with pytest.raises(DeliveryError) as exc_info:
        _send(api, _payload(), sleep=sleep)

    assert exc_info.value.status == 400
    assert len(api.requests) == 1
    assert sleep.calls == []


def test_server_error_retries_with_increasing_delays():
    api = FakeApi((500, {"text": "boom"}))
    sleep = SleepRecorder()

    with pytest.raises(DeliveryError) as exc_info:
        _send(api, _payload(), sleep=sleep, max_attempts=4, base_delay_ms=100)

    assert exc_info.value.status == 500
    assert len(api.requests) == 4
    assert sleep.calls == pytest.approx([0.1, 0.2, 0.4])
    for previous, current in zip(sleep.calls, sleep.calls[1:]):
        assert current >= 2 * previous


def test_transient_failure_then_success():
    api = FakeApi((503, {"text": "down"}), (201, {"json": {"success": True}}))
    sleep = SleepRecorder()

    assert _send(api, _payload(), sleep=sleep) is True
    assert len(api.requests) == 2
    assert sleep.calls == pytest.approx([0.5])


def test_rate_limit_honours_retry_after():
    api = FakeApi((429, {"headers": {"Retry-After": "5"}}), (201, {"json": {"success": True}}))
    sleep = SleepRecorder()

    assert _send(api, _payload(), sleep=sleep) is True
    assert sleep.calls[0] >= 5.0


def test_rate_limit_retry_after_is_capped():
    api = FakeApi((429, {"headers": {"Retry-After": "86400"}}), (201, {"json": {"success": True}}))
    sleep = SleepRecorder()

    assert _send(api, _payload(), settings=make_settings(POST_MAX_RETRY_AFTER_S=30), sleep=sleep) is True
    assert sleep.calls == pytest.approx([30.0])


def test_rate_limit_with_infinite_retry_after_uses_backoff():
    api = FakeApi((429, {"headers": {"Retry-After": "inf"}}), (201, {"json": {"success": True}}))
    sleep = SleepRecorder()

    assert _send(api, _payload(), sleep=sleep) is True
    assert sleep.calls == pytest.approx([0.5])


def test_network_error_is_retried():
    request = httpx.Request("POST", "http://api.test/api/news")
    api = FakeApi(httpx.ConnectError("refused", request=request), (201, {"json": {"success": True}}))

    assert _send(api, _payload()) is True
    assert len(api.requests) == 2


def test_network_error_exhausts_attempts():
    request = httpx.Request("POST", "http://api.test/api/news")
    api = FakeApi(httpx.ConnectError("refused", request=request))

    with pytest.raises(DeliveryError) as exc_info:
        _send(api, _payload(), max_attempts=2)
    assert exc_info.value.status is None
    assert len(api.requests) == 2


def test_conflict_counts_as_success_without_retry():
    api = FakeApi((409, {"json": {"error": "duplicate"}}))
    sleep = SleepRecorder()

    assert _send(api, _payload(), sleep=sleep) is True
    assert len(api.requests) == 1
    assert sleep.calls == []


def test_success_false_is_permanent():
    api = FakeApi((200, {"json": {"success": False, "message": "category unknown"}}))

    with pytest.raises(DeliveryError):
        _send(api, _payload())
    assert len(api.requests) == 1


def test_non_json_2xx_counts_as_success():
    api = FakeApi((200, {"text": "OK"}))
    assert _send(api, _payload()) is True


def test_validation_happens_before_any_request():
    api = FakeApi((201, {"json": {"success": True}}))

    with pytest.raises(ValidationError):
        _send(api, _payload(title="Hi"))
    assert api.requests == []


def test_send_returns_false_instead_of_raising():
    api = FakeApi((400, {"json": {"error": "bad"}}))
    settings = make_settings()

    async def go():
        async with make_http(settings, api) as http:
            return await DeliveryClient(http, settings).send(_payload())

    assert asyncio.run(go()) is False


def test_deliver_all_tallies_outcomes():
    def api(request):
        body = json.loads(request.content)
        if body["sourceUrl"].endswith("/2"):
            return httpx.Response(422, json={"error": "invalid"})
        if body["sourceUrl"].endswith("/3"):
            return httpx.Response(409)
        return httpx.Response(201, json={"success": True})

    settings = make_settings(POST_CONCURRENCY=2)
    payloads = [_payload(n) for n in range(1, 6)] + [_payload(6, content="")]

    async def go():
        async with make_http(settings, api) as http:
            return await DeliveryClient(http, settings, sleep=SleepRecorder()).deliver_all(payloads)

    tally = asyncio.run(go())
    assert tally.ok == 4
    assert tally.ko == 2


def test_dry_run_sends_nothing():
    api = FakeApi((500, {"text": "should not be called"}))
    settings = make_settings()

    async def go():
        async with make_http(settings, api) as http:
            client = DeliveryClient(http, settings, dry_run=True)
            return await client.deliver_all([_payload(1), _payload(2)])

    tally = asyncio.run(go())
    assert tally.ok == 2
    assert api.requests == []
