# tests/conftest.py
import httpx
import pytest

from core.config import Settings
from services.scraper.http_client import HttpClient
from services.sources import config_loader


class SleepRecorder:
    """Stands in for ``asyncio.sleep``: records the requested delays, waits for nothing."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_settings(**overrides) -> Settings:
    values = dict(
        API_BASE_URL="http://api.test",
        BATCH_DELAY_MS=0,
        POST_THROTTLE_MS=0,
        FETCH_MAX_ATTEMPTS=1,
        POST_MAX_ATTEMPTS=3,
        POST_BASE_DELAY_MS=500,
        ENRICH_CAP=30,
        MAX_PER_SOURCE=30,
    )
    values.update(overrides)
    return Settings(**values)


def make_http(settings: Settings, handler) -> HttpClient:
    return HttpClient(settings, transport=httpx.MockTransport(handler))


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture(autouse=True)
def _fresh_source_cache():
    config_loader.reset_cache()
    yield
    config_loader.reset_cache()
