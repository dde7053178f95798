# services/scraper/http_client.py
"""
Shared asynchronous HTTP client.

Every outbound request of a run goes through one ``HttpClient`` so timeouts,
proxy and user-agent are configured in a single place. GET requests are
retried on transient failures with ``tenacity``; POSTs are left to the
delivery engine, which owns its own retry policy.
"""

from typing import Any, Dict, Optional

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from core.config import Settings, get_settings
from services.delivery.retry_policy import is_transient


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"GET attempt {retry_state.attempt_number} failed ({exc!r}); retrying"
    )


class HttpClient:
    """
    Thin wrapper over ``httpx.AsyncClient``.

    Args:
        settings (Settings): process settings (timeouts, proxy, headers)
        transport (httpx.AsyncBaseTransport): optional transport override,
            used by tests to plug in ``httpx.MockTransport``
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        headers = {
            "User-Agent": self.settings.DEFAULT_USER_AGENT,
            "Accept-Language": self.settings.ACCEPT_LANGUAGE,
        }
        client_kwargs: Dict[str, Any] = {
            "headers": headers,
            "timeout": httpx.Timeout(self.settings.REQUEST_TIMEOUT),
            "follow_redirects": True,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        elif self.settings.HTTP_PROXY:
            client_kwargs["proxy"] = self.settings.HTTP_PROXY
        self._client = httpx.AsyncClient(**client_kwargs)

    # ------------------------------------------------------------------
    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    def _retrying(self) -> AsyncRetrying:
        delay_s = self.settings.FETCH_RETRY_DELAY_MS / 1000.0
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self.settings.FETCH_MAX_ATTEMPTS)),
            wait=wait_exponential(multiplier=delay_s, min=delay_s, max=delay_s * 8),
            retry=retry_if_exception(is_transient),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """GET with retries; raises ``httpx.HTTPStatusError`` on a final 4xx/5xx."""
        async for attempt in self._retrying():
            with attempt:
                response = await self._client.get(
                    url,
                    params=params,
                    timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
                )
                response.raise_for_status()
        return response

    async def get_text(self, url: str, *, timeout: Optional[float] = None) -> str:
        response = await self.get(url, timeout=timeout)
        return response.text

    async def get_json(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        response = await self.get(url, params=params, timeout=timeout)
        return response.json()

    async def post_json(
        self, url: str, payload: Dict[str, Any], *, timeout: Optional[float] = None
    ) -> httpx.Response:
        """Single POST attempt; the caller inspects the status."""
        return await self._client.post(
            url,
            json=payload,
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
