# services/delivery/client.py
"""
Delivery engine: POSTs article payloads to the content API.

* ``send`` – one attempt, never raises, returns ``True``/``False``.
* ``send_with_retry`` – retries transient failures per ``RetryPolicy`` and
  propagates anything else (validation faults, permanent HTTP errors, the
  last error once attempts are exhausted).
* ``deliver_all`` – runs every payload through ``send_with_retry`` with a
  bounded pool and tallies the outcomes.

HTTP 409 means the article already exists, which is the state we want, so it
counts as a success.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx
from loguru import logger
from tenacity import AsyncRetrying, stop_after_attempt

from core.config import Settings, get_settings
from core.exceptions import DeliveryError
from models.article import ArticlePayload
from services.pipeline.metrics import DELIVERIES, DELIVERY_RETRIES
from services.pipeline.pool import BoundedPool
from services.scraper.http_client import HttpClient
from services.scraper.text import domain_of

from .payload import validate
from .retry_policy import RetryPolicy, parse_retry_after

OK = "ok"
DUPLICATE = "duplicate"
DRY_RUN = "dry-run"

BODY_LOG_LIMIT = 500


@dataclass
class DeliveryTally:
    ok: int = 0
    ko: int = 0


class DeliveryClient:
    def __init__(
        self,
        http: HttpClient,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        dry_run: bool = False,
    ):
        self.http = http
        self.settings = settings or get_settings()
        self.url = self.settings.news_url
        self.dry_run = dry_run
        self._sleep = sleep or asyncio.sleep
        self.policy = RetryPolicy(
            max_attempts=self.settings.POST_MAX_ATTEMPTS,
            base_delay_ms=self.settings.POST_BASE_DELAY_MS,
            max_retry_after_ms=self.settings.POST_MAX_RETRY_AFTER_S * 1000.0,
        )
        self.pool = BoundedPool(
            limit=self.settings.POST_CONCURRENCY,
            batch_delay_ms=self.settings.BATCH_DELAY_MS,
            item_delay_ms=self.settings.POST_THROTTLE_MS,
            sleep=self._sleep,
            name="delivery",
        )

    # ------------------------------------------------------------------
    #  Single attempt
    # ------------------------------------------------------------------
    async def _post(self, payload: ArticlePayload) -> str:
        """One validated POST. Returns the outcome label or raises."""
        validate(payload)
        body = payload.to_api_dict()

        if self.dry_run:
            logger.info(f"[dry-run] would POST {payload.source_url} as '{payload.category}'")
            logger.debug(f"[dry-run] payload: {body}")
            return DRY_RUN

        try:
            response = await self.http.post_json(
                self.url, body, timeout=self.settings.POST_TIMEOUT
            )
        except httpx.HTTPError as exc:
            raise DeliveryError(f"POST failed without response: {exc!r}") from exc

        status = response.status_code
        if status == 409:
            return DUPLICATE
        if not 200 <= status < 300:
            raise DeliveryError(
                f"Content API answered HTTP {status}",
                status=status,
                body=response.text,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("success") is False:
            raise DeliveryError(
                "Content API rejected the article (success=false)",
                status=status,
                body=response.text,
            )
        return OK

    def _log_failure(self, payload: ArticlePayload, exc: BaseException) -> None:
        status = getattr(exc, "status", None)
        body = getattr(exc, "body", None)
        logger.bind(
            title=(payload.title or "")[:80],
            domain=domain_of(payload.source_url or ""),
            url=payload.source_url,
            category=payload.category,
            lang=payload.lang,
            endpoint=self.url,
            timestamp=datetime.now(timezone.utc).isoformat(),
            status=status,
            body=(body or "")[:BODY_LOG_LIMIT],
        ).opt(exception=exc).error(
            f"Delivery failed for '{(payload.title or '')[:60]}' "
            f"({domain_of(payload.source_url or '')}) status={status}: {exc}"
        )

    async def send(self, payload: ArticlePayload) -> bool:
        try:
            outcome = await self._post(payload)
        except Exception as exc:
            self._log_failure(payload, exc)
            return False
        if outcome == DUPLICATE:
            logger.info(f"Already present (409): {payload.source_url}")
        return True

    # ------------------------------------------------------------------
    #  Retrying send
    # ------------------------------------------------------------------
    def _before_sleep(self, retry_state) -> None:
        DELIVERY_RETRIES.inc()
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"POST attempt {retry_state.attempt_number} failed ({exc}); "
            f"retrying in {wait * 1000:.0f}ms"
        )

    async def send_with_retry(
        self,
        payload: ArticlePayload,
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[float] = None,
    ) -> bool:
        """
        Deliver ``payload``, retrying transient failures only.

        Raises:
            ValidationError: payload rejected locally, nothing was sent
            DeliveryError: permanent failure, or the last transient failure
                once ``max_attempts`` is exhausted
        """
        policy = RetryPolicy(
            max_attempts=max_attempts or self.policy.max_attempts,
            base_delay_ms=self.policy.base_delay_ms if base_delay_ms is None else base_delay_ms,
            max_retry_after_ms=self.policy.max_retry_after_ms,
        )
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, policy.max_attempts)),
            wait=policy.tenacity_wait,
            retry=policy.tenacity_retry,
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                outcome = await self._post(payload)

        if outcome == DUPLICATE:
            DELIVERIES.labels(outcome=DUPLICATE).inc()
            logger.info(f"Already present (409): {payload.source_url}")
        return True

    # ------------------------------------------------------------------
    #  Batch delivery
    # ------------------------------------------------------------------
    async def _deliver_one(self, payload: ArticlePayload) -> bool:
        try:
            await self.send_with_retry(payload)
        except Exception as exc:  # failures stay per-item
            self._log_failure(payload, exc)
            DELIVERIES.labels(outcome="ko").inc()
            return False
        DELIVERIES.labels(outcome="ok").inc()
        return True

    async def deliver_all(self, payloads: Sequence[ArticlePayload]) -> DeliveryTally:
        outcomes: List[bool] = await self.pool.map(self._deliver_one, list(payloads))
        tally = DeliveryTally(ok=sum(1 for o in outcomes if o))
        tally.ko = len(outcomes) - tally.ok
        logger.info(f"Delivery finished: ok={tally.ok} ko={tally.ko}")
        return tally
