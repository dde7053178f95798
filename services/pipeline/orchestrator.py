# services/pipeline/orchestrator.py
import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from loguru import logger

from core.config import Settings, get_settings
from models.article import ArticlePayload, CandidateLink, EnrichedMeta, SkipRecord, SourceResult
from models.run_metrics import RunMetrics, RunPhase
from services.categories.allow_list import CategoryAllowList, CategorySnapshot
from services.delivery.client import DeliveryClient
from services.delivery.payload import build_payload
from services.scraper.enricher import Enricher
from services.scraper.http_client import HttpClient
from services.sources.registry import Extractor, build_extractors

from .dedup import deduplicate
from .metrics import (
    ARTICLES_EXTRACTED,
    ARTICLES_SKIPPED,
    PIPELINE_ACTIVE,
    PIPELINE_RUN_DURATION,
    PIPELINE_RUNS,
)


# ----------------------------------------------------------------------
#  PipelineOrchestrator – one run: extract → dedup → enrich → deliver
# ----------------------------------------------------------------------
class PipelineOrchestrator:
    """
    Drives a single ingestion run through its phases:

        idle → extracting → deduplicating → enriching → delivering → reporting → done

    Phases are strictly sequential; the work inside extracting, enriching and
    delivering is concurrent. Per-source and per-article faults are turned
    into values by the components, so a run always reaches ``done`` unless
    the orchestration itself breaks.

    The category allow-list is read once, as a snapshot, at the start of the
    run and never written to.
    """

    def __init__(
        self,
        http: HttpClient,
        allow_list: CategoryAllowList,
        settings: Optional[Settings] = None,
        extractors: Optional[Sequence[Extractor]] = None,
        only: Optional[Iterable[str]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        dry_run: bool = False,
    ):
        self.settings = settings or get_settings()
        self.http = http
        self.allow_list = allow_list
        self.extractors = (
            list(extractors)
            if extractors is not None
            else build_extractors(self.settings, http, only=only)
        )
        self.enricher = Enricher(http, self.settings, sleep=sleep)
        self.delivery = DeliveryClient(http, self.settings, sleep=sleep, dry_run=dry_run)
        self.last_metrics: Optional[RunMetrics] = None

    # ------------------------------------------------------------------
    #  Extracting
    # ------------------------------------------------------------------
    async def _extract(self) -> List[SourceResult]:
        outcomes = await asyncio.gather(
            *(e.extract() for e in self.extractors), return_exceptions=True
        )
        results: List[SourceResult] = []
        for extractor, outcome in zip(self.extractors, outcomes):
            if isinstance(outcome, BaseException):
                # extractors are expected to catch their own faults
                logger.error(f"{extractor.name}: extractor raised {outcome!r}")
                outcome = SourceResult.failed(extractor.name, None, str(outcome) or type(outcome).__name__)
            logger.info(
                f"{outcome.source}: {len(outcome.results)} link(s), {len(outcome.skipped)} skipped"
            )
            ARTICLES_EXTRACTED.labels(source=outcome.source).inc(len(outcome.results))
            results.append(outcome)
        return results

    @staticmethod
    def _log_skips(skipped: Sequence[SkipRecord]) -> None:
        for record in skipped:
            ARTICLES_SKIPPED.labels(reason=record.reason.split(":", 1)[0]).inc()
            logger.debug(
                f"skip [{record.source}] {record.reason}: '{record.title[:80]}' {record.href or ''}"
            )

    # ------------------------------------------------------------------
    #  Payload construction
    # ------------------------------------------------------------------
    @staticmethod
    def _payload(
        link: CandidateLink,
        categories: CategorySnapshot,
        meta: Optional[EnrichedMeta] = None,
    ) -> ArticlePayload:
        meta = meta or EnrichedMeta()
        return build_payload(
            title=link.title,
            url=link.url,
            lang=link.lang,
            category=link.category,
            content=meta.content,
            image_url=meta.image_url,
            published_at=meta.published_at,
            categories=categories,
        )

    # ------------------------------------------------------------------
    #  Run
    # ------------------------------------------------------------------
    async def run(self, enrich_cap: Optional[int] = None) -> RunMetrics:
        cap = self.settings.ENRICH_CAP if enrich_cap is None else max(0, enrich_cap)
        metrics = RunMetrics(enrich_cap=cap)
        self.last_metrics = metrics
        categories = self.allow_list.snapshot()
        start = time.perf_counter()
        PIPELINE_ACTIVE.set(1)
        logger.info(f"Pipeline run started with {len(self.extractors)} source(s), enrich cap {cap}")

        try:
            metrics.advance(RunPhase.EXTRACTING)
            source_results = await self._extract()
            raw: List[CandidateLink] = [link for r in source_results for link in r.results]
            skipped: List[SkipRecord] = [s for r in source_results for s in r.skipped]
            metrics.raw_count = len(raw)
            metrics.record_skips([s.reason for s in skipped])
            self._log_skips(skipped)

            metrics.advance(RunPhase.DEDUPLICATING)
            unique = deduplicate(raw)
            metrics.dedup_count = len(unique)

            metrics.advance(RunPhase.ENRICHING)
            head, rest = unique[:cap], unique[cap:]
            metas, timings = await self.enricher.enrich_all([link.url for link in head])
            metrics.record_enrichment(timings)

            payloads = [self._payload(link, categories, meta) for link, meta in zip(head, metas)]
            payloads.extend(self._payload(link, categories) for link in rest)

            metrics.advance(RunPhase.DELIVERING)
            tally = await self.delivery.deliver_all(payloads)
            metrics.post_ok = tally.ok
            metrics.post_ko = tally.ko

            metrics.advance(RunPhase.REPORTING)
            metrics.total_ms = round((time.perf_counter() - start) * 1000.0, 1)
            metrics.finished_at = datetime.now(timezone.utc)
            self._report(metrics)

            metrics.advance(RunPhase.DONE)
            PIPELINE_RUNS.labels(status="completed").inc()
            return metrics
        except Exception:
            PIPELINE_RUNS.labels(status="failed").inc()
            logger.exception(f"Pipeline run aborted during phase '{metrics.phase.value}'")
            raise
        finally:
            PIPELINE_RUN_DURATION.observe(time.perf_counter() - start)
            PIPELINE_ACTIVE.set(0)

    @staticmethod
    def _report(metrics: RunMetrics) -> None:
        logger.bind(run=metrics.model_dump(mode="json")).info(
            f"Run summary: raw={metrics.raw_count} skipped={metrics.skipped_count} "
            f"dedup={metrics.dedup_count} enriched={metrics.enrich_count}/{metrics.enrich_cap} "
            f"(avg {metrics.enrich_avg_ms}ms, p95 {metrics.enrich_p95_ms}ms) "
            f"posted ok={metrics.post_ok} ko={metrics.post_ko} in {metrics.total_ms}ms"
        )
        if metrics.skip_reasons:
            logger.info(f"Skip reasons: {metrics.skip_reasons}")
