# services/scraper/enricher.py
import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from loguru import logger

from core.config import Settings, get_settings
from models.article import EnrichedMeta
from services.pipeline.metrics import ENRICHMENT_DURATION
from services.pipeline.pool import BoundedPool

from .http_client import HttpClient
from .text import resolve_url, sanitize_title

MIN_CONTENT_LENGTH = 20


class MetaExtractor:
    """Pulls description, lead image and publication date out of an article page."""

    DESCRIPTION_KEYS = ('og:description', 'twitter:description', 'description')
    IMAGE_KEYS = ('og:image', 'og:image:url', 'twitter:image', 'twitter:image:src')
    PUBLISHED_KEYS = (
        'article:published_time',
        'og:article:published_time',
        'datepublished',
        'publisheddate',
        'pubdate',
        'date',
    )

    def _meta_tags(self, soup: BeautifulSoup) -> Dict[str, str]:
        """First non-empty ``content`` per lowercased name/property/itemprop."""
        tags: Dict[str, str] = {}
        for meta in soup.find_all('meta'):
            name = meta.get('property') or meta.get('name') or meta.get('itemprop')
            content = meta.get('content')
            if name and content and content.strip():
                tags.setdefault(name.lower(), content.strip())
        return tags

    @staticmethod
    def _first(tags: Dict[str, str], keys: Sequence[str]) -> str:
        for key in keys:
            if tags.get(key):
                return tags[key]
        return ''

    def extract(self, html: str, url: str) -> EnrichedMeta:
        soup = BeautifulSoup(html, 'html.parser')
        tags = self._meta_tags(soup)

        content = self._first(tags, self.DESCRIPTION_KEYS)
        if not content:
            paragraph = soup.find('p')
            content = paragraph.get_text(' ') if paragraph else ''
        content = sanitize_title(content)
        if len(content) < MIN_CONTENT_LENGTH:
            content = ''

        image = self._first(tags, self.IMAGE_KEYS)
        if not image:
            img = soup.find('img', src=True)
            image = img['src'] if img else ''
        image_url = resolve_url(image, url) if image else None

        published = self._first(tags, self.PUBLISHED_KEYS)
        if not published:
            time_el = soup.find('time', datetime=True)
            published = time_el['datetime'] if time_el else ''

        return EnrichedMeta(
            content=content,
            image_url=image_url or None,
            published_at=published or None,
        )


class Enricher:
    """
    Fetches each article's own page for metadata.

    ``fetch_meta`` never raises; a failed fetch yields an empty ``EnrichedMeta``
    so the payload falls back to the title.
    """

    def __init__(
        self,
        http: HttpClient,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.http = http
        self.settings = settings or get_settings()
        self.extractor = MetaExtractor()
        self.pool = BoundedPool(
            limit=self.settings.ENRICH_CONCURRENCY,
            batch_delay_ms=self.settings.BATCH_DELAY_MS,
            sleep=sleep or asyncio.sleep,
            name="enrichment",
        )

    async def fetch_meta(self, url: str) -> EnrichedMeta:
        try:
            html = await self.http.get_text(url, timeout=self.settings.ENRICH_TIMEOUT)
            return self.extractor.extract(html, url)
        except Exception as exc:
            logger.debug(f"Enrichment failed for {url}: {exc!r}")
            return EnrichedMeta()

    async def _timed_fetch(self, url: str) -> Tuple[EnrichedMeta, float]:
        start = time.perf_counter()
        meta = await self.fetch_meta(url)
        elapsed = time.perf_counter() - start
        ENRICHMENT_DURATION.observe(elapsed)
        return meta, elapsed * 1000.0

    async def enrich_all(self, urls: Sequence[str]) -> Tuple[List[EnrichedMeta], List[float]]:
        """Enrich ``urls`` in order; returns the metadata and per-call timings in ms."""
        if not urls:
            return [], []
        pairs = await self.pool.map(self._timed_fetch, list(urls))
        metas = [meta for meta, _ in pairs]
        timings = [ms for _, ms in pairs]
        filled = sum(1 for m in metas if m.content)
        logger.info(f"Enriched {len(metas)} article(s), {filled} with usable content")
        return metas, timings
