# services/sources/extractor.py
"""
Parametric listing-page extractor.

One ``SourceExtractor`` drives every HTML source: the per-source differences
(domain, article path, excluded sections, selector tiers, language, cap) live
in the ``SourceConfig`` descriptor, not in code.
"""

from typing import List, Optional, Sequence, Set

from bs4 import BeautifulSoup
from loguru import logger

from core.exceptions import ExtractionError
from models.article import CandidateLink, SkipRecord, SourceResult
from services.scraper.http_client import HttpClient
from services.scraper.text import resolve_url, sanitize_title

from .config_loader import SourceConfig
from .link_filter import LinkFilter


def anchor_title(el) -> str:
    """Anchor text, falling back to ``aria-label`` / ``title`` attributes."""
    text = sanitize_title(el.get_text(" "))
    if text:
        return text
    return sanitize_title(el.get("aria-label") or el.get("title") or "")


class SourceExtractor:
    """
    Extracts candidate article links from one listing page.

    Scanning runs tier by tier (narrow selectors first). A tier only starts
    when the running item count is still below the cap, and scanning stops as
    soon as the cap is reached.
    """

    def __init__(
        self,
        name: str,
        config: SourceConfig,
        http: HttpClient,
        max_items: int,
        keywords: Optional[Sequence[str]] = None,
    ):
        if config.rules is None:
            raise ValueError(f"HTML source '{name}' has no link rules")
        self.name = name
        self.config = config
        self.http = http
        self.max_items = min(max_items, config.max_items) if config.max_items else max_items
        self.link_filter = LinkFilter(
            config.rules, keywords=keywords if config.keyword_gated else None
        )

    async def extract(self) -> SourceResult:
        """Fetch and parse the listing page. Never raises."""
        base = self.config.base_url
        try:
            html = await self.http.get_text(base)
        except Exception as exc:  # network, HTTP status, decoding
            logger.warning(f"{self.name}: fetch failed: {exc}")
            return SourceResult.failed(self.name, base, str(exc) or type(exc).__name__)
        try:
            return self.parse(html)
        except ExtractionError as exc:
            logger.warning(exc.message)
            return SourceResult.failed(self.name, base, exc.message)
        except Exception as exc:  # malformed markup or a bad selector
            logger.warning(f"{self.name}: parse failed: {exc}")
            return SourceResult.failed(self.name, base, str(exc) or type(exc).__name__)

    def parse(self, html: str) -> SourceResult:
        if not html or not html.strip():
            raise ExtractionError(self.name, "empty listing page")
        soup = BeautifulSoup(html, "html.parser")
        base = self.config.base_url
        seen: Set[str] = set()
        results: List[CandidateLink] = []
        skipped: List[SkipRecord] = []

        for tier in self.config.tiers:
            if len(results) >= self.max_items:
                break
            for el in soup.select(tier.selector):
                if len(results) >= self.max_items:
                    break
                title = anchor_title(el)
                href = resolve_url(el.get("href"), base)
                reason = self.link_filter.rejection_reason(title, href, seen)
                if reason:
                    skipped.append(SkipRecord(title=title, href=href, reason=reason, source=self.name))
                    continue
                seen.add(href)
                results.append(
                    CandidateLink(
                        title=title,
                        url=href,
                        lang=self.config.lang,
                        category=self.config.category,
                        source=self.name,
                    )
                )
            logger.debug(f"{self.name}: tier '{tier.name}' done, {len(results)} item(s)")

        return SourceResult(source=self.name, results=results, skipped=skipped)
