# services/sources/youtube.py
"""
API-backed video source: latest uploads of one YouTube channel.

The source is optional. Without an API key and channel id it yields an empty
result, which is not an error.
"""

from html import unescape
from typing import List, Optional, Sequence

from loguru import logger

from core.exceptions import ExtractionError
from models.article import CandidateLink, SkipRecord, SourceResult
from services.scraper.http_client import HttpClient
from services.scraper.text import sanitize_title

from .config_loader import SourceConfig
from .link_filter import is_bad_title, matches_keywords

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


class YouTubeChannelSource:
    def __init__(
        self,
        name: str,
        config: SourceConfig,
        http: HttpClient,
        max_items: int,
        api_key: Optional[str],
        channel_id: Optional[str],
        keywords: Optional[Sequence[str]] = None,
    ):
        self.name = name
        self.config = config
        self.http = http
        self.max_items = min(max_items, config.max_items) if config.max_items else max_items
        self.api_key = api_key
        self.channel_id = channel_id
        self.keywords = list(keywords) if (keywords is not None and config.keyword_gated) else None

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.channel_id)

    async def extract(self) -> SourceResult:
        if not self.configured:
            logger.debug(f"{self.name}: no API key/channel configured, skipping")
            return SourceResult(source=self.name)

        params = {
            "part": "snippet",
            "channelId": self.channel_id,
            "order": "date",
            "type": "video",
            "maxResults": min(self.max_items, 50),
            "key": self.api_key,
        }
        try:
            data = await self.http.get_json(self.config.base_url, params=params)
        except Exception as exc:
            logger.warning(f"{self.name}: API call failed: {exc}")
            return SourceResult.failed(self.name, self.config.base_url, str(exc) or type(exc).__name__)
        try:
            return self.parse(data)
        except ExtractionError as exc:
            logger.warning(exc.message)
            return SourceResult.failed(self.name, self.config.base_url, exc.message)
        except Exception as exc:
            logger.exception(f"{self.name}: could not parse API response")
            return SourceResult.failed(self.name, self.config.base_url, str(exc) or type(exc).__name__)

    def parse(self, data: dict) -> SourceResult:
        if not isinstance(data, dict) or "error" in data:
            raise ExtractionError(self.name, "unexpected API response")
        results: List[CandidateLink] = []
        skipped: List[SkipRecord] = []
        seen = set()

        for item in data.get("items") or []:
            if len(results) >= self.max_items:
                break
            if not isinstance(item, dict):
                continue
            ident = item.get("id")
            snippet = item.get("snippet")
            video_id = ident.get("videoId") if isinstance(ident, dict) else None
            raw_title = snippet.get("title") if isinstance(snippet, dict) else None
            title = sanitize_title(unescape(raw_title if isinstance(raw_title, str) else ""))
            href = WATCH_URL.format(video_id=video_id) if isinstance(video_id, str) and video_id else None

            if not href:
                reason = "invalid-href"
            elif is_bad_title(title):
                reason = "bad-title"
            elif self.keywords is not None and not matches_keywords(title, self.keywords):
                reason = "off-topic"
            elif href in seen:
                reason = "dup-in-page"
            else:
                reason = None

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

        return SourceResult(source=self.name, results=results, skipped=skipped)
