# services/sources/registry.py
from typing import Iterable, List, Optional, Union

from loguru import logger

from core.config import Settings
from services.scraper.http_client import HttpClient

from .config_loader import get_source_config, load_sources
from .extractor import SourceExtractor
from .youtube import YouTubeChannelSource

Extractor = Union[SourceExtractor, YouTubeChannelSource]


def build_extractors(
    settings: Settings,
    http: HttpClient,
    only: Optional[Iterable[str]] = None,
) -> List[Extractor]:
    """
    Instantiate one extractor per enabled source descriptor.

    Video sources are dropped when ``VIDEO_SOURCES_ENABLED`` is off; ``only``
    restricts the set to the named sources and raises ``SourceNotFoundError``
    for a name missing from the catalogue.
    """
    wanted = set(only) if only else None
    for name in sorted(wanted or ()):
        get_source_config(name)
    extractors: List[Extractor] = []

    for name, cfg in load_sources().sources.items():
        if wanted is not None and name not in wanted:
            continue
        if not cfg.enabled:
            continue
        if cfg.video and not settings.VIDEO_SOURCES_ENABLED:
            logger.debug(f"Video sources disabled, skipping {name}")
            continue

        if cfg.kind == "youtube":
            extractors.append(
                YouTubeChannelSource(
                    name,
                    cfg,
                    http,
                    max_items=settings.MAX_PER_SOURCE,
                    api_key=settings.YOUTUBE_API_KEY,
                    channel_id=settings.YOUTUBE_CHANNEL_ID,
                    keywords=settings.video_keywords,
                )
            )
        else:
            extractors.append(
                SourceExtractor(
                    name,
                    cfg,
                    http,
                    max_items=settings.MAX_PER_SOURCE,
                    keywords=settings.video_keywords,
                )
            )

    logger.info(f"Configured {len(extractors)} source(s): {[e.name for e in extractors]}")
    return extractors
