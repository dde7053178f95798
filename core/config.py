# core/config.py
"""
Process-wide settings for the EcoScope scraper.

Values come from the environment (or a local ``.env`` file) and are frozen
once the process has started: HTTP timeouts, proxy and user-agent are shared
by every outbound request, so nothing mutates them mid-run.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_VIDEO_KEYWORDS = (
    "climat,climate,environnement,environment,biodiversit,pollution,"
    "énergie,energy,écolog,ecolog,forêt,forest,océan,ocean,eau,water,"
    "sécheresse,drought,incendie,wildfire,espèce,species,nature,planète,planet"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Service bootstrap
    # ------------------------------------------------------------------
    PROJECT_NAME: str = "EcoScope Scraper"
    PORT: int = 5002
    DEBUG: bool = False
    WORKERS: int = 1
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ------------------------------------------------------------------
    # Content API (external collaborator)
    # ------------------------------------------------------------------
    API_BASE_URL: str = "http://127.0.0.1:5001"
    NEWS_ENDPOINT: str = "/api/news"
    CATEGORIES_ENDPOINT: str = "/api/categories"

    # ------------------------------------------------------------------
    # Volume limits
    # ------------------------------------------------------------------
    ENRICH_CAP: int = 30
    MAX_PER_SOURCE: int = 30

    # ------------------------------------------------------------------
    # Concurrency & politeness
    # ------------------------------------------------------------------
    ENRICH_CONCURRENCY: int = 4
    POST_CONCURRENCY: int = 4
    BATCH_DELAY_MS: int = 750
    POST_THROTTLE_MS: int = 0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    REQUEST_TIMEOUT: float = 12.0
    ENRICH_TIMEOUT: float = 9.0
    POST_TIMEOUT: float = 12.0
    FETCH_MAX_ATTEMPTS: int = 2
    FETCH_RETRY_DELAY_MS: int = 500
    POST_MAX_ATTEMPTS: int = 3
    POST_BASE_DELAY_MS: int = 500
    POST_MAX_RETRY_AFTER_S: float = 120.0
    HTTP_PROXY: Optional[str] = None
    DEFAULT_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36 EcoScopeScraper/1.1"
    )
    ACCEPT_LANGUAGE: str = "fr,en;q=0.8"

    # ------------------------------------------------------------------
    # Video sources
    # ------------------------------------------------------------------
    VIDEO_SOURCES_ENABLED: bool = True
    VIDEO_KEYWORDS: str = DEFAULT_VIDEO_KEYWORDS
    YOUTUBE_API_KEY: Optional[str] = None
    YOUTUBE_CHANNEL_ID: Optional[str] = None

    # ------------------------------------------------------------------
    # Categories & scheduling
    # ------------------------------------------------------------------
    CATEGORY_SYNC_HOURS: float = 6.0
    SOURCES_FILE: Optional[str] = None
    ENABLE_SCHEDULE: bool = False
    SCRAPE_INTERVAL_MINUTES: int = 30

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    @property
    def news_url(self) -> str:
        return self.API_BASE_URL.rstrip("/") + self.NEWS_ENDPOINT

    @property
    def categories_url(self) -> str:
        return self.API_BASE_URL.rstrip("/") + self.CATEGORIES_ENDPOINT

    @property
    def video_keywords(self) -> List[str]:
        return [k.strip().lower() for k in self.VIDEO_KEYWORDS.split(",") if k.strip()]

    @property
    def scrape_interval_minutes(self) -> int:
        """Scheduled interval, clamped to 15–30 minutes (30 when out of range)."""
        minutes = self.SCRAPE_INTERVAL_MINUTES
        return minutes if 15 <= minutes <= 30 else 30


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
