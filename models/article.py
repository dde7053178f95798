# models/article.py
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Lang = Literal["fr", "en"]


class CandidateLink(BaseModel):
    """A (title, url, lang) tuple produced by a source extractor."""

    title: str
    url: str
    lang: Lang = "fr"
    category: Optional[str] = None
    source: Optional[str] = None


class SkipRecord(BaseModel):
    """Why a link was rejected. Only ever logged, never persisted."""

    title: str = ""
    href: Optional[str] = None
    reason: str
    source: Optional[str] = None


class SourceResult(BaseModel):
    """Uniform extractor output: accepted links plus the rejected ones."""

    source: str
    results: List[CandidateLink] = Field(default_factory=list)
    skipped: List[SkipRecord] = Field(default_factory=list)

    @classmethod
    def failed(cls, source: str, href: Optional[str], message: str) -> "SourceResult":
        return cls(
            source=source,
            skipped=[SkipRecord(href=href, reason=f"error:{message}", source=source)],
        )


class EnrichedMeta(BaseModel):
    """
    Metadata scraped from an article's own page.

    An empty ``content`` means extraction failed or produced too little text;
    the payload then falls back to the title.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: str = ""
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    published_at: Optional[str] = Field(default=None, alias="publishedAt")


class ArticlePayload(BaseModel):
    """The JSON document POSTed to the content API."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    content: str = ""
    lang: Lang = "fr"
    category: str = ""
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    author: Optional[str] = None
    published_at: str = Field(default="", alias="publishedAt")
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")

    def to_api_dict(self) -> dict:
        """Serialise with the camelCase keys the content API expects."""
        return self.model_dump(by_alias=True)
