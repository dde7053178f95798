# services/pipeline/dedup.py
from typing import List, Sequence, Set

from models.article import CandidateLink
from services.scraper.text import domain_of, normalize_for_dedup


def dedup_key(link: CandidateLink) -> str:
    """``domain::normalized title`` – two links with the same key are one story."""
    return f"{domain_of(link.url)}::{normalize_for_dedup(link.title)}"


def deduplicate(links: Sequence[CandidateLink]) -> List[CandidateLink]:
    """
    Keep the first link of each story, in input order.

    A link is dropped when its dedup key or its exact URL was already seen.
    Pure and idempotent.
    """
    seen_keys: Set[str] = set()
    seen_urls: Set[str] = set()
    kept: List[CandidateLink] = []
    for link in links:
        key = dedup_key(link)
        if key in seen_keys or link.url in seen_urls:
            continue
        seen_keys.add(key)
        seen_urls.add(link.url)
        kept.append(link)
    return kept
