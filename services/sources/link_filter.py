# services/sources/link_filter.py
import re
from typing import Iterable, List, Optional, Set
from urllib.parse import urlparse

from services.scraper.text import sanitize_title

from .config_loader import LinkRules

MIN_TITLE_LENGTH = 5

# Navigation / boilerplate phrases. Single words are matched on word
# boundaries: "search" is rejected, "research" is not.
BAD_TITLE_RX = re.compile(
    "|".join(
        [
            r"\bhome\b",
            r"\bmenu\b",
            r"more menu",
            r"close menu",
            r"skip to content",
            r"\bfooter\b",
            r"\bsubscribe\b",
            r"sign in",
            r"log ?in",
            r"\bcookies?\b",
            r"\bconsent\b",
            r"\bsearch\b",
            r"next page",
            r"\bpagination\b",
            r"\bs'abonner\b",
            r"\bse connecter\b",
            r"page suivante",
        ]
    ),
    re.IGNORECASE,
)


def is_bad_title(title: Optional[str]) -> bool:
    """True for empty/short titles and navigation or boilerplate labels."""
    t = sanitize_title(title).lower()
    if len(t) < MIN_TITLE_LENGTH:
        return True
    return bool(BAD_TITLE_RX.search(t))


class LinkFilter:
    """
    Validates candidate article links for one source.

    Rules are checked in a fixed order and the first failing rule names the
    skip reason: domain, excluded sections, anchors, section, article path,
    title, keyword gate, then the per-page seen set.
    """

    def __init__(self, rules: LinkRules, keywords: Optional[Iterable[str]] = None):
        # matched from the start of host/path, at a label boundary of the host
        self.domain_rx = re.compile(rf"(?:[\w-]+\.)*(?:{rules.domain_pattern})", re.IGNORECASE)
        self.section_rx = re.compile(rules.section_pattern, re.IGNORECASE) if rules.section_pattern else None
        self.article_rx = re.compile(rules.article_pattern, re.IGNORECASE) if rules.article_pattern else None
        self.exclude_rxs: List[re.Pattern] = [re.compile(p, re.IGNORECASE) for p in rules.exclude_patterns]
        self.reject_fragments = rules.reject_fragments
        self.keywords = [k.lower() for k in keywords] if keywords is not None else None

    def rejection_reason(self, title: str, href: Optional[str], seen: Set[str]) -> Optional[str]:
        """
        Return the skip reason for this link, or ``None`` when it is accepted.
        ``seen`` is the page-wide set of accepted absolute URLs; it is not
        modified here.
        """
        if not href:
            return "invalid-href"
        if not self.domain_rx.match(host_and_path(href)):
            return "off-domain"
        if any(rx.search(href) for rx in self.exclude_rxs):
            return "non-article-section"
        if self.reject_fragments and "#" in href:
            return "anchor"
        if self.section_rx and not self.section_rx.search(href):
            return "off-section"
        if self.article_rx and not self.article_rx.search(href):
            return "non-article"
        if is_bad_title(title):
            return "bad-title"
        if self.keywords is not None and not matches_keywords(title, self.keywords):
            return "off-topic"
        if href in seen:
            return "dup-in-page"
        return None


def host_and_path(href: str) -> str:
    """``host/path`` of ``href``; query string and fragment are left out."""
    try:
        parts = urlparse(href)
    except ValueError:
        return ""
    return f"{(parts.hostname or '').lower()}{parts.path}"


def matches_keywords(title: str, keywords: Iterable[str]) -> bool:
    lowered = (title or "").lower()
    return any(k in lowered for k in keywords)
