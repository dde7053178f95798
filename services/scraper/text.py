# services/scraper/text.py
"""
Text helpers shared by extraction, dedup and enrichment.

None of these functions raise: malformed input yields an empty string (or
``None`` for URL resolution) so a single odd anchor never aborts a page scan.
"""

import re
from typing import Optional
from urllib.parse import urljoin, urlparse

_WHITESPACE_RX = re.compile(r"\s+")
_SCHEME_RX = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")

# Quotes, dashes, colons, brackets and sentence punctuation.
_DEDUP_PUNCTUATION_RX = re.compile(
    r"[\"'`´‘’‚“”„«»‹›\-‐‑‒–—―:;,.!?¡¿…()\[\]{}<>/\\|*_~#+=&%$@^]"
)


def sanitize_title(text: Optional[str]) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_RX.sub(" ", text or "").strip()


def normalize_for_dedup(text: Optional[str]) -> str:
    """
    Lowercase, strip punctuation and collapse whitespace.

    Punctuation is replaced by a space rather than deleted so that
    "semi-final" and "semi final" normalise identically. Idempotent.
    """
    lowered = sanitize_title(text).lower()
    return sanitize_title(_DEDUP_PUNCTUATION_RX.sub(" ", lowered))


def domain_of(url: Optional[str]) -> str:
    """Hostname without a leading ``www.``; empty string when unparsable."""
    try:
        host = (urlparse(url or "").hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def resolve_url(href: Optional[str], base: str) -> Optional[str]:
    """Absolute URL for ``href`` relative to ``base``; ``None`` if it cannot be resolved."""
    href = (href or "").strip()
    if not href:
        return None
    if _SCHEME_RX.match(href):
        return href
    try:
        return urljoin(base, href)
    except ValueError:
        return None
