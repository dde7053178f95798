# services/delivery/payload.py
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from core.exceptions import ValidationError, ValidationErrorKind
from models.article import ArticlePayload
from services.categories.allow_list import CategorySnapshot
from services.categories.classifier import DEFAULT_CATEGORY, infer_category
from services.scraper.text import sanitize_title

MIN_FIELD_LENGTH = 5
FALLBACK_CONTENT = "Article"
VALID_LANGS = ("fr", "en")


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_published_at(value: Optional[str]) -> Optional[str]:
    """ISO-8601 or RFC-2822 date string → ISO-8601 UTC, or ``None``."""
    if not value:
        return None
    value = value.strip()
    try:
        return _iso(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return _iso(parsedate_to_datetime(value))
    except (TypeError, ValueError):
        return None


def build_payload(
    title: str,
    url: Optional[str],
    lang: Optional[str] = "fr",
    category: Optional[str] = None,
    content: Optional[str] = "",
    image_url: Optional[str] = None,
    published_at: Optional[str] = None,
    categories: Optional[CategorySnapshot] = None,
) -> ArticlePayload:
    """
    Assemble the document POSTed to the content API.

    ``content`` falls back to the title, then to ``"Article"``. The category is
    the source's own label when it has one, otherwise inferred from the title,
    and is then normalized against the allow-list snapshot.
    """
    clean_title = sanitize_title(title)
    body = sanitize_title(content) or clean_title or FALLBACK_CONTENT
    raw_category = category or infer_category(clean_title)
    if categories is not None:
        final_category = categories.normalize(raw_category)
    else:
        final_category = raw_category or DEFAULT_CATEGORY

    return ArticlePayload(
        title=clean_title,
        content=body,
        lang=lang if lang in VALID_LANGS else "fr",
        category=final_category,
        image_url=image_url or None,
        author=None,
        published_at=parse_published_at(published_at) or _iso(datetime.now(timezone.utc)),
        source_url=url,
    )


def validate(payload: ArticlePayload) -> None:
    """Raise ``ValidationError`` if the payload cannot be sent as is."""
    for field in ("title", "content", "source_url", "category"):
        if not getattr(payload, field):
            alias = ArticlePayload.model_fields[field].alias or field
            raise ValidationError(ValidationErrorKind.MISSING_FIELD, alias)
    if len(payload.title.strip()) < MIN_FIELD_LENGTH:
        raise ValidationError(ValidationErrorKind.TITLE_TOO_SHORT, "title")
    if len(payload.content.strip()) < MIN_FIELD_LENGTH:
        raise ValidationError(ValidationErrorKind.CONTENT_TOO_SHORT, "content")
