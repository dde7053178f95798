# tests/test_payload.py
import pytest

from core.exceptions import ValidationError, ValidationErrorKind
from models.article import ArticlePayload
from services.categories.allow_list import CategoryAllowList
from services.delivery.payload import build_payload, parse_published_at, validate

URL = "https://a.example/article/1"


def test_content_falls_back_to_title():
    payload = build_payload(title="T", url=URL, content="")
    assert payload.content == "T"


def test_content_falls_back_to_literal_when_title_empty():
    payload = build_payload(title="", url=URL)
    assert payload.content == "Article"


def test_defaults_and_api_shape():
    payload = build_payload(title="Climate report released", url=URL, lang="de")
    body = payload.to_api_dict()

    assert body["lang"] == "fr"
    assert body["author"] is None
    assert body["imageUrl"] is None
    assert body["sourceUrl"] == URL
    assert body["publishedAt"].endswith("Z")
    assert set(body) == {"title", "content", "lang", "category", "imageUrl", "author", "publishedAt", "sourceUrl"}


def test_category_is_normalized_against_snapshot():
    allow = CategoryAllowList(["Eau et assainissement", "Changement climatique"], "Changement climatique")

    water = build_payload(title="Drought empties reservoirs", url=URL, categories=allow.snapshot())
    assert water.category == "Eau et assainissement"

    unknown = build_payload(title="Drought empties reservoirs", url=URL, category="Vidéos", categories=allow.snapshot())
    assert unknown.category == "Changement climatique"


def test_enriched_fields_are_kept():
    payload = build_payload(
        title="Climate report released",
        url=URL,
        lang="en",
        content="A long description of the climate report findings.",
        image_url="https://a.example/img.jpg",
        published_at="2024-05-01T10:00:00+02:00",
    )
    assert payload.lang == "en"
    assert payload.content.startswith("A long description")
    assert payload.image_url == "https://a.example/img.jpg"
    assert payload.published_at == "2024-05-01T08:00:00Z"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2024-05-01T10:00:00Z", "2024-05-01T10:00:00Z"),
        ("Wed, 01 May 2024 10:00:00 GMT", "2024-05-01T10:00:00Z"),
        ("2024-05-01", "2024-05-01T00:00:00Z"),
        ("yesterday", None),
        ("", None),
    ],
)
def test_parse_published_at(raw, expected):
    assert parse_published_at(raw) == expected


def _payload(**overrides) -> ArticlePayload:
    values = dict(
        title="Climate report released",
        content="Climate report released",
        lang="en",
        category="Changement climatique",
        source_url=URL,
    )
    values.update(overrides)
    return ArticlePayload(**values)


def test_validate_accepts_complete_payload():
    validate(_payload())


@pytest.mark.parametrize(
    "overrides,kind,field",
    [
        ({"title": ""}, ValidationErrorKind.MISSING_FIELD, "title"),
        ({"content": ""}, ValidationErrorKind.MISSING_FIELD, "content"),
        ({"source_url": None}, ValidationErrorKind.MISSING_FIELD, "sourceUrl"),
        ({"category": ""}, ValidationErrorKind.MISSING_FIELD, "category"),
        ({"title": "Hi"}, ValidationErrorKind.TITLE_TOO_SHORT, "title"),
        ({"content": "abc"}, ValidationErrorKind.CONTENT_TOO_SHORT, "content"),
    ],
)
def test_validate_rejects(overrides, kind, field):
    with pytest.raises(ValidationError) as exc_info:
        validate(_payload(**overrides))
    assert exc_info.value.kind is kind
    assert exc_info.value.field == field
