# tests/test_config_loader.py
"""
Tests for ``services.sources.config_loader``.

The loader returns validated Pydantic models, so the tests use attribute
access (e.g. ``cfg.rules.domain_pattern``).
"""

import pydantic
import pytest

from core.exceptions import SourceNotFoundError
from services.sources.config_loader import (
    SourceConfig,
    get_source_config,
    list_available_sources,
    load_sources,
)


# ----------------------------------------------------------------------
# Every HTML source needs link rules and at least one selector tier.
# ----------------------------------------------------------------------
def test_all_html_sources_have_rules_and_tiers():
    for name in list_available_sources():
        cfg: SourceConfig = get_source_config(name)
        if cfg.kind != "html":
            continue
        assert cfg.rules is not None, f"{name} missing rules"
        assert cfg.tiers, f"{name} missing selector tiers"
        assert all(tier.css for tier in cfg.tiers), f"{name} has an empty tier"


def test_shipped_catalogue():
    names = list_available_sources()
    for expected in ("lemonde_planete", "natgeo_environment", "bbc_science_environment"):
        assert expected in names

    lemonde = get_source_config("lemonde_planete")
    assert isinstance(lemonde, SourceConfig)
    assert lemonde.lang == "fr"
    assert get_source_config("natgeo_environment").lang == "en"

    video = get_source_config("lemonde_videos")
    assert video.video and video.keyword_gated

    youtube = get_source_config("youtube_channel")
    assert youtube.kind == "youtube"


# ----------------------------------------------------------------------
# Unknown source must raise the domain-specific error.
# ----------------------------------------------------------------------
def test_unknown_source_raises_custom_error():
    unknown_name = "this_source_does_not_exist_12345"
    with pytest.raises(SourceNotFoundError) as exc_info:
        get_source_config(unknown_name)

    assert unknown_name in str(exc_info.value)
    assert exc_info.value.source_name == unknown_name


def test_load_from_explicit_path(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text(
        """
sources:
  tiny:
    base_url: "https://tiny.example/news/"
    lang: en
    rules:
      domain_pattern: 'tiny\\.example/'
    tiers:
      - name: all
        css: ["a[href]"]
""",
        encoding="utf-8",
    )
    catalogue = load_sources(path)
    assert list(catalogue.sources) == ["tiny"]
    assert catalogue.sources["tiny"].tiers[0].selector == "a[href]"


def test_invalid_regex_is_rejected(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text(
        """
sources:
  broken:
    base_url: "https://broken.example/"
    rules:
      domain_pattern: 'broken\\.example/('
""",
        encoding="utf-8",
    )
    with pytest.raises(pydantic.ValidationError):
        load_sources(path)


_SOURCE_PARAMS = [(name, ["base_url", "lang"]) for name in list_available_sources()[:3]]


@pytest.mark.parametrize("source_name,required_keys", _SOURCE_PARAMS)
def test_parametrized_sources(source_name, required_keys):
    cfg = get_source_config(source_name)
    for key in required_keys:
        assert getattr(cfg, key), f"{source_name} missing required field '{key}'"
