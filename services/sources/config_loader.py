# services/sources/config_loader.py
"""
Loads the source descriptors from ``configs/sources.yaml`` and validates them
with Pydantic models. The file contains a top-level ``sources`` key mapping
source names to descriptors.

Public API:
* ``get_source_config(name)`` – returns a validated ``SourceConfig`` or
  raises ``SourceNotFoundError``.
* ``list_available_sources()`` – convenience helper for CLI/scripts.
* ``load_sources(path)`` – the whole catalogue, in file order.
"""

import re
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from core.config import get_settings
from core.exceptions import SourceNotFoundError


# ----------------------------------------------------------------------
# Pydantic schemas – runtime validation with readable error messages
# ----------------------------------------------------------------------
class SelectorTier(BaseModel):
    """One extraction pass: CSS selectors tried together, in document order."""
    name: str
    css: List[str] = Field(min_length=1)

    @property
    def selector(self) -> str:
        return ", ".join(self.css)


class LinkRules(BaseModel):
    """Acceptance rules applied to every candidate anchor of a source."""
    domain_pattern: str
    section_pattern: Optional[str] = None
    article_pattern: Optional[str] = None
    exclude_patterns: List[str] = Field(default_factory=list)
    reject_fragments: bool = True

    @field_validator("domain_pattern", "section_pattern", "article_pattern")
    @classmethod
    def _validate_regex(cls, pattern: Optional[str]) -> Optional[str]:
        if pattern is not None:
            _compile(pattern)
        return pattern

    @field_validator("exclude_patterns")
    @classmethod
    def _validate_regex_list(cls, patterns: List[str]) -> List[str]:
        for pattern in patterns:
            _compile(pattern)
        return patterns


class SourceConfig(BaseModel):
    """Complete descriptor for a single source."""
    kind: Literal["html", "youtube"] = "html"
    base_url: str
    lang: Literal["fr", "en"] = "fr"
    max_items: Optional[int] = Field(default=None, ge=1)
    enabled: bool = True
    video: bool = False
    keyword_gated: bool = False
    category: Optional[str] = None
    rules: Optional[LinkRules] = None
    tiers: List[SelectorTier] = Field(default_factory=list)


class AllSources(BaseModel):
    """Top-level container – maps source name → its descriptor."""
    sources: Dict[str, SourceConfig]


def _compile(pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid regex pattern '{pattern}': {exc}") from exc


# ----------------------------------------------------------------------
# Internal helpers & caching
# ----------------------------------------------------------------------
# Resolve the path relative to this file (two levels up → project root)
CONFIG_PATH = Path(__file__).resolve().parents[2] / "configs" / "sources.yaml"

_cached_all: Optional[AllSources] = None


def _config_path() -> Path:
    override = get_settings().SOURCES_FILE
    return Path(override) if override else CONFIG_PATH


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
        return raw.get("sources", raw)


def load_sources(path: Optional[Path] = None) -> AllSources:
    """
    Parse the YAML and validate it against ``AllSources``. Without an explicit
    ``path`` the result is cached for the lifetime of the process.
    """
    global _cached_all
    if path is not None:
        return AllSources(sources=_load_yaml(Path(path)))
    if _cached_all is None:
        _cached_all = AllSources(sources=_load_yaml(_config_path()))
    return _cached_all


def reset_cache() -> None:
    global _cached_all
    _cached_all = None


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------
def get_source_config(source_name: str) -> SourceConfig:
    """
    Return a **validated** ``SourceConfig`` for the requested source.

    Raises
    ------
    SourceNotFoundError
        If the source name is not present in the YAML.
    pydantic.ValidationError
        If the YAML exists but does not conform to the schema.
    """
    all_cfg = load_sources()
    try:
        return all_cfg.sources[source_name]
    except KeyError as exc:
        raise SourceNotFoundError(source_name) from exc


def list_available_sources() -> List[str]:
    return list(load_sources().sources.keys())
