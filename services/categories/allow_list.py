# services/categories/allow_list.py
"""
Category allow-list shared for the lifetime of the process.

The list starts from a built-in fallback and is replaced wholesale each time
the content API's categories endpoint answers. Readers take a snapshot and
keep using it; a sync swaps the snapshot reference in one assignment, so a
reader never sees a half-updated set.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, Iterable, Optional

from loguru import logger

from services.scraper.http_client import HttpClient

from .classifier import DEFAULT_CATEGORY, normalize_category

FALLBACK_CATEGORIES = (
    "Changement climatique",
    "Résilience climatique Afrique",
    "Économie circulaire",
    "Économie bleue",
    "Économie verte",
    "Startups vertes",
    "Numérique responsable",
    "IA & environnement",
    "Objectifs de Développement Durable (ODD)",
    "Développement durable",
    "Programmes gratuits (MOOCs, bourses, séminaires, conférences)",
    "Écotourisme",
    "Risques naturels",
    "Catastrophes naturelles",
    "Prévention des risques",
    "Déforestation & Bassin du Congo",
    "Biodiversité (Bassin du Congo)",
    "Conservation communautaire au Cameroun",
    "Politiques environnementales régionales",
    "Transition énergétique (Afrique centrale)",
    "COP & négociations climatiques",
    "Justice climatique",
    "Innovations technologiques vertes",
    "Santé environnementale",
    "Eau et assainissement",
    "Pollution et santé environnementale",
    "Transition énergétique",
    "Agriculture et alimentation",
)


@dataclass(frozen=True)
class CategorySnapshot:
    categories: FrozenSet[str]
    default: str
    synced_at: Optional[datetime] = None
    source: str = "fallback"

    def normalize(self, raw_label: Optional[str]) -> str:
        return normalize_category(raw_label, sorted(self.categories), self.default)

    def to_dict(self) -> dict:
        return {
            "categories": sorted(self.categories),
            "defaultCategory": self.default,
            "syncedAt": self.synced_at.isoformat() if self.synced_at else None,
            "source": self.source,
        }


class CategoryAllowList:
    """Holder of the current ``CategorySnapshot``."""

    def __init__(
        self,
        categories: Iterable[str] = FALLBACK_CATEGORIES,
        default: str = DEFAULT_CATEGORY,
    ):
        self._snapshot = CategorySnapshot(frozenset(categories), default)

    def snapshot(self) -> CategorySnapshot:
        return self._snapshot

    def replace(self, categories: Iterable[str], default: str, source: str = "api") -> CategorySnapshot:
        snapshot = CategorySnapshot(
            categories=frozenset(c for c in categories if c),
            default=default,
            synced_at=datetime.now(timezone.utc),
            source=source,
        )
        self._snapshot = snapshot
        return snapshot

    def normalize(self, raw_label: Optional[str]) -> str:
        return self._snapshot.normalize(raw_label)


@dataclass
class CategorySync:
    """
    Keeps a ``CategoryAllowList`` in step with ``GET {categories_url}``.

    ``start()`` runs an initial sync immediately and then one every
    ``interval_hours`` until ``stop()`` is called.
    """

    allow_list: CategoryAllowList
    http: HttpClient
    url: str
    interval_hours: float = 6.0
    _task: Optional[asyncio.Task] = field(default=None, init=False, repr=False)

    async def sync(self) -> bool:
        """One refresh; on any failure the current snapshot is left untouched."""
        try:
            data = await self.http.get_json(self.url)
            categories = data.get("categories") if isinstance(data, dict) else None
            if not isinstance(categories, list) or not categories:
                raise ValueError("response has no 'categories' list")
            default = data.get("defaultCategory") or self.allow_list.snapshot().default
            snapshot = self.allow_list.replace(
                [str(c).strip() for c in categories if isinstance(c, str)], str(default)
            )
        except Exception as exc:
            logger.warning(f"Category sync failed, keeping current allow-list: {exc}")
            return False
        logger.info(
            f"Category allow-list synced: {len(snapshot.categories)} categories, "
            f"default='{snapshot.default}'"
        )
        return True

    async def _loop(self) -> None:
        while True:
            await self.sync()
            await asyncio.sleep(self.interval_hours * 3600)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="category-sync")
        return self._task

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
