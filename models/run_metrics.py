# models/run_metrics.py
from __future__ import annotations

import math
from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Sequence

from pydantic import BaseModel, Field


# ----------------------------------------------------------------------
#  Run phases – strictly forward, one pass per invocation
# ----------------------------------------------------------------------
class RunPhase(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    DEDUPLICATING = "deduplicating"
    ENRICHING = "enriching"
    DELIVERING = "delivering"
    REPORTING = "reporting"
    DONE = "done"


PHASE_ORDER = list(RunPhase)


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile; 0 for an empty sample."""
    if not values:
        return 0.0
    ordered = sorted(values)
    idx = min(len(ordered) - 1, int(math.floor((p / 100.0) * len(ordered))))
    return float(ordered[idx])


# ----------------------------------------------------------------------
#  Per-run counters – logged at the end of a run, never persisted
# ----------------------------------------------------------------------
class RunMetrics(BaseModel):
    phase: RunPhase = RunPhase.IDLE
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    raw_count: int = 0
    skipped_count: int = 0
    skip_reasons: Dict[str, int] = Field(default_factory=dict)
    dedup_count: int = 0

    enrich_cap: int = 0
    enrich_count: int = 0
    enrich_avg_ms: float = 0.0
    enrich_p95_ms: float = 0.0

    post_ok: int = 0
    post_ko: int = 0
    total_ms: float = 0.0

    def advance(self, phase: RunPhase) -> None:
        """Move to a later phase; going backwards is a programming error."""
        if PHASE_ORDER.index(phase) < PHASE_ORDER.index(self.phase):
            raise ValueError(f"cannot go from {self.phase.value} back to {phase.value}")
        self.phase = phase

    def record_skips(self, reasons: Sequence[str]) -> None:
        """Tally reason codes; ``error:<msg>`` collapses into ``error``."""
        counts = Counter(r.split(":", 1)[0] for r in reasons)
        self.skipped_count += len(reasons)
        for reason, n in counts.items():
            self.skip_reasons[reason] = self.skip_reasons.get(reason, 0) + n

    def record_enrichment(self, timings_ms: Sequence[float]) -> None:
        self.enrich_count = len(timings_ms)
        self.enrich_avg_ms = round(sum(timings_ms) / len(timings_ms), 1) if timings_ms else 0.0
        self.enrich_p95_ms = round(percentile(timings_ms, 95), 1)
