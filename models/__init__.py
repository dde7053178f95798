from .article import (
    ArticlePayload,
    CandidateLink,
    EnrichedMeta,
    SkipRecord,
    SourceResult,
)
from .run_metrics import RunMetrics, RunPhase, percentile

__all__ = [
    'ArticlePayload',
    'CandidateLink',
    'EnrichedMeta',
    'SkipRecord',
    'SourceResult',
    'RunMetrics',
    'RunPhase',
    'percentile',
]
