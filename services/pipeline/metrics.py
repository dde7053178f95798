# services/pipeline/metrics.py
from prometheus_client import Counter, Gauge, Histogram

# Run metrics
PIPELINE_RUNS = Counter('pipeline_runs_total', 'Total number of pipeline runs', ['status'])
PIPELINE_RUN_DURATION = Histogram(
    'pipeline_run_duration_seconds',
    'Wall-clock duration of a pipeline run',
    buckets=(5, 15, 30, 60, 120, 300, 600, 1200),
)
PIPELINE_ACTIVE = Gauge('pipeline_active', 'Whether a pipeline run is in progress')

# Extraction metrics
ARTICLES_EXTRACTED = Counter('articles_extracted_total', 'Candidate links accepted per source', ['source'])
ARTICLES_SKIPPED = Counter('articles_skipped_total', 'Candidate links rejected, by reason code', ['reason'])

# Enrichment metrics
ENRICHMENT_DURATION = Histogram(
    'enrichment_duration_seconds',
    'Time spent fetching article metadata',
    buckets=(0.1, 0.25, 0.5, 1, 2, 4, 9, 15),
)

# Delivery metrics
DELIVERIES = Counter('deliveries_total', 'Delivery outcomes', ['outcome'])
DELIVERY_RETRIES = Counter('delivery_retries_total', 'Delivery attempts that were retried')
