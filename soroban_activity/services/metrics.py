from prometheus_client import Counter, Histogram

STATS_REQUESTS = Counter(
    'contract_stats_requests_total',
    'Total number of contract statistics computations'
)
STATS_DURATION = Histogram(
    'contract_stats_duration_seconds',
    'Time spent computing contract statistics'
)
SOURCE_FAILURES = Counter(
    'contract_source_failures_total',
    'Failed calls to upstream ledger and event sources',
    ['source']
)
DROPPED_EVENTS = Counter(
    'contract_events_dropped_total',
    'Events dropped because they carried no usable timestamp'
)
