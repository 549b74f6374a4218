"""Prometheus metrics for bench telemetry ingestion.

Exposed by the /metrics endpoint. Labels are bounded (outcome codes,
failure reasons) so cardinality stays constant regardless of fleet size.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

EVENTS_TOTAL = Counter(
    "bench_events_total",
    "Bench events handled by the ingestor",
    ["outcome"],  # applied, unchanged, or an error code
)

NOTIFICATIONS_TOTAL = Counter(
    "bench_notifications_total",
    "Change notification batches sent to subscribers",
)

SUBSCRIBER_FAILURES = Counter(
    "bench_subscriber_failures_total",
    "Subscriber callbacks that raised, timed out or were skipped while busy",
    ["reason"],  # error, timeout, dropped
)

QUEUE_DEPTH = Gauge(
    "bench_ingest_queue_depth",
    "Events waiting in the ingestion buffer",
)

BACKPRESSURE_REJECTIONS = Counter(
    "bench_backpressure_rejections_total",
    "Submissions rejected because the ingestion buffer was full",
)

BENCHES_REGISTERED = Gauge(
    "bench_registered_benches",
    "Benches currently held by the registry",
)
