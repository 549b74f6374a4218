"""Metrics module for ingestion observability."""

from .ingestion_metrics import (
    BACKPRESSURE_REJECTIONS,
    BENCHES_REGISTERED,
    EVENTS_TOTAL,
    NOTIFICATIONS_TOTAL,
    QUEUE_DEPTH,
    SUBSCRIBER_FAILURES,
)

__all__ = [
    "BACKPRESSURE_REJECTIONS",
    "BENCHES_REGISTERED",
    "EVENTS_TOTAL",
    "NOTIFICATIONS_TOTAL",
    "QUEUE_DEPTH",
    "SUBSCRIBER_FAILURES",
]
