"""Core - Núcleo de agregación de telemetría.

Estructura:
- models.py         → BenchRecord, BenchUpdate, AppliedChange
- state_machine.py  → Transiciones válidas de state/status
- registry.py       → BenchRegistry (fuente única de verdad)
- aggregates.py     → AggregateView (series por métrica, cacheadas)
- subscriptions.py  → SubscriptionHub (notificación a observadores)
- errors.py         → Taxonomía de errores de ingesta
"""

from .aggregates import AggregatePoint, AggregateView, MetricFamily
from .errors import (
    Backpressure,
    IngestError,
    InvalidTransition,
    MalformedEvent,
    OutOfRange,
    RegistryInvariantError,
    UnknownBench,
)
from .models import AppliedChange, BenchRecord, BenchState, BenchUpdate, CompletionStatus
from .registry import BenchRegistry, RegistrySnapshot
from .subscriptions import ChangeNotification, SubscriptionHandle, SubscriptionHub

__all__ = [
    "AggregatePoint",
    "AggregateView",
    "MetricFamily",
    "Backpressure",
    "IngestError",
    "InvalidTransition",
    "MalformedEvent",
    "OutOfRange",
    "RegistryInvariantError",
    "UnknownBench",
    "AppliedChange",
    "BenchRecord",
    "BenchState",
    "BenchUpdate",
    "CompletionStatus",
    "BenchRegistry",
    "RegistrySnapshot",
    "ChangeNotification",
    "SubscriptionHandle",
    "SubscriptionHub",
]
