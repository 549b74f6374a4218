"""Servicio de telemetría de bancos (composition root).

Conecta registro, vista agregada, hub de suscripciones, ingestor y buffer
asíncrono, y expone la API de consulta usada por la capa UI/observadores.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from common.config import Settings, get_settings
from .core.aggregates import AggregatePoint, AggregateView, MetricFamily
from .core.models import BenchRecord
from .core.registry import BenchRegistry
from .core.subscriptions import SubscriberCallback, SubscriptionHandle, SubscriptionHub
from .ingest.async_processor import AsyncEventProcessor
from .ingest.backpressure_config import BackpressureConfig
from .ingest.ingestor import EventIngestor, IngestResult
from .ingest.physical_ranges import PlausibilityLimits

logger = logging.getLogger(__name__)


class BenchTelemetryService:
    """Fachada del núcleo de agregación.

    Uso:
        service = BenchTelemetryService()
        service.ingest({"bench_id": 1, "port": "COM 4", "voltage": 12.1, ...})
        service.get_aggregate("voltage")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        limits: Optional[PlausibilityLimits] = None,
        backpressure: Optional[BackpressureConfig] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = BenchRegistry()
        self.aggregates = AggregateView(self.registry)
        self.hub = SubscriptionHub(timeout_seconds=self.settings.notify_timeout_seconds)
        self.ingestor = EventIngestor(
            self.registry,
            self.hub,
            port_pattern=self.settings.port_pattern,
            limits=limits or PlausibilityLimits.from_env(),
        )
        self.processor = AsyncEventProcessor(
            self.ingestor,
            backpressure or BackpressureConfig.from_env(),
        )

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.processor.start()

    def stop(self, drain: bool = True) -> None:
        self.processor.stop(drain=drain)
        self.hub.close()
        logger.info("[SERVICE] Stopped with %d benches registered", len(self.registry))

    # ------------------------------------------------------------------
    # Ingesta
    # ------------------------------------------------------------------

    def ingest(self, raw_event: Any) -> IngestResult:
        return self.ingestor.ingest(raw_event)

    def ingest_batch(self, raw_events: list[Any]) -> list[IngestResult]:
        return self.ingestor.ingest_batch(raw_events)

    def submit(self, raw_event: Any, block: bool = False, timeout: Optional[float] = None) -> None:
        self.processor.submit(raw_event, block=block, timeout=timeout)

    def disconnect(self, bench_id: int) -> IngestResult:
        return self.ingestor.disconnect(bench_id)

    # ------------------------------------------------------------------
    # Consultas
    # ------------------------------------------------------------------

    def get_bench(self, bench_id: int) -> Optional[BenchRecord]:
        return self.registry.get(bench_id)

    def list_benches(self) -> tuple[BenchRecord, ...]:
        return self.registry.snapshot_all()

    def get_aggregate(self, metric_family: Union[str, MetricFamily]) -> tuple[AggregatePoint, ...]:
        return self.aggregates.get(metric_family)

    def get_temperatures(self) -> dict[str, tuple[AggregatePoint, ...]]:
        return self.aggregates.temperatures_by_sensor()

    # ------------------------------------------------------------------
    # Suscripciones
    # ------------------------------------------------------------------

    def subscribe(self, callback: SubscriberCallback, name: Optional[str] = None) -> SubscriptionHandle:
        return self.hub.subscribe(callback, name=name)

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        return self.hub.unsubscribe(handle)

    def stats(self) -> dict:
        return {
            "benches": len(self.registry),
            "registry_version": self.registry.version,
            "ingestor": self.ingestor.stats,
            "queue": self.processor.metrics,
            "aggregates": self.aggregates.stats,
            "subscriptions": self.hub.stats,
        }


# Singleton por proceso
_service: Optional[BenchTelemetryService] = None


def get_service() -> BenchTelemetryService:
    """Obtiene el servicio singleton."""
    global _service
    if _service is None:
        _service = BenchTelemetryService()
    return _service


def reset_service() -> None:
    """Resetea el servicio (tests)."""
    global _service
    if _service is not None:
        _service.stop(drain=False)
    _service = None
