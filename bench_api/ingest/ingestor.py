"""Ingestor de eventos de banco.

Flujo:
    evento crudo → validate_bench_event → BenchRegistry.apply_event
    → (invalidación de AggregateView en el commit) → SubscriptionHub.notify

GARANTÍAS:
- Los errores de validación/transición se devuelven en IngestResult,
  nunca se lanzan: el registro sigue usable tras cualquier rechazo.
- Re-ingerir un evento idéntico no cambia nada visible ni notifica.
- Eventos del mismo banco se aplican en el orden recibido.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..core.errors import IngestError, MalformedEvent
from ..core.models import AppliedChange
from ..core.registry import BenchRegistry
from ..core.subscriptions import SubscriptionHub
from ..metrics.ingestion_metrics import BENCHES_REGISTERED, EVENTS_TOTAL, NOTIFICATIONS_TOTAL
from .ingestor_stats import IngestorStats
from .physical_ranges import PlausibilityLimits
from .validators import validate_bench_event

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Resultado de ingerir un evento."""

    accepted: bool
    bench_id: Optional[int] = None
    change: Optional[AppliedChange] = None
    error: Optional[IngestError] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.change is not None and self.change.changed

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "bench_id": self.bench_id,
            "changed": self.changed,
            "error": self.error.to_dict() if self.error else None,
            "warnings": list(self.warnings),
        }


class EventIngestor:
    """Valida eventos crudos y los aplica al registro.

    Uso:
        ingestor = EventIngestor(registry, hub)
        result = ingestor.ingest({"bench_id": 1, "port": "COM 4", ...})
        if not result.accepted:
            print(result.error_code)
    """

    def __init__(
        self,
        registry: BenchRegistry,
        hub: Optional[SubscriptionHub] = None,
        *,
        port_pattern: Optional[str] = None,
        limits: Optional[PlausibilityLimits] = None,
    ):
        self._registry = registry
        self._hub = hub
        self._port_pattern = port_pattern
        self._limits = limits or PlausibilityLimits()
        self._stats = IngestorStats()
        self._stats_lock = threading.Lock()

    def ingest(self, raw_event: Any) -> IngestResult:
        """Ingiere un evento y notifica si produjo un cambio observable."""
        result = self._apply(raw_event)
        if result.changed:
            self._notify({result.bench_id})
        return result

    def ingest_batch(self, raw_events: Iterable[Any]) -> list[IngestResult]:
        """Ingiere eventos en orden y notifica una sola vez por lote."""
        results = [self._apply(raw) for raw in raw_events]
        changed_ids = {r.bench_id for r in results if r.changed}
        if changed_ids:
            self._notify(changed_ids)
        return results

    def disconnect(self, bench_id: int) -> IngestResult:
        """Elimina un banco desconectado (señal del colaborador externo)."""
        with self._stats_lock:
            self._stats.received += 1
            self._stats.last_event_at = time.time()
        try:
            change = self._registry.remove(bench_id)
        except IngestError as e:
            return self._reject(e)
        result = self._accept(change, [])
        self._notify({bench_id})
        return result

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _apply(self, raw_event: Any) -> IngestResult:
        with self._stats_lock:
            self._stats.received += 1
            self._stats.last_event_at = time.time()

        validation = validate_bench_event(
            raw_event,
            port_pattern=self._port_pattern,
            limits=self._limits,
        )
        if not validation.valid:
            return self._reject(validation.error)

        payload = validation.payload
        try:
            if payload.is_disconnect:
                record = self._registry.get(payload.bench_id)
                if record is not None and record.port != payload.port:
                    raise MalformedEvent(
                        f"Disconnect for bench {payload.bench_id} names port '{payload.port}', "
                        f"bench is on '{record.port}'",
                        bench_id=payload.bench_id,
                    )
                change = self._registry.remove(payload.bench_id)
            else:
                change = self._registry.apply_event(validation.update)
        except IngestError as e:
            return self._reject(e)

        return self._accept(change, validation.warnings)

    def _accept(self, change: AppliedChange, warnings: list[str]) -> IngestResult:
        outcome = "applied" if change.changed else "unchanged"
        with self._stats_lock:
            if change.changed:
                self._stats.applied += 1
            else:
                self._stats.unchanged += 1
        EVENTS_TOTAL.labels(outcome=outcome).inc()
        BENCHES_REGISTERED.set(len(self._registry))
        return IngestResult(
            accepted=True,
            bench_id=change.bench_id,
            change=change,
            warnings=warnings,
        )

    def _reject(self, error: IngestError) -> IngestResult:
        with self._stats_lock:
            self._stats.rejected[error.code] += 1
        EVENTS_TOTAL.labels(outcome=error.code).inc()
        logger.warning(
            "[INGEST] Rejected event bench=%s code=%s: %s",
            error.bench_id,
            error.code,
            error.message,
        )
        return IngestResult(accepted=False, bench_id=error.bench_id, error=error)

    def _notify(self, changed_ids: set[int]) -> None:
        if self._hub is None:
            return
        NOTIFICATIONS_TOTAL.inc()
        self._hub.notify(changed_ids, version=self._registry.version)

    @property
    def stats(self) -> dict:
        with self._stats_lock:
            return self._stats.to_dict()
