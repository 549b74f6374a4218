"""Vistas agregadas por métrica.

Cada familia (voltage, current, temperatura por sensor) se calcula desde el
snapshot del registro y se cachea hasta que un commit la invalida.

CACHE:
- Entrada por familia etiquetada con la versión del snapshot usado.
- El registro invalida solo las familias cuyo campo cambió.
- Una entrada calculada antes de la última invalidación de su familia
  nunca se devuelve (protege contra un commit concurrente al recálculo).
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from .registry import BenchRegistry

logger = logging.getLogger(__name__)


class MetricFamily(str, Enum):
    """Familias de métricas agregables (el valor es el campo del BenchRecord)."""

    VOLTAGE = "voltage"
    CURRENT = "current"
    TEMPERATURE = "temperature"
    BATTERY_TEMPERATURE = "battery_temperature"
    ELECTRONIC_LOAD_TEMPERATURE = "electronic_load_temperature"

    @classmethod
    def parse(cls, name: Union[str, "MetricFamily"]) -> "MetricFamily":
        """Acepta el nombre del campo o su plural (`voltages`)."""
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower().replace("-", "_")
        for family in cls:
            if key in (family.value, family.value + "s"):
                return family
        raise ValueError(f"Unknown metric family: {name}")


TEMPERATURE_FAMILIES = (
    MetricFamily.TEMPERATURE,
    MetricFamily.BATTERY_TEMPERATURE,
    MetricFamily.ELECTRONIC_LOAD_TEMPERATURE,
)


@dataclass(frozen=True)
class AggregatePoint:
    bench_id: int
    value: float

    def to_dict(self) -> dict:
        return {"bench_id": self.bench_id, "value": self.value}


@dataclass(frozen=True)
class _CacheEntry:
    version: int
    points: tuple[AggregatePoint, ...]


class AggregateView:
    """Series por métrica a través de todos los bancos.

    Uso:
        view = AggregateView(registry)
        view.get("voltage")  # (AggregatePoint(1, 12.1), AggregatePoint(3, 11.8))
    """

    def __init__(self, registry: BenchRegistry) -> None:
        self._registry = registry
        self._lock = threading.Lock()
        self._cache: dict[MetricFamily, _CacheEntry] = {}
        self._invalidated_at: dict[MetricFamily, int] = {}
        self._hits = 0
        self._misses = 0
        registry.add_invalidation_listener(self._on_commit)

    def get(self, family: Union[str, MetricFamily]) -> tuple[AggregatePoint, ...]:
        """Serie (bench_id, valor) ordenada por id, sin bancos sin lectura."""
        family = MetricFamily.parse(family)

        with self._lock:
            entry = self._cache.get(family)
            if entry is not None and entry.version >= self._invalidated_at.get(family, 0):
                self._hits += 1
                return entry.points
            self._misses += 1

        snapshot = self._registry.snapshot()
        collected: list[AggregatePoint] = []
        for record in snapshot.records:
            value = getattr(record, family.value)
            if value is not None:
                collected.append(AggregatePoint(record.id, value))
        points = tuple(collected)

        with self._lock:
            if snapshot.version >= self._invalidated_at.get(family, 0):
                self._cache[family] = _CacheEntry(snapshot.version, points)
        return points

    def temperatures_by_sensor(self) -> dict[str, tuple[AggregatePoint, ...]]:
        """Series de temperatura agrupadas por sensor."""
        return {family.value: self.get(family) for family in TEMPERATURE_FAMILIES}

    def invalidate(self, families: Optional[Iterable[Union[str, MetricFamily]]] = None) -> None:
        """Descarta entradas cacheadas (todas si families es None)."""
        targets = list(MetricFamily) if families is None else [MetricFamily.parse(f) for f in families]
        version = self._registry.version
        with self._lock:
            for family in targets:
                self._cache.pop(family, None)
                self._invalidated_at[family] = max(self._invalidated_at.get(family, 0), version)

    def _on_commit(self, fields: frozenset[str], version: int) -> None:
        if not fields:
            return
        with self._lock:
            for name in fields:
                family = MetricFamily(name)
                self._cache.pop(family, None)
                self._invalidated_at[family] = version
        logger.debug("[AGGREGATES] Invalidated %s at version %d", sorted(fields), version)

    @property
    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0,
                "cached_families": sorted(family.value for family in self._cache),
            }
