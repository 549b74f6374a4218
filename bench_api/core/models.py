"""Modelos de dominio de los bancos de prueba de baterías."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Optional


class BenchState(str, Enum):
    """Fase del ciclo del banco."""

    STANDBY = "STANDBY"      # Estado inicial, sin carga ni descarga
    CHARGE = "CHARGE"
    DISCHARGE = "DISCHARGE"


class CompletionStatus(str, Enum):
    """Resultado de la corrida actual."""

    SUCCESS = "SUCCESS"
    FAIL = "FAIL"
    IN_PROGRESS = "IN_PROGRESS"


READING_FIELDS = (
    "voltage",
    "current",
    "temperature",
    "battery_temperature",
    "electronic_load_temperature",
)


@dataclass(frozen=True)
class BenchRecord:
    """Estado vivo de un banco.

    Inmutable: el registro reemplaza la instancia completa en cada commit,
    por lo que cualquier referencia obtenida por un lector es un snapshot
    consistente.
    """

    id: int
    port: str
    state: BenchState = BenchState.STANDBY
    status: Optional[CompletionStatus] = None
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None
    battery_temperature: Optional[float] = None
    electronic_load_temperature: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @property
    def run_active(self) -> bool:
        return self.status == CompletionStatus.IN_PROGRESS

    def diff(self, other: "BenchRecord") -> frozenset[str]:
        """Nombres de campos cuyo valor difiere de `other`."""
        return frozenset(
            f.name for f in fields(self)
            if getattr(self, f.name) != getattr(other, f.name)
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "port": self.port,
            "state": self.state.value,
            "status": self.status.value if self.status else None,
            "voltage": self.voltage,
            "current": self.current,
            "temperature": self.temperature,
            "battery_temperature": self.battery_temperature,
            "electronic_load_temperature": self.electronic_load_temperature,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class BenchUpdate:
    """Evento de actualización ya validado y normalizado.

    Los campos en None no modifican el campo correspondiente del banco.
    """

    bench_id: int
    port: str
    timestamp: datetime
    state: Optional[BenchState] = None
    status: Optional[CompletionStatus] = None
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None
    battery_temperature: Optional[float] = None
    electronic_load_temperature: Optional[float] = None

    def readings(self) -> dict[str, float]:
        """Lecturas presentes en el evento."""
        return {
            name: getattr(self, name)
            for name in READING_FIELDS
            if getattr(self, name) is not None
        }


@dataclass(frozen=True)
class AppliedChange:
    """Resultado de aplicar un evento (o una desconexión) al registro."""

    bench_id: int
    current: Optional[BenchRecord]
    previous: Optional[BenchRecord] = None
    created: bool = False
    removed: bool = False
    changed_fields: frozenset[str] = frozenset()
    version: int = 0

    @property
    def changed(self) -> bool:
        return self.created or self.removed or bool(self.changed_fields)
