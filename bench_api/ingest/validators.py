"""Validadores de eventos de banco para ingesta.

Valida y transforma eventos crudos del canal externo al formato interno
(BenchUpdate). Un evento inválido se rechaza completo: nunca se aplica
una parte de él.

Formato esperado:
{
    "type": "update",                 # opcional: update | disconnect
    "bench_id": 3,                    # o "benchId"
    "port": "COM 4",
    "state": "CHARGE",                # opcional
    "status": "IN_PROGRESS",          # opcional
    "voltage": 12.1,                  # opcional, V
    "current": 1.5,                   # opcional, A
    "temperature": 24.3,              # opcional, °C (banco)
    "battery_temperature": 26.0,      # opcional, °C
    "electronic_load_temperature": 31.2,  # opcional, °C
    "timestamp": "2026-01-31T08:00:00Z"   # ISO-8601 o epoch (s)
}
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from common.config import DEFAULT_PORT_PATTERN
from ..core.errors import IngestError, MalformedEvent
from ..core.models import READING_FIELDS, BenchState, BenchUpdate, CompletionStatus
from .physical_ranges import PlausibilityLimits

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    UPDATE = "update"
    DISCONNECT = "disconnect"


class BenchEventPayload(BaseModel):
    """Schema de validación para eventos de banco."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: EventType = EventType.UPDATE
    bench_id: int = Field(..., ge=0, alias="benchId")
    port: str
    state: Optional[BenchState] = None
    status: Optional[CompletionStatus] = None
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None
    battery_temperature: Optional[float] = None
    electronic_load_temperature: Optional[float] = None
    timestamp: datetime

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("state", "status", mode="before")
    @classmethod
    def normalize_enum_name(cls, v):
        if isinstance(v, str):
            return v.strip().upper().replace(" ", "_")
        return v

    @field_validator("port")
    @classmethod
    def normalize_port(cls, v: str) -> str:
        port = " ".join(v.split())
        if not port:
            raise ValueError("port is required")
        return port

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        # Sin zona horaria se asume UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def is_disconnect(self) -> bool:
        return self.type == EventType.DISCONNECT

    def readings(self) -> dict[str, float]:
        return {
            name: getattr(self, name)
            for name in READING_FIELDS
            if getattr(self, name) is not None
        }

    def to_update(self) -> BenchUpdate:
        """Convierte al evento de dominio aplicado por el registro."""
        return BenchUpdate(
            bench_id=self.bench_id,
            port=self.port,
            timestamp=self.timestamp,
            state=self.state,
            status=self.status,
            **self.readings(),
        )


@dataclass
class ValidationResult:
    """Resultado de validación."""

    valid: bool
    payload: Optional[BenchEventPayload] = None
    error: Optional[IngestError] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def update(self) -> Optional[BenchUpdate]:
        if self.payload is None or self.payload.is_disconnect:
            return None
        return self.payload.to_update()


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", ())) or "event"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def peek_bench_id(data: Any) -> Optional[int]:
    """Extrae el bench_id de un evento crudo sin validarlo (None si no hay)."""
    if not isinstance(data, dict):
        return None
    raw = data.get("bench_id", data.get("benchId"))
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def validate_bench_event(
    data: Any,
    *,
    port_pattern: Optional[str] = None,
    limits: Optional[PlausibilityLimits] = None,
) -> ValidationResult:
    """Valida un evento crudo de banco.

    Args:
        data: Diccionario con el evento recibido del canal externo
        port_pattern: Regex de puertos aceptados (default: COM n, /dev/tty*)
        limits: Límites de plausibilidad (default: PlausibilityLimits())

    Returns:
        ValidationResult con payload validado o error (MalformedEvent / OutOfRange)
    """
    if not isinstance(data, dict):
        return ValidationResult(
            valid=False,
            error=MalformedEvent(f"Event must be an object, got {type(data).__name__}"),
        )

    warnings = []
    if "benchId" in data and "bench_id" not in data:
        warnings.append("Used camelCase benchId instead of bench_id")

    bench_id = peek_bench_id(data)
    try:
        payload = BenchEventPayload.model_validate(data)
    except ValidationError as e:
        logger.warning("[VALIDATOR] Malformed event bench=%s: %s", bench_id, _summarize(e))
        return ValidationResult(valid=False, error=MalformedEvent(_summarize(e), bench_id=bench_id))

    if not re.match(port_pattern or DEFAULT_PORT_PATTERN, payload.port):
        return ValidationResult(
            valid=False,
            error=MalformedEvent(f"Unknown port format: '{payload.port}'", bench_id=payload.bench_id),
        )

    limits = limits or PlausibilityLimits()
    try:
        for name, value in payload.readings().items():
            limits.check(name, value, bench_id=payload.bench_id)
    except IngestError as e:
        logger.warning("[VALIDATOR] Dropped event bench=%d: %s", payload.bench_id, e)
        return ValidationResult(valid=False, error=e)

    return ValidationResult(valid=True, payload=payload, warnings=warnings)
