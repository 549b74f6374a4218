"""Taxonomía de errores de ingesta.

Todos los errores recuperables heredan de IngestError: se devuelven al
llamador de ingest/apply_event y el registro sigue siendo utilizable.

RegistryInvariantError NO es un IngestError: indica un defecto de
programación (p.ej. dos caminos creando el mismo id) y nunca se captura
en el pipeline de ingesta.
"""

from __future__ import annotations

from typing import Optional


class IngestError(Exception):
    """Error recuperable de ingesta."""

    code = "ingest_error"

    def __init__(self, message: str, bench_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.bench_id = bench_id

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "bench_id": self.bench_id,
        }


class InvalidTransition(IngestError):
    """Cambio de state/status ilegal; el registro conserva su estado previo."""

    code = "invalid_transition"


class OutOfRange(IngestError):
    """Lectura numérica físicamente implausible; el evento se descarta."""

    code = "out_of_range"

    def __init__(
        self,
        message: str,
        bench_id: Optional[int] = None,
        field: Optional[str] = None,
        value: Optional[float] = None,
    ):
        super().__init__(message, bench_id)
        self.field = field
        self.value = value

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        data["value"] = self.value
        return data


class UnknownBench(IngestError):
    """Operación sobre un bench_id inexistente."""

    code = "unknown_bench"


class MalformedEvent(IngestError):
    """Campo requerido ausente o inválido."""

    code = "malformed_event"


class Backpressure(IngestError):
    """Buffer de ingesta saturado; el productor debe reintentar."""

    code = "backpressure"


class RegistryInvariantError(AssertionError):
    """Violación de invariante interna del registro (defecto de programación)."""
