"""Ingesta de eventos de banco.

Estructura modular:
- validators.py          → Schema pydantic y validación de eventos crudos
- physical_ranges.py     → Límites de plausibilidad por campo
- ingestor.py            → EventIngestor (valida, aplica, notifica)
- async_processor.py     → Buffer acotado + workers con backpressure
- backpressure_config.py → Configuración del buffer
"""

from .async_processor import AsyncEventProcessor
from .backpressure_config import BackpressureConfig
from .ingestor import EventIngestor, IngestResult
from .physical_ranges import PhysicalRange, PlausibilityLimits
from .validators import BenchEventPayload, EventType, ValidationResult, validate_bench_event

__all__ = [
    "AsyncEventProcessor",
    "BackpressureConfig",
    "EventIngestor",
    "IngestResult",
    "PhysicalRange",
    "PlausibilityLimits",
    "BenchEventPayload",
    "EventType",
    "ValidationResult",
    "validate_bench_event",
]
