"""Configuración y modelos para el buffer de ingesta.

Extraído de async_processor.py para mantener archivos cortos.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class BackpressureConfig:
    """Configuración de backpressure."""
    max_queue_size: int = 1000    # Por shard/worker
    num_workers: int = 2
    batch_max_size: int = 50      # Eventos aplicados por notificación

    @classmethod
    def from_env(cls) -> "BackpressureConfig":
        return cls(
            max_queue_size=int(os.getenv("BENCH_QUEUE_MAX_SIZE", "1000")),
            num_workers=int(os.getenv("BENCH_NUM_WORKERS", "2")),
            batch_max_size=int(os.getenv("BENCH_BATCH_MAX_SIZE", "50")),
        )


@dataclass
class BackpressureStats:
    """Estadísticas de backpressure."""
    enqueued: int = 0
    processed: int = 0
    rejected: int = 0
    errors: int = 0
    batches: int = 0
