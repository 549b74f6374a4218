"""Módulo de endpoints HTTP.

Contiene los endpoints de la API de telemetría organizados por función.
"""

from .health import router as health_router
from .benches import router as benches_router
from .aggregates import router as aggregates_router
from .events import router as events_router

__all__ = [
    "health_router",
    "benches_router",
    "aggregates_router",
    "events_router",
]
