"""Health, stats and Prometheus metrics endpoints."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..service import get_service

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe: ok mientras el proceso esté vivo."""
    service = get_service()
    return {
        "status": "ok",
        "benches": len(service.registry),
        "processor_running": service.processor.running,
    }


@router.get("/stats")
def stats():
    """Contadores de ingesta, cola, caché de agregados y suscripciones."""
    return get_service().stats()


@router.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
