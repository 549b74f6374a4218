"""Consulta y desconexión de bancos."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import require_api_key
from ..schemas import BenchOut, IngestResultOut
from ..service import get_service
from .errors import http_error

router = APIRouter(tags=["benches"])
logger = logging.getLogger(__name__)


@router.get("/benches", response_model=list[BenchOut])
def list_benches():
    """Snapshot de todos los bancos, ordenado por id."""
    return [BenchOut.from_record(r) for r in get_service().list_benches()]


@router.get("/benches/{bench_id}", response_model=BenchOut)
def get_bench(bench_id: int):
    record = get_service().get_bench(bench_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Bench {bench_id} not found")
    return BenchOut.from_record(record)


@router.delete(
    "/benches/{bench_id}",
    response_model=IngestResultOut,
    dependencies=[Depends(require_api_key)],
)
def disconnect_bench(bench_id: int):
    """Señal de desconexión: elimina el banco y notifica a los suscriptores."""
    result = get_service().disconnect(bench_id)
    if not result.accepted:
        raise http_error(result.error)
    logger.info("[API] Bench %d disconnected", bench_id)
    return IngestResultOut(accepted=True, bench_id=bench_id, changed=result.changed)
