"""Ingesta de eventos por HTTP (síncrona y encolada)."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ..auth import require_api_key
from ..core.errors import Backpressure
from ..schemas import IngestResultOut, QueuedOut
from ..service import get_service
from .errors import http_error

router = APIRouter(tags=["ingest"])
logger = logging.getLogger(__name__)


@router.post(
    "/events",
    response_model=IngestResultOut,
    dependencies=[Depends(require_api_key)],
)
def ingest_event(payload: Dict[str, Any] = Body(...)):
    """Aplica el evento de forma síncrona.

    El cuerpo se valida en el ingestor (no en FastAPI) para que los
    errores lleven el código de IngestError correspondiente.
    """
    result = get_service().ingest(payload)
    if not result.accepted:
        raise http_error(result.error)
    return IngestResultOut(
        accepted=True,
        bench_id=result.bench_id,
        changed=result.changed,
        warnings=result.warnings,
    )


@router.post(
    "/events/queue",
    response_model=QueuedOut,
    status_code=202,
    dependencies=[Depends(require_api_key)],
)
def enqueue_event(payload: Dict[str, Any] = Body(...)):
    service = get_service()
    try:
        service.submit(payload)
    except Backpressure as e:
        return JSONResponse(
            status_code=503,
            content={"detail": e.to_dict()},
            headers={"Retry-After": "1"},
        )
    return QueuedOut(queued=True, queue_depth=service.processor.pending)
