"""Mapeo de IngestError a respuestas HTTP."""

from __future__ import annotations

import math

from fastapi import HTTPException

from ..core.errors import IngestError

STATUS_BY_CODE = {
    "malformed_event": 422,
    "malformed_frame": 422,
    "out_of_range": 422,
    "invalid_transition": 409,
    "unknown_bench": 404,
    "backpressure": 503,
}


def http_error(error: IngestError) -> HTTPException:
    detail = error.to_dict()
    value = detail.get("value")
    # NaN/inf no son JSON válido
    if isinstance(value, float) and not math.isfinite(value):
        detail["value"] = str(value)
    return HTTPException(status_code=STATUS_BY_CODE.get(error.code, 400), detail=detail)
