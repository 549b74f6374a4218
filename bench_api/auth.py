"""Autenticación por API Key para endpoints que mutan el registro.

Si BENCH_API_KEY no está configurado se permite el acceso (modo desarrollo).
"""

from __future__ import annotations

import logging

from fastapi import Header, HTTPException

from common.config import get_settings

logger = logging.getLogger(__name__)


def require_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key")
) -> None:
    expected = get_settings().api_key
    if not expected:
        logger.warning(
            "[SECURITY WARNING] BENCH_API_KEY not set - "
            "allowing unauthenticated access (DEV ONLY)"
        )
        return

    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key required")

    if x_api_key != expected:
        logger.warning("Invalid API key attempt from request")
        raise HTTPException(status_code=401, detail="Invalid API key")
