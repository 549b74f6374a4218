from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from common.config import get_settings
from .endpoints import aggregates_router, benches_router, events_router, health_router
from .service import get_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = get_service()
    service.start()
    logger.info("[MAIN] Bench telemetry service started (log_level=%s)", get_settings().log_level)
    try:
        yield
    finally:
        service.stop(drain=True)
        logger.info("[MAIN] Bench telemetry service stopped")


app = FastAPI(title="Bench Telemetry Service", version="0.1.0", lifespan=lifespan)

app.include_router(health_router)
app.include_router(benches_router)
app.include_router(aggregates_router)
app.include_router(events_router)
