"""
Recipe Share Backend — Health Check Route
===========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Runs `SELECT 1` against the database and checks that the image store
       is reachable.

    Status levels:
    - healthy:   database and image store operational
    - degraded:  image store unavailable (reads still work, uploads fail)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from recipeshare import __version__
from recipeshare.database import engine
from recipeshare.schemas.common import HealthResponse
from recipeshare.services.image_store import ImageStore, get_image_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(store: ImageStore = Depends(get_image_store)):
    """Probes the database and the image store, returns aggregate status."""
    db_status = "connected"
    storage_status = "available"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    try:
        if not await store.is_available():
            storage_status = "unavailable"
    except Exception as e:
        storage_status = "unavailable"
        logger.warning("Health check: image store unreachable: %s", str(e))
    if storage_status != "available" and overall == "healthy":
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        checks={
            "database": db_status,
            "storage": storage_status,
            "uptime_seconds": round(time.time() - _start_time, 2),
        },
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
