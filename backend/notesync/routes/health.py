"""
NoteSync Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks both backing services: the record database (SELECT 1) and the
       object store root (exists and is writable).

    Status levels:
    - healthy:   both services reachable (HTTP 200)
    - unhealthy: at least one is not (HTTP 503)
"""

import logging
import os
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from notesync import __version__
from notesync.schemas.note import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "A backing service is down", "model": HealthResponse}},
)
async def health_check(request: Request):
    db_status = "connected"
    storage_status = "available"
    overall = "healthy"

    try:
        from notesync.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    root = request.app.state.storage.root
    if not (root.is_dir() and os.access(root, os.W_OK)):
        storage_status = "unavailable"
        overall = "unhealthy"
        logger.warning("Health check: storage root not writable: %s", root)

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(
        status_code=200 if overall == "healthy" else 503,
        content=body.model_dump(),
    )
