"""
MakerBench Backend — Health Check Route
=========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database with SELECT 1 and reports the screenshot
       integration's state without calling it.
Who:   Called by container health checks, load balancers and monitoring.

Status levels:
    - healthy:   database reachable; screenshots available or disabled (HTTP 200)
    - degraded:  screenshot circuit open; submissions fall back to no image (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from makerbench import __version__
from makerbench import database
from makerbench.schemas.bookmark import HealthResponse
from makerbench.services.screenshot_service import screenshot_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    screenshots = screenshot_service.status()
    if screenshots == "circuit_open" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        screenshots=screenshots,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
