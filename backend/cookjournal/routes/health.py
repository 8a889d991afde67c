"""
Cook Journal Backend — Health Check Route
===========================================

What:  GET /api/health for monitoring and load balancer probes.
How:   Runs SELECT 1 against the engine; ok is false when that fails.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text

from cookjournal import __version__
from cookjournal.database import engine
from cookjournal.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    db_status = "connected"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        ok=db_status == "connected",
        now=datetime.now(timezone.utc),
        database=db_status,
        version=__version__,
    )
