"""Health check endpoint.

Verifies connectivity to the database and, when Redis backs the deal
locks, to Redis. Used by container healthchecks and load balancers.
"""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import text

from trade_escrow import __version__
from trade_escrow.config import get_settings
from trade_escrow.logging_config import get_logger
from trade_escrow.schemas.deal import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check() -> HealthResponse:
    """Check connectivity to the database and the lock backend."""
    settings = get_settings()
    db_status = "unknown"
    locks_status = "in-process"

    try:
        from trade_escrow.infrastructure.database.engine import get_engine

        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    if settings.deal_lock_backend == "redis":
        try:
            from trade_escrow.infrastructure.redis_client import get_redis

            await get_redis().ping()
            locks_status = "healthy"
        except Exception as exc:
            locks_status = f"unhealthy: {exc}"
            logger.error("health.redis_check_failed", error=str(exc))

    healthy = db_status == "healthy" and locks_status in ("healthy", "in-process")

    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=__version__,
        database=db_status,
        locks=locks_status,
    )
