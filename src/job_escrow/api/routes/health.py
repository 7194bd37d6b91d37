"""Health check endpoint.

Verifies connectivity to the ledger store and returns structured status.
Used by container healthchecks, load balancers, and monitoring systems.
"""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import text

from job_escrow import __version__
from job_escrow.logging_config import get_logger
from job_escrow.schemas.jobs import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its ledger store.",
)
async def health_check() -> HealthResponse:
    """Check connectivity to the database backing the ledger."""
    from job_escrow.infrastructure.database.engine import _get_engine

    try:
        async with _get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    return HealthResponse(
        status="ok" if db_status == "healthy" else "degraded",
        version=__version__,
        database=db_status,
    )
