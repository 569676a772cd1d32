"""
Health check endpoints.

Provides liveness and readiness information for monitoring.
"""

from fastapi import APIRouter, HTTPException
import structlog

from src.persistence.database import check_database_health

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness check: the process is up and serving requests."""
    return {"status": "ok"}


@router.get("/health/ready")
async def readiness():
    """
    Readiness probe.

    Returns 200 once the visitor store can be queried, 503 otherwise.
    """
    db_health = await check_database_health()

    if db_health["status"] != "healthy":
        log.warning("store_not_ready", error=db_health.get("error"))
        raise HTTPException(status_code=503, detail="Visitor store not ready")

    return {"status": "ready", "visitor_count": db_health["visitor_count"]}
