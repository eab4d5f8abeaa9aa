"""Health & Readiness: liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if database is unreachable (readiness)
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from jewelpreview.infrastructure import database

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    return {
        "status": "healthy",
        "service": "jewel-preview-api",
        "version": "0.1.0",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness check, includes database connectivity."""
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    return {"status": "ready", "checks": {"database": "healthy"}}
