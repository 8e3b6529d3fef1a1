"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from floor_api.services.stock import stock_ledger_breaker
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import check_redis_health, redis_publish_breaker

router = APIRouter(prefix="/api/health", tags=["health"])

SERVICE_NAME = "floor-api"


@router.get("")
def health_check():
    """Liveness: the process is up."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "environment": settings.environment,
    }


@router.get("/detailed")
async def detailed_health_check():
    """
    Dependency checks. Database is required; Redis only feeds the kitchen
    display, so a Redis outage reports "degraded" but still answers 200.
    """
    checks = {
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "dependencies": {},
    }

    database_ok = True
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        checks["dependencies"]["database"] = {"status": "healthy"}
    except Exception as e:
        checks["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
        database_ok = False

    redis_status = await check_redis_health()
    checks["dependencies"]["redis"] = redis_status

    checks["circuit_breakers"] = [
        stock_ledger_breaker.get_stats(),
        redis_publish_breaker.get_stats(),
    ]

    if not database_ok:
        checks["status"] = "unhealthy"
        return JSONResponse(content=checks, status_code=503)

    checks["status"] = "healthy" if redis_status["status"] == "healthy" else "degraded"
    return checks
