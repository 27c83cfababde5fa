"""
Health check endpoints
"""

from typing import Any
from fastapi import APIRouter

from gymbook.config import settings
from gymbook.core.database import db_manager

router = APIRouter()


@router.get("/live")
async def liveness() -> Any:
    """
    Kubernetes liveness probe
    """
    return {"status": "alive", "service": "gymbook-api"}


@router.get("/ready")
async def readiness() -> Any:
    """
    Kubernetes readiness probe - checks the database and, when used, Redis
    """
    checks = {"database": False, "api": True}

    try:
        checks["database"] = await db_manager.ping()
    except Exception:
        checks["database"] = False

    if settings.LOCK_BACKEND == "redis":
        from gymbook.core.redis import get_redis
        try:
            client = await get_redis()
            await client.ping()
            checks["redis"] = True
        except Exception:
            checks["redis"] = False

    all_healthy = all(checks.values())
    return {
        "status": "ready" if all_healthy else "not ready",
        "checks": checks,
        "version": settings.APP_VERSION
    }
