"""
Health Check Endpoints

Liveness and readiness for the process manager or orchestrator.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Response
from pydantic import BaseModel
from redis.exceptions import RedisError

from storefront.config import get_settings
from storefront.database.connection import check_database_health
from storefront.serving.cache import get_redis, is_cache_available

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


async def check_redis_health() -> Dict[str, Any]:
    if not is_cache_available():
        return {"status": "disabled"}
    try:
        await get_redis().ping()
    except RedisError as e:
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy"}


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Overall health.

    The database is required; Redis only degrades the status since the API
    runs without its cache.
    """
    settings = get_settings()
    checks = {
        "database": await check_database_health(),
        "redis": await check_redis_health(),
    }

    status = "healthy"
    if checks["database"]["status"] != "healthy":
        status = "unhealthy"
    elif checks["redis"]["status"] == "unhealthy":
        status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 while the process is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """Returns 200 once the database answers, 503 otherwise."""
    db_health = await check_database_health()
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
