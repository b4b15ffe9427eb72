from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.core.health_checks import check_database_connection, check_redis_connection
from app.schemas.common import HealthCheckResult, HealthResponse

router = APIRouter()

SERVICE_VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse, status_code=200)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """
    Health check endpoint.

    Checks the API itself, the database and the Redis broker. A broker
    outage only degrades the service; a database outage makes it unhealthy
    and returns 503.
    """
    db_healthy = await check_database_connection(db)
    db_result = HealthCheckResult(
        status="healthy" if db_healthy else "unhealthy",
        details={"connected": db_healthy},
        error=None if db_healthy else "Database connection failed",
    )

    redis_healthy = await check_redis_connection()
    redis_result = HealthCheckResult(
        status="healthy" if redis_healthy else "unhealthy",
        details={"connected": redis_healthy},
        error=None if redis_healthy else "Redis connection failed",
    )

    checks: dict[str, HealthCheckResult] = {
        "api": HealthCheckResult(status="healthy"),
        "database": db_result,
        "redis": redis_result,
    }

    status: Literal["healthy", "degraded", "unhealthy"]
    if not db_healthy:
        raise HTTPException(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is unhealthy",
        )
    elif all(check.status == "healthy" for check in checks.values()):
        status = "healthy"
    else:
        status = "degraded"

    return HealthResponse(
        status=status,
        timestamp=datetime.now(UTC),
        version=SERVICE_VERSION,
        checks=checks,
    )
