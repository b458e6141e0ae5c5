"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel, Field

from mvo_shared.db.connection import get_db
from mvo_shared.logging.config import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        description="Overall health status"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Current server timestamp (UTC)",
    )
    version: str = Field(description="Service version")
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Individual component health checks",
    )


class ReadinessStatus(BaseModel):
    """Readiness check response model."""

    ready: bool = Field(description="Whether the service is ready to accept requests")
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Current server timestamp (UTC)",
    )
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Individual readiness checks",
    )


async def _database_reachable() -> bool:
    try:
        await get_db().connect()
    except Exception as e:
        logger.warning("Database health check failed", error=str(e))
        return False
    return True


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health Check",
    description="Check if the service is running and get version info with dependency status",
)
async def health_check(request: Request) -> HealthStatus:
    """Health check including the database status recorded at startup."""
    version = getattr(request.app, "version", "0.1.0")
    db_initialized = getattr(request.app.state, "db_initialized", False)

    checks = {"api": True, "database": db_initialized}
    if db_initialized:
        checks["database_connection"] = await _database_reachable()

    healthy = all(checks.values())
    return HealthStatus(
        status="healthy" if healthy else "degraded",
        version=version,
        checks=checks,
    )


@router.get(
    "/health/ready",
    response_model=ReadinessStatus,
    summary="Readiness Check",
    description="Check if the service is ready to accept requests",
)
async def readiness_check(request: Request, response: Response) -> ReadinessStatus:
    """Readiness probe: 503 until the database is initialized and reachable."""
    db_initialized = getattr(request.app.state, "db_initialized", False)
    checks = {"api": True, "database_init": db_initialized}
    if db_initialized:
        checks["database_connection"] = await _database_reachable()

    ready = all(checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessStatus(ready=ready, checks=checks)


@router.get(
    "/health/live",
    summary="Liveness Check",
    description="Simple liveness check - returns 200 if service is alive",
)
async def liveness_check() -> dict[str, str]:
    return {"status": "ok"}
