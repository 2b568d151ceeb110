"""Liveness and readiness probes."""

import logging

from fastapi import APIRouter, Request, Response, status

from apihub.config import get_settings
from apihub.contracts import DependencyHealth, HealthResponse, ReadinessResponse
from apihub.db.session import Database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_health(db: Database | None) -> DependencyHealth:
    if db is None or not db.is_connected:
        return DependencyHealth(status="error", detail="Database not connected")
    try:
        await db.ping()
    except Exception as exc:
        logger.warning("Database readiness probe failed: %s", exc)
        return DependencyHealth(status="error", detail=f"Database unreachable: {exc}")
    return DependencyHealth(status="ok")


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Process liveness. Stays 200 even while the database is down."""
    return HealthResponse(status="ok", version=get_settings().version)


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request, response: Response) -> ReadinessResponse:
    """Whether the catalog can serve traffic: 503 until the database answers."""
    database = await _database_health(request.app.state.database)
    if database.status != "ok":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="degraded", database=database)
    return ReadinessResponse(status="ok", database=database)
