"""Health and readiness contract payloads."""

from pydantic import BaseModel, Field


class DependencyHealth(BaseModel):
    """Readiness status for a dependency."""

    status: str = "ok"
    detail: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class ReadinessResponse(BaseModel):
    status: str = "ok"
    database: DependencyHealth = Field(default_factory=DependencyHealth)


__all__ = ["DependencyHealth", "HealthResponse", "ReadinessResponse"]
