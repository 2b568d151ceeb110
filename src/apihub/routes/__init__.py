"""API routes."""

from fastapi import APIRouter

from apihub.routes.analytics import router as analytics_router
from apihub.routes.api_keys import router as api_keys_router
from apihub.routes.apis import router as apis_router
from apihub.routes.endpoints import router as endpoints_router
from apihub.routes.health import router as health_router

v1_router = APIRouter(prefix="/api/v1")

# Include routers
v1_router.include_router(apis_router)
v1_router.include_router(endpoints_router)
v1_router.include_router(api_keys_router)
v1_router.include_router(analytics_router)

__all__ = [
    "health_router",
    "v1_router",
]
