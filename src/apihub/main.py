"""apihub API server."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from apihub.config import Settings, get_settings
from apihub.db.session import REQUIRED_TABLES, Database
from apihub.logging import configure_logging
from apihub.middleware import CorrelationIDMiddleware
from apihub.routes import health_router, v1_router

# Configure logging (supports APIHUB_LOG_FORMAT=json for structured output).
_boot_settings = get_settings()
configure_logging(log_format=_boot_settings.log_format, debug=_boot_settings.debug)
logger = logging.getLogger(__name__)


class AppResponse(BaseModel):
    """App response."""

    name: str = "apihub"
    version: str = get_settings().version
    docs: str = "/docs"


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared outbound client for endpoint test calls."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.proxy_timeout_seconds),
        limits=httpx.Limits(max_connections=settings.proxy_max_connections),
        follow_redirects=settings.proxy_follow_redirects,
    )


async def _prepare_schema(db: Database, settings: Settings) -> None:
    if settings.auto_create_tables:
        await db.create_tables()
        return

    missing_tables = await db.get_missing_tables(set(REQUIRED_TABLES))
    if missing_tables:
        raise RuntimeError(
            "Database schema is missing required tables: "
            + ", ".join(missing_tables)
            + ". Create them or set APIHUB_AUTO_CREATE_TABLES=true."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""

    # Startup
    logger.info("Starting apihub server...")

    settings = get_settings()

    db = Database(settings.effective_database_url, echo=settings.debug)
    await db.connect()
    logger.info("Database connected (%s)", "SQLite" if settings.is_sqlite else "PostgreSQL")
    await _prepare_schema(db, settings)

    http_client = create_http_client(settings)

    app.state.database = db
    app.state.http_client = http_client

    yield

    # Shutdown
    logger.info("Shutting down apihub server...")

    await http_client.aclose()
    app.state.http_client = None

    await db.disconnect()
    app.state.database = None
    logger.info("Database disconnected")


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="apihub",
        description="API catalog and endpoint test proxy",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.database = None
    app.state.http_client = None

    # Add correlation ID middleware (runs before CORS so the ID is on every response)
    app.add_middleware(CorrelationIDMiddleware)

    allow_origins = settings.cors_allow_origins_list
    allow_credentials = settings.cors_allow_credentials and "*" not in allow_origins
    if settings.cors_allow_credentials and "*" in allow_origins:
        logger.warning(
            "CORS credentials disabled because wildcard origins are configured. "
            "Set APIHUB_CORS_ALLOW_ORIGINS to explicit origins to enable credentials."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(v1_router)

    @app.get("/")
    async def root():
        return AppResponse()

    return app


app = create_app()


def main():
    """Run the server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "apihub.main:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
