"""Shared FastAPI dependencies for route handlers."""

import httpx
from fastapi import Depends, HTTPException, Request

from apihub.db.session import Database
from apihub.services import AnalyticsReader, EndpointDispatcher


def require_database(request: Request) -> Database:
    """FastAPI dependency that returns the database or raises 503."""
    db: Database | None = getattr(request.app.state, "database", None)
    if db is None or not db.is_connected:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def require_http_client(request: Request) -> httpx.AsyncClient:
    """FastAPI dependency that returns the shared outbound client or raises 503."""
    client: httpx.AsyncClient | None = getattr(request.app.state, "http_client", None)
    if client is None or client.is_closed:
        raise HTTPException(status_code=503, detail="Outbound client not available")
    return client


def get_dispatcher(
    db: Database = Depends(require_database),
    client: httpx.AsyncClient = Depends(require_http_client),
) -> EndpointDispatcher:
    return EndpointDispatcher(db, client)


def get_analytics_reader(db: Database = Depends(require_database)) -> AnalyticsReader:
    return AnalyticsReader(db)
