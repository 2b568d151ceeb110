from __future__ import annotations

import os

# Must be set before apihub.config caches its settings.
os.environ.setdefault("APIHUB_SECRET_KEY", "apihub-test-secret")

from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from apihub.config import get_settings
from apihub.db.repositories import ApiRepository, EndpointRepository
from apihub.db.session import Database
from apihub.db.tables import Api, Endpoint

SeedFn = Callable[..., Awaitable[tuple[Api, Endpoint]]]


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def sqlite_db(tmp_path: Path) -> AsyncIterator[Database]:
    db_path = tmp_path / "apihub-test.db"
    db = Database(f"sqlite+aiosqlite:///{db_path}")
    await db.connect()
    await db.create_tables()
    try:
        yield db
    finally:
        await db.disconnect()


@pytest.fixture
def seed_endpoint(sqlite_db: Database) -> SeedFn:
    """Create an API and one endpoint on it; returns both rows."""

    async def _seed(
        *,
        owner_id: str = "owner-1",
        api: dict[str, Any] | None = None,
        endpoint: dict[str, Any] | None = None,
    ) -> tuple[Api, Endpoint]:
        api_fields: dict[str, Any] = {
            "name": "Weather",
            "category": "weather",
            "base_url": "https://api.example.com",
            "visibility": "public",
            "requires_api_key": False,
        }
        api_fields.update(api or {})
        endpoint_fields: dict[str, Any] = {
            "method": "GET",
            "path": "/users/:id",
            "query_parameters": [],
            "body_parameters": [],
            "headers": [],
            "body_content_type": "json",
            "auth_required": False,
        }
        endpoint_fields.update(endpoint or {})

        async with sqlite_db.session() as session:
            api_row = await ApiRepository(session).create_api(owner_id, api_fields)
            endpoint_row = await EndpointRepository(session).create_endpoint(
                api_row.id, endpoint_fields
            )
        return api_row, endpoint_row

    return _seed
