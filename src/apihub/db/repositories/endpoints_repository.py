"""Repository for endpoint definitions."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apihub.db.tables import Endpoint, EndpointLog


class EndpointRepository:
    """Repository for endpoint CRUD and call counters."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_api(self, api_id: str, endpoint_id: str) -> Endpoint | None:
        """Get an endpoint (with its API joined in) only if it belongs to ``api_id``."""
        result = await self._session.execute(
            select(Endpoint).where(
                Endpoint.id == endpoint_id,
                Endpoint.api_id == api_id,
            )
        )
        return result.unique().scalar_one_or_none()

    async def list_for_api(self, api_id: str) -> list[Endpoint]:
        result = await self._session.execute(
            select(Endpoint)
            .where(Endpoint.api_id == api_id)
            .order_by(Endpoint.created_at, Endpoint.id)
        )
        return list(result.unique().scalars().all())

    async def create_endpoint(self, api_id: str, data: dict[str, Any]) -> Endpoint:
        endpoint = Endpoint(api_id=api_id, **data)
        self._session.add(endpoint)
        await self._session.flush()
        return endpoint

    async def update_endpoint(
        self, endpoint: Endpoint, changes: dict[str, Any]
    ) -> Endpoint:
        for field, value in changes.items():
            setattr(endpoint, field, value)
        await self._session.flush()
        return endpoint

    async def delete_endpoint(self, endpoint: Endpoint) -> None:
        await self._session.execute(
            delete(EndpointLog).where(EndpointLog.endpoint_id == endpoint.id)
        )
        await self._session.delete(endpoint)
        await self._session.flush()

    async def increment_counters(self, endpoint_id: str, *, failed: bool) -> str | None:
        """
        Atomically bump ``total_calls`` (and ``error_count`` when failed).

        The increment is evaluated by the database so concurrent callers never
        overwrite each other. Returns the owning API id, or None if the
        endpoint no longer exists.
        """
        result = await self._session.execute(
            update(Endpoint)
            .where(Endpoint.id == endpoint_id)
            .values(
                total_calls=Endpoint.total_calls + 1,
                error_count=Endpoint.error_count + (1 if failed else 0),
                updated_at=Endpoint.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return await self._session.scalar(
            select(Endpoint.api_id).where(Endpoint.id == endpoint_id)
        )
