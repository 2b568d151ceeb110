"""Repository for API catalog operations."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apihub.crypto import encrypt_secret
from apihub.db.tables import Api, ApiKey, ApiLog, Endpoint, EndpointLog

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    "views": Api.total_views,
    "createdAt": Api.created_at,
}


class ApiRepository:
    """
    Repository for registered APIs.

    Provider keys are encrypted here, on the way into the row, so no caller
    can persist plaintext by accident.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, api_id: str) -> Api | None:
        result = await self._session.execute(select(Api).where(Api.id == api_id))
        return result.scalar_one_or_none()

    async def create_api(self, owner_id: str, data: dict[str, Any]) -> Api:
        """
        Create an API owned by ``owner_id``.

        Args:
            owner_id: Caller identity that becomes the owner
            data: Validated create payload (plaintext ``provider_auth_key``)

        Returns:
            The flushed Api row
        """
        fields = dict(data)
        raw_key = fields.pop("provider_auth_key", None)
        api = Api(
            owner_id=owner_id,
            provider_auth_key=encrypt_secret(raw_key) if raw_key else None,
            **fields,
        )
        self._session.add(api)
        await self._session.flush()
        return api

    async def update_api(self, api: Api, changes: dict[str, Any]) -> Api:
        """Merge a validated patch onto ``api``."""
        for field, value in changes.items():
            if field == "provider_auth_key":
                value = encrypt_secret(value) if value else None
            setattr(api, field, value)
        await self._session.flush()
        return api

    async def delete_api(self, api: Api) -> None:
        """Delete an API and everything hanging off it in the current transaction."""
        endpoint_ids = select(Endpoint.id).where(Endpoint.api_id == api.id)
        await self._session.execute(
            delete(EndpointLog).where(EndpointLog.endpoint_id.in_(endpoint_ids))
        )
        await self._session.execute(delete(Endpoint).where(Endpoint.api_id == api.id))
        await self._session.execute(delete(ApiKey).where(ApiKey.api_id == api.id))
        await self._session.execute(delete(ApiLog).where(ApiLog.api_id == api.id))
        await self._session.delete(api)
        await self._session.flush()
        logger.info("Deleted API %s and its dependent rows", api.id)

    async def increment_views(self, api_id: str) -> None:
        await self._session.execute(
            update(Api)
            .where(Api.id == api_id)
            .values(
                total_views=Api.total_views + 1,
                # Views are not edits.
                updated_at=Api.updated_at,
            )
        )

    async def list_apis(
        self,
        *,
        owner_id: str | None = None,
        public_only: bool = False,
        category: str | None = None,
        search: str | None = None,
        sort: str | None = None,
        limit: int = 12,
        offset: int = 0,
    ) -> tuple[list[Api], int]:
        """
        List APIs with optional filtering.

        Args:
            owner_id: Only APIs owned by this user
            public_only: Only public APIs
            category: Exact category match
            search: Case-insensitive substring of name or description
            sort: ``views`` or ``createdAt`` (newest first either way)
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            (page of APIs, total matching count)
        """
        conditions = []
        if owner_id is not None:
            conditions.append(Api.owner_id == owner_id)
        if public_only:
            conditions.append(Api.visibility == "public")
        if category:
            conditions.append(Api.category == category)
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(Api.name.ilike(pattern), Api.description.ilike(pattern))
            )

        order_column = _SORT_COLUMNS.get(sort or "", Api.created_at)
        query = (
            select(Api)
            .where(*conditions)
            .order_by(order_column.desc(), Api.id)
            .limit(limit)
            .offset(offset)
        )
        count_query = select(func.count(Api.id)).where(*conditions)

        result = await self._session.execute(query)
        total = await self._session.scalar(count_query)
        return list(result.scalars().all()), int(total or 0)
