"""Repositories for call logs and per-API aggregates."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from apihub.db.tables import ApiLog, Endpoint, EndpointLog


class EndpointLogRepository:
    """Append-only access to endpoint call logs."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        endpoint_id: str,
        user_id: str | None,
        success: bool,
        latency: float,
        error_message: str | None = None,
    ) -> EndpointLog:
        log = EndpointLog(
            endpoint_id=endpoint_id,
            user_id=user_id,
            success=success,
            latency=latency,
            error_message=error_message,
        )
        self._session.add(log)
        await self._session.flush()
        return log

    async def list_for_api_since(
        self, api_id: str, since: datetime
    ) -> list[EndpointLog]:
        """Logs for every endpoint of ``api_id`` created at or after ``since``."""
        result = await self._session.execute(
            select(EndpointLog)
            .join(Endpoint, Endpoint.id == EndpointLog.endpoint_id)
            .where(Endpoint.api_id == api_id, EndpointLog.created_at >= since)
            .order_by(EndpointLog.created_at)
        )
        return list(result.scalars().all())


class ApiLogRepository:
    """Rolling per-API call statistics."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_api(self, api_id: str) -> ApiLog | None:
        result = await self._session.execute(
            select(ApiLog).where(ApiLog.api_id == api_id)
        )
        return result.scalar_one_or_none()

    async def get_for_apis(self, api_ids: list[str]) -> dict[str, ApiLog]:
        if not api_ids:
            return {}
        result = await self._session.execute(
            select(ApiLog).where(ApiLog.api_id.in_(api_ids))
        )
        return {log.api_id: log for log in result.scalars().all()}

    async def _apply_call(self, api_id: str, latency: float, errors: int) -> bool:
        # Mean and counters are evaluated by the database in one statement.
        result = await self._session.execute(
            update(ApiLog)
            .where(ApiLog.api_id == api_id)
            .values(
                average_latency=(
                    ApiLog.average_latency * ApiLog.total_calls + latency
                )
                / (ApiLog.total_calls + 1),
                total_calls=ApiLog.total_calls + 1,
                total_errors=ApiLog.total_errors + errors,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def record_call(self, api_id: str, *, latency: float, failed: bool) -> None:
        """
        Fold one call into the API's aggregate.

        The row is created on the first call. If another writer creates it
        concurrently, the insert loses on the unique constraint and the
        update is retried.
        """
        errors = 1 if failed else 0
        latency = float(latency)
        if await self._apply_call(api_id, latency, errors):
            return

        try:
            async with self._session.begin_nested():
                self._session.add(
                    ApiLog(
                        api_id=api_id,
                        total_calls=1,
                        total_errors=errors,
                        average_latency=latency,
                    )
                )
        except IntegrityError:
            if not await self._apply_call(api_id, latency, errors):
                raise
