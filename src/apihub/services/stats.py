"""Per-call statistics: endpoint counters and the rolling per-API log."""

from __future__ import annotations

import logging

from apihub.db.repositories import (
    ApiLogRepository,
    EndpointLogRepository,
    EndpointRepository,
)
from apihub.db.session import Database

logger = logging.getLogger(__name__)


class StatsAggregator:
    """
    Folds each test call into the store.

    All writes for one call share a transaction. Counters and the running
    mean are updated by single SQL statements, so concurrent recorders never
    lose an update.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def record(
        self,
        endpoint_id: str,
        caller_id: str | None,
        *,
        success: bool,
        latency_ms: float,
        error_message: str | None = None,
    ) -> bool:
        """
        Record one call. Never raises.

        Returns:
            True if the call was recorded, False if recording failed
        """
        try:
            async with self._database.session() as session:
                await EndpointLogRepository(session).add(
                    endpoint_id=endpoint_id,
                    user_id=caller_id,
                    success=success,
                    latency=latency_ms,
                    error_message=error_message,
                )
                api_id = await EndpointRepository(session).increment_counters(
                    endpoint_id, failed=not success
                )
                if api_id is None:
                    raise LookupError(f"Endpoint {endpoint_id} no longer exists")
                await ApiLogRepository(session).record_call(
                    api_id, latency=latency_ms, failed=not success
                )
        except Exception:
            logger.exception("Failed to record stats for endpoint %s", endpoint_id)
            return False
        return True
