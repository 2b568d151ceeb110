"""Read-side rollups over endpoint call logs."""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from apihub.contracts import (
    DailyTraffic,
    DailyUsers,
    TrafficAnalyticsResponse,
    UserAnalyticsResponse,
)
from apihub.db.repositories import EndpointLogRepository
from apihub.db.session import Database
from apihub.db.tables import EndpointLog

ACTIVE_USER_WINDOW = timedelta(hours=24)


def _as_utc_aware(ts: datetime) -> datetime:
    """Normalize datetimes to UTC-aware for safe comparison across DB backends."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _day(log: EndpointLog) -> str:
    return _as_utc_aware(log.created_at).date().isoformat()


def summarize_traffic(logs: Sequence[EndpointLog]) -> TrafficAnalyticsResponse:
    """Traffic totals and per-day buckets for already-fetched logs."""
    if not logs:
        return TrafficAnalyticsResponse(
            total_calls=0, error_rate=0.0, average_latency=0, per_day=[]
        )

    total_calls = len(logs)
    total_errors = sum(1 for log in logs if not log.success)
    average_latency = sum(log.latency or 0.0 for log in logs) / total_calls

    buckets: dict[str, list[EndpointLog]] = defaultdict(list)
    for log in logs:
        buckets[_day(log)].append(log)

    per_day = [
        DailyTraffic(
            date=day,
            calls=len(day_logs),
            errors=sum(1 for log in day_logs if not log.success),
            latency=round_half_up(
                sum(log.latency or 0.0 for log in day_logs) / len(day_logs)
            ),
        )
        for day, day_logs in sorted(buckets.items())
    ]
    return TrafficAnalyticsResponse(
        total_calls=total_calls,
        error_rate=round(total_errors / total_calls * 100, 2),
        average_latency=round_half_up(average_latency),
        per_day=per_day,
    )


def summarize_users(
    logs: Sequence[EndpointLog], *, now: datetime
) -> UserAnalyticsResponse:
    """Distinct-user counts for already-fetched logs. Anonymous calls are ignored."""
    if not logs:
        return UserAnalyticsResponse(active_users=0, total_users=0, per_day=[])

    active_since = now - ACTIVE_USER_WINDOW
    total_users = {log.user_id for log in logs if log.user_id}
    active_users = {
        log.user_id
        for log in logs
        if log.user_id and _as_utc_aware(log.created_at) >= active_since
    }

    buckets: dict[str, set[str]] = defaultdict(set)
    for log in logs:
        users = buckets[_day(log)]
        if log.user_id:
            users.add(log.user_id)

    return UserAnalyticsResponse(
        active_users=len(active_users),
        total_users=len(total_users),
        per_day=[
            DailyUsers(date=day, active_users=len(users))
            for day, users in sorted(buckets.items())
        ],
    )


class AnalyticsReader:
    """Traffic and user analytics for one API over a trailing window of days."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def _window_logs(
        self, api_id: str, days: int, now: datetime
    ) -> list[EndpointLog]:
        if days < 1:
            raise ValueError("days must be >= 1")
        async with self._database.session() as session:
            return await EndpointLogRepository(session).list_for_api_since(
                api_id, now - timedelta(days=days)
            )

    async def traffic(self, api_id: str, days: int) -> TrafficAnalyticsResponse:
        logs = await self._window_logs(api_id, days, datetime.now(UTC))
        return summarize_traffic(logs)

    async def users(self, api_id: str, days: int) -> UserAnalyticsResponse:
        now = datetime.now(UTC)
        logs = await self._window_logs(api_id, days, now)
        return summarize_users(logs, now=now)
