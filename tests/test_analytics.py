from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from apihub.db.repositories import EndpointLogRepository
from apihub.db.tables import EndpointLog
from apihub.services import AnalyticsReader
from apihub.services.analytics import round_half_up, summarize_traffic, summarize_users


def _log(
    at: datetime, *, success: bool = True, latency: float = 10.0, user: str | None = None
) -> EndpointLog:
    return EndpointLog(
        endpoint_id="ep-1", user_id=user, success=success, latency=latency, created_at=at
    )


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def test_empty_window_is_all_zero() -> None:
    traffic = summarize_traffic([])
    assert traffic.total_calls == 0
    assert traffic.error_rate == 0
    assert traffic.average_latency == 0
    assert traffic.per_day == []

    users = summarize_users([], now=NOW)
    assert (users.active_users, users.total_users, users.per_day) == (0, 0, [])


def test_traffic_buckets_by_utc_day_sorted_ascending() -> None:
    eastern = timezone(timedelta(hours=-5))
    logs = [
        _log(NOW, latency=10.0),
        _log(NOW - timedelta(hours=1), success=False, latency=11.0),
        _log(NOW - timedelta(days=2), success=False, latency=3.0),
        # 2026-03-08 01:00 UTC
        _log(datetime(2026, 3, 7, 20, 0, tzinfo=eastern), latency=2.0),
    ]

    traffic = summarize_traffic(logs)

    assert traffic.total_calls == 4
    assert traffic.error_rate == 50.0
    assert traffic.average_latency == 7
    assert [day.date for day in traffic.per_day] == ["2026-03-08", "2026-03-10"]
    earlier, today = traffic.per_day
    assert (earlier.calls, earlier.errors, earlier.latency) == (2, 1, 3)
    assert (today.calls, today.errors, today.latency) == (2, 1, 11)


def test_error_rate_is_rounded_to_two_places() -> None:
    logs = [_log(NOW, success=False)] + [_log(NOW) for _ in range(2)]
    assert summarize_traffic(logs).error_rate == 33.33


def test_naive_timestamps_are_treated_as_utc() -> None:
    traffic = summarize_traffic([_log(datetime(2026, 3, 9, 23, 59))])
    assert traffic.per_day[0].date == "2026-03-09"


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


def test_users_active_in_last_24_hours_and_per_day() -> None:
    logs = [
        _log(NOW - timedelta(hours=1), user="a"),
        _log(NOW - timedelta(hours=2), user="a"),
        _log(NOW - timedelta(hours=30), user="b"),
        _log(NOW - timedelta(hours=3), user=None),
        _log(NOW - timedelta(days=3), user="c"),
    ]

    users = summarize_users(logs, now=NOW)

    assert users.active_users == 1
    assert users.total_users == 3
    assert [(day.date, day.active_users) for day in users.per_day] == [
        ("2026-03-07", 1),
        ("2026-03-09", 1),
        ("2026-03-10", 1),
    ]


def test_anonymous_only_day_is_still_bucketed() -> None:
    users = summarize_users([_log(NOW, user=None)], now=NOW)
    assert users.total_users == 0
    assert [(day.date, day.active_users) for day in users.per_day] == [("2026-03-10", 0)]


@pytest.mark.asyncio
async def test_reader_filters_by_window_and_is_idempotent(sqlite_db, seed_endpoint) -> None:
    api, endpoint = await seed_endpoint()
    _, other = await seed_endpoint(owner_id="owner-2")
    now = datetime.now(UTC)

    async with sqlite_db.session() as session:
        logs = EndpointLogRepository(session)
        await logs.add(
            endpoint_id=endpoint.id, user_id="u1", success=True, latency=20.0
        )
        old = await logs.add(
            endpoint_id=endpoint.id, user_id="u2", success=False, latency=80.0
        )
        old.created_at = now - timedelta(days=10)
        await logs.add(endpoint_id=other.id, user_id="u3", success=False, latency=5.0)
        await session.flush()

    reader = AnalyticsReader(sqlite_db)
    first = await reader.traffic(api.id, 7)
    second = await reader.traffic(api.id, 7)

    assert first == second
    assert first.total_calls == 1
    assert first.error_rate == 0
    assert first.average_latency == 20

    wide = await reader.traffic(api.id, 30)
    assert wide.total_calls == 2
    assert wide.error_rate == 50.0

    users = await reader.users(api.id, 7)
    assert users == await reader.users(api.id, 7)
    assert (users.active_users, users.total_users) == (1, 1)


@pytest.mark.asyncio
async def test_reader_rejects_non_positive_window(sqlite_db) -> None:
    with pytest.raises(ValueError):
        await AnalyticsReader(sqlite_db).traffic("api", 0)
