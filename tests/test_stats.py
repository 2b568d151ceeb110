from __future__ import annotations

import asyncio
import statistics

import pytest
from sqlalchemy import func, select

from apihub.db.repositories import ApiLogRepository, EndpointRepository
from apihub.db.tables import ApiLog, Endpoint, EndpointLog
from apihub.services import StatsAggregator


async def _api_log(db, api_id: str) -> ApiLog:
    async with db.session() as session:
        log = await ApiLogRepository(session).get_for_api(api_id)
    assert log is not None
    return log


@pytest.mark.asyncio
async def test_first_call_creates_api_log(sqlite_db, seed_endpoint) -> None:
    api, endpoint = await seed_endpoint()
    stats = StatsAggregator(sqlite_db)

    assert await stats.record(endpoint.id, None, success=False, latency_ms=12.5, error_message="boom")

    log = await _api_log(sqlite_db, api.id)
    assert (log.total_calls, log.total_errors) == (1, 1)
    assert log.average_latency == pytest.approx(12.5)


@pytest.mark.asyncio
async def test_sequential_mean_matches_arithmetic_mean(sqlite_db, seed_endpoint) -> None:
    api, endpoint = await seed_endpoint()
    stats = StatsAggregator(sqlite_db)
    latencies = [10.0, 20.0, 35.5, 4.0, 120.25]

    for index, latency in enumerate(latencies):
        await stats.record(
            endpoint.id, "user-1", success=index % 2 == 0, latency_ms=latency
        )

    log = await _api_log(sqlite_db, api.id)
    assert log.total_calls == len(latencies)
    assert log.total_errors == 2
    assert log.average_latency == pytest.approx(statistics.fmean(latencies))

    async with sqlite_db.session() as session:
        stored = (
            await session.execute(select(Endpoint).where(Endpoint.id == endpoint.id))
        ).unique().scalar_one()
    assert (stored.total_calls, stored.error_count) == (5, 2)


@pytest.mark.asyncio
async def test_concurrent_records_lose_no_updates(sqlite_db, seed_endpoint) -> None:
    api, first = await seed_endpoint()
    async with sqlite_db.session() as session:
        second = await EndpointRepository(session).create_endpoint(
            api.id, {"method": "POST", "path": "/orders"}
        )
    stats = StatsAggregator(sqlite_db)
    latencies = [float(n * 7 % 53 + 1) for n in range(16)]

    results = await asyncio.gather(
        *(
            stats.record(
                (first if n % 2 else second).id,
                f"user-{n % 3}",
                success=n % 4 != 0,
                latency_ms=latency,
            )
            for n, latency in enumerate(latencies)
        )
    )
    assert all(results)

    log = await _api_log(sqlite_db, api.id)
    assert log.total_calls == len(latencies)
    assert log.total_errors == 4
    assert log.average_latency == pytest.approx(statistics.fmean(latencies))

    async with sqlite_db.session() as session:
        rows = await session.scalar(select(func.count(EndpointLog.id)))
        counters = (
            await session.execute(
                select(func.sum(Endpoint.total_calls), func.sum(Endpoint.error_count))
            )
        ).one()
    assert rows == len(latencies)
    assert tuple(counters) == (16, 4)


@pytest.mark.asyncio
async def test_unknown_endpoint_is_swallowed_and_rolled_back(sqlite_db) -> None:
    stats = StatsAggregator(sqlite_db)

    assert await stats.record("missing", None, success=True, latency_ms=1.0) is False

    async with sqlite_db.session() as session:
        rows = await session.scalar(select(func.count(EndpointLog.id)))
    assert rows == 0
