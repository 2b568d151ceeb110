from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select

from apihub.db.repositories import ApiKeyRepository, ApiLogRepository
from apihub.db.session import Database
from apihub.db.tables import ApiKey, Endpoint, EndpointLog
from apihub.errors import (
    AuthRequiredError,
    ForbiddenError,
    InvalidCredentialError,
    InvalidEnumValueError,
    NotFoundError,
)
from apihub.services import EndpointDispatcher, ParameterBundle, StatsAggregator

Handler = Callable[[httpx.Request], httpx.Response]


class _Upstream:
    """Records outbound requests and answers with a configurable handler."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Handler = lambda request: httpx.Response(200, json={"ok": True})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def upstream() -> _Upstream:
    return _Upstream()


@pytest_asyncio.fixture
async def http_client(upstream: _Upstream) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest.fixture
def dispatcher(sqlite_db: Database, http_client: httpx.AsyncClient) -> EndpointDispatcher:
    return EndpointDispatcher(sqlite_db, http_client)


async def _logs(db: Database) -> list[EndpointLog]:
    async with db.session() as session:
        result = await session.execute(select(EndpointLog))
        return list(result.scalars().all())


async def _endpoint(db: Database, endpoint_id: str) -> Endpoint:
    async with db.session() as session:
        result = await session.execute(select(Endpoint).where(Endpoint.id == endpoint_id))
        return result.unique().scalar_one()


@pytest.mark.asyncio
async def test_successful_call_is_recorded(
    sqlite_db, seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint()

    result = await dispatcher.test(
        api.id, endpoint.id, "user-9", ParameterBundle(query_params={"id": "42"})
    )

    assert result.success is True
    assert result.status == 200
    assert result.body == {"ok": True}
    assert result.headers["content-type"] == "application/json"
    assert result.error_message is None
    assert result.latency_ms >= 0

    [sent] = upstream.requests
    assert str(sent.url) == "https://api.example.com/users/42"

    [log] = await _logs(sqlite_db)
    assert log.success is True
    assert log.user_id == "user-9"
    assert log.error_message is None

    stored = await _endpoint(sqlite_db, endpoint.id)
    assert (stored.total_calls, stored.error_count) == (1, 0)

    async with sqlite_db.session() as session:
        api_log = await ApiLogRepository(session).get_for_api(api.id)
    assert api_log is not None
    assert api_log.total_calls == 1
    assert api_log.total_errors == 0
    assert api_log.average_latency == pytest.approx(log.latency)


@pytest.mark.asyncio
async def test_text_response_is_returned_as_text(seed_endpoint, dispatcher, upstream) -> None:
    api, endpoint = await seed_endpoint(endpoint={"path": "/plain"})
    upstream.handler = lambda request: httpx.Response(200, text="pong")

    result = await dispatcher.test(api.id, endpoint.id, None, ParameterBundle())

    assert result.success is True
    assert result.body == "pong"


@pytest.mark.asyncio
async def test_non_2xx_marks_failure_with_upstream_status(
    sqlite_db, seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint()
    upstream.handler = lambda request: httpx.Response(404, json={"error": "no user"})

    result = await dispatcher.test(
        api.id, endpoint.id, None, ParameterBundle(query_params={"id": "1"})
    )

    assert result.success is False
    assert result.status == 404
    assert result.body == {"error": "no user"}
    assert result.error_message == "Upstream responded with status 404"

    stored = await _endpoint(sqlite_db, endpoint.id)
    assert (stored.total_calls, stored.error_count) == (1, 1)


@pytest.mark.asyncio
async def test_timeout_is_a_logged_failure(
    sqlite_db, seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint()

    def _timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    upstream.handler = _timeout

    result = await dispatcher.test(
        api.id, endpoint.id, "user-1", ParameterBundle(query_params={"id": "1"})
    )

    assert result.success is False
    assert result.status_code is None
    assert result.status == 500
    assert result.body["error"] == "Failed to fetch endpoint"

    [log] = await _logs(sqlite_db)
    assert log.success is False
    assert log.error_message

    async with sqlite_db.session() as session:
        api_log = await ApiLogRepository(session).get_for_api(api.id)
    assert api_log is not None
    assert api_log.total_errors == 1


@pytest.mark.asyncio
async def test_network_error_is_a_logged_failure(
    sqlite_db, seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint()

    def _refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    upstream.handler = _refused

    result = await dispatcher.test(
        api.id, endpoint.id, None, ParameterBundle(query_params={"id": "1"})
    )

    assert result.success is False
    assert result.body == {"error": "Failed to fetch endpoint", "details": "connection refused"}
    [log] = await _logs(sqlite_db)
    assert "connection refused" in log.error_message


@pytest.mark.asyncio
async def test_invalid_json_body_is_a_failure(seed_endpoint, dispatcher, upstream) -> None:
    api, endpoint = await seed_endpoint(endpoint={"path": "/broken"})
    upstream.handler = lambda request: httpx.Response(
        200, content=b"{not json", headers={"content-type": "application/json"}
    )

    result = await dispatcher.test(api.id, endpoint.id, None, ParameterBundle())

    assert result.success is False
    assert result.status == 200
    assert result.error_message == "Invalid JSON in upstream response"


@pytest.mark.asyncio
async def test_owner_bypasses_api_key(seed_endpoint, dispatcher, upstream) -> None:
    api, endpoint = await seed_endpoint(api={"requires_api_key": True})

    result = await dispatcher.test(
        api.id, endpoint.id, "owner-1", ParameterBundle(query_params={"id": "1"})
    )

    assert result.success is True
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_missing_key_is_rejected_before_any_call(
    sqlite_db, seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint(api={"requires_api_key": True})

    with pytest.raises(AuthRequiredError):
        await dispatcher.test(
            api.id, endpoint.id, "consumer-1", ParameterBundle(query_params={"id": "1"})
        )

    assert upstream.requests == []
    assert await _logs(sqlite_db) == []


@pytest.mark.asyncio
async def test_inactive_key_is_invalid_credential_without_call_or_log(
    sqlite_db, seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint(api={"requires_api_key": True})
    async with sqlite_db.session() as session:
        keys = ApiKeyRepository(session)
        api_key, raw_key = await keys.issue_key(api.id, "consumer-1")
        await keys.set_active(api_key, False)

    with pytest.raises(InvalidCredentialError):
        await dispatcher.test(
            api.id,
            endpoint.id,
            "consumer-1",
            ParameterBundle(query_params={"id": "1"}),
            presented_key=raw_key,
        )

    assert upstream.requests == []
    assert await _logs(sqlite_db) == []


@pytest.mark.asyncio
async def test_valid_consumer_key_is_accepted_and_touched(
    sqlite_db, seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint(api={"requires_api_key": True})
    async with sqlite_db.session() as session:
        _, raw_key = await ApiKeyRepository(session).issue_key(api.id, "consumer-1")

    result = await dispatcher.test(
        api.id,
        endpoint.id,
        "consumer-1",
        ParameterBundle(query_params={"id": "1"}),
        presented_key=raw_key,
    )

    assert result.success is True
    async with sqlite_db.session() as session:
        stored = (
            await session.execute(select(ApiKey).where(ApiKey.user_id == "consumer-1"))
        ).scalar_one()
    assert stored.last_used_at is not None


@pytest.mark.asyncio
async def test_someone_elses_key_is_rejected(sqlite_db, seed_endpoint, dispatcher) -> None:
    api, endpoint = await seed_endpoint(api={"requires_api_key": True})
    async with sqlite_db.session() as session:
        _, other_key = await ApiKeyRepository(session).issue_key(api.id, "consumer-2")

    with pytest.raises(InvalidCredentialError):
        await dispatcher.test(
            api.id,
            endpoint.id,
            "consumer-1",
            ParameterBundle(query_params={"id": "1"}),
            presented_key=other_key,
        )


@pytest.mark.asyncio
async def test_auth_required_endpoint_rejects_non_owner(
    seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint(endpoint={"auth_required": True})

    with pytest.raises(ForbiddenError):
        await dispatcher.test(
            api.id, endpoint.id, "consumer-1", ParameterBundle(query_params={"id": "1"})
        )
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_enum_violation_blocks_outbound_call(
    sqlite_db, seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint(
        endpoint={
            "path": "/forecast",
            "query_parameters": [
                {"name": "units", "type": "enum", "enum_values": ["metric", "imperial"]}
            ],
        }
    )

    with pytest.raises(InvalidEnumValueError):
        await dispatcher.test(
            api.id, endpoint.id, None, ParameterBundle(query_params={"units": "kelvin"})
        )

    assert upstream.requests == []
    assert await _logs(sqlite_db) == []


@pytest.mark.asyncio
async def test_endpoint_must_belong_to_api(seed_endpoint, dispatcher) -> None:
    _, endpoint = await seed_endpoint()

    with pytest.raises(NotFoundError):
        await dispatcher.test("other-api", endpoint.id, None, ParameterBundle())


@pytest.mark.asyncio
async def test_private_api_is_hidden_from_non_owners(
    seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint(
        api={"visibility": "private"}, endpoint={"path": "/ping"}
    )

    with pytest.raises(NotFoundError):
        await dispatcher.test(api.id, endpoint.id, "user-9", ParameterBundle())
    assert upstream.requests == []

    result = await dispatcher.test(api.id, endpoint.id, "owner-1", ParameterBundle())
    assert result.success is True


@pytest.mark.asyncio
async def test_stored_provider_key_is_sent_decrypted(
    seed_endpoint, dispatcher, upstream
) -> None:
    api, endpoint = await seed_endpoint(
        api={
            "provider_auth_type": "apiKey",
            "provider_auth_location": "header",
            "provider_auth_field": "X-Provider-Key",
            "provider_auth_key": "prov-secret",
        },
        endpoint={"path": "/ping"},
    )
    assert api.provider_auth_key != "prov-secret"

    await dispatcher.test(api.id, endpoint.id, None, ParameterBundle())

    [sent] = upstream.requests
    assert sent.headers["x-provider-key"] == "prov-secret"


@pytest.mark.asyncio
async def test_stats_failure_does_not_fail_the_call(
    tmp_path, sqlite_db, seed_endpoint, http_client
) -> None:
    api, endpoint = await seed_endpoint(endpoint={"path": "/ping"})
    broken = StatsAggregator(Database(f"sqlite+aiosqlite:///{tmp_path / 'never.db'}"))
    dispatcher = EndpointDispatcher(sqlite_db, http_client, stats=broken)

    result = await dispatcher.test(api.id, endpoint.id, None, ParameterBundle())

    assert result.success is True
    assert await _logs(sqlite_db) == []
