"""Endpoint test dispatcher: authorize, build, send, classify, record."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx

from apihub.db.repositories import ApiKeyRepository, EndpointRepository, hash_api_key
from apihub.errors import (
    AuthRequiredError,
    ForbiddenError,
    InvalidCredentialError,
    NotFoundError,
)
from apihub.services.request_builder import ParameterBundle, build_outbound_request
from apihub.services.stats import StatsAggregator

if TYPE_CHECKING:
    from apihub.db.session import Database
    from apihub.db.tables import Api, ApiKey, Endpoint

logger = logging.getLogger(__name__)

FETCH_FAILED_MESSAGE = "Failed to fetch endpoint"


class DenialReason(StrEnum):
    NOT_OWNER = "not_owner"
    AUTH_REQUIRED = "auth_required"
    INVALID_CREDENTIAL = "invalid_credential"


@dataclass(frozen=True)
class AccessPolicy:
    """The parts of an API and endpoint that govern who may test it."""

    owner_id: str
    requires_api_key: bool
    endpoint_auth_required: bool

    @classmethod
    def for_endpoint(cls, api: Api, endpoint: Endpoint) -> AccessPolicy:
        return cls(
            owner_id=api.owner_id,
            requires_api_key=api.requires_api_key,
            endpoint_auth_required=endpoint.auth_required,
        )


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: DenialReason | None = None
    # True when the presented consumer key was checked and accepted.
    used_key: bool = False

    def raise_if_denied(self) -> None:
        if self.allowed:
            return
        if self.reason is DenialReason.NOT_OWNER:
            raise ForbiddenError("You are not authorized to test this endpoint")
        if self.reason is DenialReason.AUTH_REQUIRED:
            raise AuthRequiredError("API key required")
        raise InvalidCredentialError("Invalid or inactive API key")


def authorize_test_call(
    policy: AccessPolicy,
    caller_id: str | None,
    presented_key: str | None,
    issued_key: ApiKey | None,
) -> AccessDecision:
    """
    Decide whether ``caller_id`` may run a test call.

    ``issued_key`` is the stored key for (API, caller), if any.
    """
    is_owner = caller_id is not None and caller_id == policy.owner_id

    if policy.endpoint_auth_required and not is_owner:
        return AccessDecision(False, DenialReason.NOT_OWNER)
    if not policy.requires_api_key or is_owner:
        return AccessDecision(True)
    if not presented_key:
        return AccessDecision(False, DenialReason.AUTH_REQUIRED)
    if (
        issued_key is None
        or not issued_key.is_active
        or not secrets.compare_digest(issued_key.key_hash, hash_api_key(presented_key))
    ):
        return AccessDecision(False, DenialReason.INVALID_CREDENTIAL)
    return AccessDecision(True, used_key=True)


@dataclass
class TestResult:
    """Outcome of one outbound test call."""

    __test__ = False

    success: bool
    status_code: int | None
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    latency_ms: float = 0.0
    error_message: str | None = None

    @property
    def status(self) -> int:
        return self.status_code if self.status_code is not None else 500


def _read_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        return response.json()
    return response.text


class EndpointDispatcher:
    """
    Runs endpoint test calls through the shared outbound client.

    Example:
        dispatcher = EndpointDispatcher(db, client)
        result = await dispatcher.test(api_id, endpoint_id, "user-1", bundle)
    """

    def __init__(
        self,
        database: Database,
        http_client: httpx.AsyncClient,
        *,
        stats: StatsAggregator | None = None,
    ) -> None:
        self._database = database
        self._client = http_client
        self._stats = stats or StatsAggregator(database)

    async def test(
        self,
        api_id: str,
        endpoint_id: str,
        caller_id: str | None,
        bundle: ParameterBundle,
        presented_key: str | None = None,
    ) -> TestResult:
        """
        Run one test call against a registered endpoint.

        Raises:
            NotFoundError: endpoint missing or not part of ``api_id``
            ForbiddenError, AuthRequiredError, InvalidCredentialError: denied
            RequestBuildError: the caller's parameters cannot form a request
        """
        async with self._database.session() as session:
            endpoint = await EndpointRepository(session).get_for_api(api_id, endpoint_id)
            if endpoint is None:
                raise NotFoundError("Endpoint not found")
            api = endpoint.api
            if api.visibility == "private" and api.owner_id != caller_id:
                raise NotFoundError("Endpoint not found")

            keys = ApiKeyRepository(session)
            issued_key = None
            if caller_id is not None and api.requires_api_key:
                issued_key = await keys.get_for(api.id, caller_id)

            decision = authorize_test_call(
                AccessPolicy.for_endpoint(api, endpoint),
                caller_id,
                presented_key,
                issued_key,
            )
            if not decision.allowed:
                logger.info(
                    "Test call denied for endpoint %s: %s", endpoint_id, decision.reason
                )
            decision.raise_if_denied()
            if decision.used_key and issued_key is not None:
                await keys.touch(issued_key.id)

        outbound = build_outbound_request(api, endpoint, bundle)
        result = await self._send(outbound.to_httpx())

        logger.info(
            "Test call %s %s -> %s in %.1fms",
            outbound.method,
            outbound.url.host,
            result.status,
            result.latency_ms,
            extra={
                "api_id": api.id,
                "endpoint_id": endpoint.id,
                "caller_id": caller_id,
                "upstream_status": result.status_code,
                "latency_ms": round(result.latency_ms, 1),
            },
        )

        await self._stats.record(
            endpoint.id,
            caller_id,
            success=result.success,
            latency_ms=result.latency_ms,
            error_message=result.error_message,
        )
        return result

    async def _send(self, request: httpx.Request) -> TestResult:
        start = time.perf_counter()
        try:
            response = await self._client.send(request)
        except httpx.TimeoutException as exc:
            latency_ms = (time.perf_counter() - start) * 1000
            return TestResult(
                success=False,
                status_code=None,
                body={"error": FETCH_FAILED_MESSAGE, "details": "Request timed out"},
                latency_ms=latency_ms,
                error_message=f"Upstream request timed out ({type(exc).__name__})",
            )
        except httpx.RequestError as exc:
            latency_ms = (time.perf_counter() - start) * 1000
            return TestResult(
                success=False,
                status_code=None,
                body={"error": FETCH_FAILED_MESSAGE, "details": str(exc)},
                latency_ms=latency_ms,
                error_message=f"{FETCH_FAILED_MESSAGE}: {exc}",
            )
        latency_ms = (time.perf_counter() - start) * 1000

        headers = dict(response.headers)
        try:
            body = _read_body(response)
        except ValueError as exc:
            return TestResult(
                success=False,
                status_code=response.status_code,
                body={"error": "Invalid JSON in upstream response", "details": str(exc)},
                headers=headers,
                latency_ms=latency_ms,
                error_message="Invalid JSON in upstream response",
            )

        if not response.is_success:
            return TestResult(
                success=False,
                status_code=response.status_code,
                body=body,
                headers=headers,
                latency_ms=latency_ms,
                error_message=f"Upstream responded with status {response.status_code}",
            )
        return TestResult(
            success=True,
            status_code=response.status_code,
            body=body,
            headers=headers,
            latency_ms=latency_ms,
        )
