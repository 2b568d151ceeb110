"""Helpers shared by the API, endpoint, key, and analytics routes."""

from sqlalchemy.ext.asyncio import AsyncSession

from apihub.contracts import (
    ApiKeyResponse,
    ApiResponse,
    ApiStats,
    EndpointResponse,
)
from apihub.db.repositories import ApiRepository
from apihub.db.tables import Api, ApiKey, ApiLog, Endpoint
from apihub.errors import ForbiddenError, NotFoundError


async def load_visible_api(
    session: AsyncSession, api_id: str, caller_id: str | None
) -> Api:
    """Load an API the caller may read. Private APIs are hidden from non-owners."""
    api = await ApiRepository(session).get_by_id(api_id)
    if api is None:
        raise NotFoundError("API not found")
    if api.visibility == "private" and api.owner_id != caller_id:
        raise NotFoundError("API not found")
    return api


async def load_owned_api(session: AsyncSession, api_id: str, caller_id: str) -> Api:
    """Load an API the caller owns."""
    api = await ApiRepository(session).get_by_id(api_id)
    if api is None:
        raise NotFoundError("API not found")
    if api.owner_id != caller_id:
        raise ForbiddenError("You are not the owner of this API")
    return api


def api_to_response(api: Api, log: ApiLog | None = None) -> ApiResponse:
    stats = ApiStats()
    if log is not None:
        stats = ApiStats(
            total_calls=log.total_calls,
            total_errors=log.total_errors,
            average_latency=log.average_latency,
        )
    return ApiResponse(
        id=api.id,
        owner_id=api.owner_id,
        name=api.name,
        description=api.description,
        category=api.category,
        base_url=api.base_url,
        logo=api.logo,
        visibility=api.visibility,
        requires_api_key=api.requires_api_key,
        provider_auth_type=api.provider_auth_type,
        provider_auth_location=api.provider_auth_location,
        provider_auth_field=api.provider_auth_field,
        has_provider_key=api.has_provider_key,
        total_views=api.total_views,
        stats=stats,
        created_at=api.created_at.isoformat(),
        updated_at=api.updated_at.isoformat(),
    )


def endpoint_to_response(endpoint: Endpoint) -> EndpointResponse:
    return EndpointResponse(
        id=endpoint.id,
        api_id=endpoint.api_id,
        method=endpoint.method,
        path=endpoint.path,
        description=endpoint.description,
        query_parameters=endpoint.query_parameters or [],
        body_parameters=endpoint.body_parameters or [],
        headers=endpoint.headers or [],
        body_content_type=endpoint.body_content_type,
        auth_required=endpoint.auth_required,
        total_calls=endpoint.total_calls,
        error_count=endpoint.error_count,
        created_at=endpoint.created_at.isoformat(),
        updated_at=endpoint.updated_at.isoformat(),
    )


def api_key_to_response(api_key: ApiKey) -> ApiKeyResponse:
    return ApiKeyResponse(
        id=api_key.id,
        api_id=api_key.api_id,
        user_id=api_key.user_id,
        key_prefix=api_key.key_prefix,
        is_active=api_key.is_active,
        last_used_at=api_key.last_used_at.isoformat() if api_key.last_used_at else None,
        created_at=api_key.created_at.isoformat(),
    )
