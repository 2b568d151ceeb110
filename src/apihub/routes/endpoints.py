"""Endpoint definition and endpoint test routes."""

import logging

from fastapi import APIRouter, Depends

from apihub.auth import get_caller_id, get_presented_api_key, require_caller
from apihub.contracts import (
    CreateEndpointRequest,
    EndpointResponse,
    EndpointsListResponse,
    EndpointTestRequest,
    EndpointTestResponse,
    UpdateEndpointRequest,
)
from apihub.db.repositories import EndpointRepository
from apihub.db.session import Database
from apihub.errors import ApiHubError, NotFoundError, to_http_exception
from apihub.routes.apis_utils import (
    endpoint_to_response,
    load_owned_api,
    load_visible_api,
)
from apihub.routes.depends import get_dispatcher, require_database
from apihub.services import EndpointDispatcher, ParameterBundle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/apis/{api_id}/endpoints", tags=["endpoints"])


@router.get("", response_model=EndpointsListResponse)
async def list_endpoints(
    api_id: str,
    caller_id: str | None = Depends(get_caller_id),
    db: Database = Depends(require_database),
) -> EndpointsListResponse:
    try:
        async with db.session() as session:
            await load_visible_api(session, api_id, caller_id)
            endpoints = await EndpointRepository(session).list_for_api(api_id)
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc

    items = [endpoint_to_response(endpoint) for endpoint in endpoints]
    return EndpointsListResponse(endpoints=items, total=len(items))


@router.get("/{endpoint_id}", response_model=EndpointResponse)
async def get_endpoint(
    api_id: str,
    endpoint_id: str,
    caller_id: str | None = Depends(get_caller_id),
    db: Database = Depends(require_database),
) -> EndpointResponse:
    try:
        async with db.session() as session:
            await load_visible_api(session, api_id, caller_id)
            endpoint = await EndpointRepository(session).get_for_api(api_id, endpoint_id)
            if endpoint is None:
                raise NotFoundError("Endpoint not found")
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc
    return endpoint_to_response(endpoint)


@router.post("", response_model=EndpointResponse, status_code=201)
async def create_endpoint(
    api_id: str,
    body: CreateEndpointRequest,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> EndpointResponse:
    """Define an endpoint on an API the caller owns."""
    try:
        async with db.session() as session:
            await load_owned_api(session, api_id, caller_id)
            endpoint = await EndpointRepository(session).create_endpoint(
                api_id, body.model_dump(mode="json")
            )
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc
    return endpoint_to_response(endpoint)


@router.patch("/{endpoint_id}", response_model=EndpointResponse)
async def update_endpoint(
    api_id: str,
    endpoint_id: str,
    body: UpdateEndpointRequest,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> EndpointResponse:
    try:
        async with db.session() as session:
            await load_owned_api(session, api_id, caller_id)
            repo = EndpointRepository(session)
            endpoint = await repo.get_for_api(api_id, endpoint_id)
            if endpoint is None:
                raise NotFoundError("Endpoint not found")
            endpoint = await repo.update_endpoint(endpoint, body.changes())
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc
    return endpoint_to_response(endpoint)


@router.delete("/{endpoint_id}", status_code=204)
async def delete_endpoint(
    api_id: str,
    endpoint_id: str,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> None:
    try:
        async with db.session() as session:
            await load_owned_api(session, api_id, caller_id)
            repo = EndpointRepository(session)
            endpoint = await repo.get_for_api(api_id, endpoint_id)
            if endpoint is None:
                raise NotFoundError("Endpoint not found")
            await repo.delete_endpoint(endpoint)
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{endpoint_id}/test", response_model=EndpointTestResponse)
async def test_endpoint(
    api_id: str,
    endpoint_id: str,
    body: EndpointTestRequest,
    caller_id: str | None = Depends(get_caller_id),
    presented_key: str | None = Depends(get_presented_api_key),
    dispatcher: EndpointDispatcher = Depends(get_dispatcher),
) -> EndpointTestResponse:
    """
    Run a live call against the endpoint through the server-side proxy.

    Upstream failures are reported in the body with ``success=false``; only
    authorization and parameter errors produce an error status.
    """
    bundle = ParameterBundle(
        query_params=body.parameters.query_params,
        body_params=body.parameters.body_params,
        headers=[(header.name, header.value) for header in body.headers],
    )
    try:
        result = await dispatcher.test(
            api_id, endpoint_id, caller_id, bundle, presented_key=presented_key
        )
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc

    return EndpointTestResponse(
        success=result.success,
        status=result.status,
        data=result.body,
        headers=result.headers,
        latency_ms=result.latency_ms,
        error=result.error_message,
    )
