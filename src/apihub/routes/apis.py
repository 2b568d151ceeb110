"""API catalog routes.

- Create / Update / Delete: owner only
- List public, get by id: anyone (private APIs are visible to their owner only)
- List mine: authenticated caller
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apihub.auth import get_caller_id, require_caller
from apihub.config import get_settings
from apihub.contracts import (
    ApiResponse,
    ApiSort,
    ApisListResponse,
    CreateApiRequest,
    CreateApiResponse,
    UpdateApiRequest,
)
from apihub.db.repositories import ApiKeyRepository, ApiLogRepository, ApiRepository
from apihub.db.session import Database
from apihub.db.tables import Api
from apihub.errors import ApiHubError, to_http_exception
from apihub.routes.apis_utils import api_to_response, load_owned_api, load_visible_api
from apihub.routes.depends import require_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/apis", tags=["apis"])


def _page_window(page: int, limit: int | None) -> tuple[int, int]:
    settings = get_settings()
    size = min(limit or settings.default_page_size, settings.max_page_size)
    return size, (page - 1) * size


async def _with_stats(session: AsyncSession, apis: list[Api]) -> list[ApiResponse]:
    logs = await ApiLogRepository(session).get_for_apis([api.id for api in apis])
    return [api_to_response(api, logs.get(api.id)) for api in apis]


@router.post("", response_model=CreateApiResponse, status_code=201)
async def create_api(
    body: CreateApiRequest,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> CreateApiResponse:
    """Register an API. A key-gated API gets an owner key issued immediately."""
    async with db.session() as session:
        api = await ApiRepository(session).create_api(
            caller_id, body.model_dump(mode="json")
        )
        raw_key = None
        if api.requires_api_key:
            _, raw_key = await ApiKeyRepository(session).issue_key(api.id, caller_id)

    logger.info("API %s created by %s", api.id, caller_id)
    return CreateApiResponse(api=api_to_response(api), api_key=raw_key)


@router.get("", response_model=ApisListResponse)
async def list_public_apis(
    category: str | None = Query(default=None),
    filter: str | None = Query(default=None, description="Name/description search"),
    sort: ApiSort | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Database = Depends(require_database),
) -> ApisListResponse:
    """List public APIs with filtering, sorting, and pagination."""
    size, offset = _page_window(page, limit)
    async with db.session() as session:
        apis, total = await ApiRepository(session).list_apis(
            public_only=True,
            category=category,
            search=filter,
            sort=sort.value if sort else None,
            limit=size,
            offset=offset,
        )
        items = await _with_stats(session, apis)
    return ApisListResponse(apis=items, total=total, page=page, limit=size)


@router.get("/my", response_model=ApisListResponse)
async def list_my_apis(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> ApisListResponse:
    """List every API the caller owns, public or private."""
    size, offset = _page_window(page, limit)
    async with db.session() as session:
        apis, total = await ApiRepository(session).list_apis(
            owner_id=caller_id, limit=size, offset=offset
        )
        items = await _with_stats(session, apis)
    return ApisListResponse(apis=items, total=total, page=page, limit=size)


@router.get("/{api_id}", response_model=ApiResponse)
async def get_api(
    api_id: str,
    caller_id: str | None = Depends(get_caller_id),
    db: Database = Depends(require_database),
) -> ApiResponse:
    """Get an API and count the view."""
    # Counted in its own transaction so a hidden API still records the view.
    async with db.session() as session:
        await ApiRepository(session).increment_views(api_id)

    try:
        async with db.session() as session:
            api = await load_visible_api(session, api_id, caller_id)
            log = await ApiLogRepository(session).get_for_api(api.id)
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc
    return api_to_response(api, log)


@router.patch("/{api_id}", response_model=CreateApiResponse)
async def update_api(
    api_id: str,
    body: UpdateApiRequest,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> CreateApiResponse:
    """Apply a partial update. Turning on ``requires_api_key`` issues the owner a key."""
    changes = body.changes()
    try:
        async with db.session() as session:
            repo = ApiRepository(session)
            api = await load_owned_api(session, api_id, caller_id)
            api = await repo.update_api(api, changes)

            raw_key = None
            if changes.get("requires_api_key"):
                keys = ApiKeyRepository(session)
                if await keys.get_for(api.id, caller_id) is None:
                    _, raw_key = await keys.issue_key(api.id, caller_id)
            log = await ApiLogRepository(session).get_for_api(api.id)
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc

    return CreateApiResponse(api=api_to_response(api, log), api_key=raw_key)


@router.delete("/{api_id}", status_code=204)
async def delete_api(
    api_id: str,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> None:
    """Delete an API with its endpoints, logs, and keys."""
    try:
        async with db.session() as session:
            api = await load_owned_api(session, api_id, caller_id)
            await ApiRepository(session).delete_api(api)
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc
