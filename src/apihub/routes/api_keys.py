"""Consumer API key routes.

- Generate / get / delete: the caller's own key for an API
- List all keys, activate / deactivate any key: API owner only
"""

from fastapi import APIRouter, Depends, HTTPException

from apihub.auth import require_caller
from apihub.contracts import (
    ApiKeyResponse,
    ApiKeysListResponse,
    IssuedApiKeyResponse,
    UpdateApiKeyRequest,
)
from apihub.db.repositories import ApiKeyRepository
from apihub.db.session import Database
from apihub.errors import ApiHubError, to_http_exception
from apihub.routes.apis_utils import api_key_to_response, load_owned_api, load_visible_api
from apihub.routes.depends import require_database

router = APIRouter(prefix="/apis/{api_id}", tags=["api-keys"])


@router.post("/apikey", response_model=IssuedApiKeyResponse, status_code=201)
async def generate_api_key(
    api_id: str,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> IssuedApiKeyResponse:
    """Generate or rotate the caller's key. The raw key is returned only here."""
    try:
        async with db.session() as session:
            await load_visible_api(session, api_id, caller_id)
            api_key, raw_key = await ApiKeyRepository(session).issue_key(
                api_id, caller_id
            )
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc
    return IssuedApiKeyResponse(api_key=raw_key, key=api_key_to_response(api_key))


@router.get("/apikey", response_model=ApiKeyResponse)
async def get_api_key(
    api_id: str,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> ApiKeyResponse:
    async with db.session() as session:
        api_key = await ApiKeyRepository(session).get_for(api_id, caller_id)
    if api_key is None:
        raise HTTPException(status_code=404, detail="API key not found")
    return api_key_to_response(api_key)


@router.delete("/apikey", status_code=204)
async def delete_api_key(
    api_id: str,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> None:
    async with db.session() as session:
        deleted = await ApiKeyRepository(session).delete_for(api_id, caller_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="API key not found")


@router.get("/keys", response_model=ApiKeysListResponse)
async def list_api_keys(
    api_id: str,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> ApiKeysListResponse:
    try:
        async with db.session() as session:
            await load_owned_api(session, api_id, caller_id)
            keys = await ApiKeyRepository(session).list_for_api(api_id)
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc
    items = [api_key_to_response(key) for key in keys]
    return ApiKeysListResponse(keys=items, total=len(items))


@router.patch("/keys/{key_id}", response_model=ApiKeyResponse)
async def set_api_key_active(
    api_id: str,
    key_id: str,
    body: UpdateApiKeyRequest,
    caller_id: str = Depends(require_caller),
    db: Database = Depends(require_database),
) -> ApiKeyResponse:
    """Activate or deactivate a consumer key on an API the caller owns."""
    try:
        async with db.session() as session:
            await load_owned_api(session, api_id, caller_id)
            repo = ApiKeyRepository(session)
            api_key = await repo.get_by_id(api_id, key_id)
            if api_key is None:
                raise HTTPException(status_code=404, detail="API key not found")
            api_key = await repo.set_active(api_key, body.is_active)
    except ApiHubError as exc:
        raise to_http_exception(exc) from exc
    return api_key_to_response(api_key)
