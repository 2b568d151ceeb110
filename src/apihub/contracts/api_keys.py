"""Consumer API key contract payloads."""

from pydantic import BaseModel


class ApiKeyResponse(BaseModel):
    """Key metadata. The raw key is only ever returned by ``IssuedApiKeyResponse``."""

    id: str
    api_id: str
    user_id: str
    key_prefix: str
    is_active: bool
    last_used_at: str | None = None
    created_at: str


class IssuedApiKeyResponse(BaseModel):
    """Freshly generated key; store it now, it cannot be shown again."""

    api_key: str
    key: ApiKeyResponse


class ApiKeysListResponse(BaseModel):
    keys: list[ApiKeyResponse]
    total: int


class UpdateApiKeyRequest(BaseModel):
    is_active: bool


__all__ = [
    "ApiKeyResponse",
    "ApiKeysListResponse",
    "IssuedApiKeyResponse",
    "UpdateApiKeyRequest",
]
