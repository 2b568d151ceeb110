"""Caller identity dependencies.

Identity is established upstream of this service; the gateway forwards the
authenticated user id in a trusted header (``APIHUB_IDENTITY_HEADER``).
"""

from fastapi import Depends, HTTPException, Request

from apihub.config import get_settings


def get_caller_id(request: Request) -> str | None:
    """The forwarded caller id, or None for anonymous requests."""
    value = request.headers.get(get_settings().identity_header)
    if value is None:
        return None
    return value.strip() or None


def require_caller(caller_id: str | None = Depends(get_caller_id)) -> str:
    """FastAPI dependency that rejects anonymous requests with 401."""
    if caller_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return caller_id


def get_presented_api_key(request: Request) -> str | None:
    """Consumer API key presented on a test call, if any."""
    value = request.headers.get(get_settings().api_key_header)
    if value is None:
        return None
    return value.strip() or None
