"""Repository for consumer API keys."""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apihub.db.tables import ApiKey

logger = logging.getLogger(__name__)

KEY_PREFIX_LENGTH = 8


def hash_api_key(raw_key: str) -> str:
    """SHA-256 hash of a raw API key."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def generate_raw_key() -> str:
    """32 random bytes rendered as 64 hex characters."""
    return secrets.token_hex(32)


class ApiKeyRepository:
    """Repository for per-(API, user) consumer keys."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for(self, api_id: str, user_id: str) -> ApiKey | None:
        result = await self._session.execute(
            select(ApiKey).where(ApiKey.api_id == api_id, ApiKey.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, api_id: str, key_id: str) -> ApiKey | None:
        result = await self._session.execute(
            select(ApiKey).where(ApiKey.id == key_id, ApiKey.api_id == api_id)
        )
        return result.scalar_one_or_none()

    async def list_for_api(self, api_id: str) -> list[ApiKey]:
        result = await self._session.execute(
            select(ApiKey)
            .where(ApiKey.api_id == api_id)
            .order_by(ApiKey.created_at.desc())
        )
        return list(result.scalars().all())

    async def issue_key(self, api_id: str, user_id: str) -> tuple[ApiKey, str]:
        """
        Issue or rotate the key for ``(api_id, user_id)``.

        An existing row is reused and reactivated so the pair stays unique.

        Returns:
            (ApiKey row, raw key). The raw key is not recoverable afterwards.
        """
        raw_key = generate_raw_key()
        key_hash = hash_api_key(raw_key)
        key_prefix = raw_key[:KEY_PREFIX_LENGTH]

        api_key = await self.get_for(api_id, user_id)
        if api_key is None:
            api_key = ApiKey(
                api_id=api_id,
                user_id=user_id,
                key_hash=key_hash,
                key_prefix=key_prefix,
            )
            self._session.add(api_key)
            logger.info("Issued API key for api=%s (prefix: %s...)", api_id, key_prefix)
        else:
            api_key.key_hash = key_hash
            api_key.key_prefix = key_prefix
            api_key.is_active = True
            api_key.last_used_at = None
            logger.info("Rotated API key for api=%s (prefix: %s...)", api_id, key_prefix)
        await self._session.flush()
        return api_key, raw_key

    async def delete_for(self, api_id: str, user_id: str) -> bool:
        """Delete the caller's key. Returns True if deleted."""
        api_key = await self.get_for(api_id, user_id)
        if api_key is None:
            return False
        await self._session.delete(api_key)
        await self._session.flush()
        return True

    async def set_active(self, api_key: ApiKey, is_active: bool) -> ApiKey:
        api_key.is_active = is_active
        await self._session.flush()
        return api_key

    async def touch(self, key_id: str) -> None:
        await self._session.execute(
            update(ApiKey)
            .where(ApiKey.id == key_id)
            .values(last_used_at=datetime.now(UTC))
        )
