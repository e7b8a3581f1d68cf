"""
Redis-backed remote cache tier for credential records.
"""

from __future__ import annotations

from typing import Any

import redis
from pydantic import ValidationError

from app.clients.token_store import (
    CredentialNotFoundError,
    HEALTH_CHECK_KEY,
    StorageBackendError,
    build_token_key,
)
from app.models.credentials import CredentialRecord, SessionProfile, StorageTier

# Independent of the record's own expiry.
CACHE_TTL_SECONDS = 24 * 60 * 60


def create_redis_client(url: str) -> redis.Redis:
    """Build a Redis client; the connection is opened lazily on first command."""
    return redis.Redis.from_url(url, decode_responses=True)


class RedisTokenStore:
    """Stores the serialized record under its key with a 24 hour expiry."""

    tier = StorageTier.REMOTE_CACHE

    def __init__(self, client: Any) -> None:
        self._client = client

    def get_token_key(self, profile: SessionProfile) -> str:
        return build_token_key(profile)

    def get_tokens(self, profile: SessionProfile) -> CredentialRecord:
        try:
            data = self._client.get(self.get_token_key(profile))
        except redis.RedisError as exc:
            raise StorageBackendError(
                f"Redis error getting tokens: {exc}", tier=self.tier
            ) from exc

        if not data:
            raise CredentialNotFoundError(profile, tier=self.tier)

        try:
            return CredentialRecord.model_validate_json(data)
        except ValidationError as exc:
            raise StorageBackendError(
                f"Redis holds a malformed record for {profile.value}: {exc}",
                tier=self.tier,
            ) from exc

    def update_tokens(self, record: CredentialRecord, profile: SessionProfile) -> None:
        try:
            self._client.set(
                self.get_token_key(profile),
                record.model_dump_json(),
                ex=CACHE_TTL_SECONDS,
            )
        except redis.RedisError as exc:
            raise StorageBackendError(
                f"Redis error updating tokens: {exc}", tier=self.tier
            ) from exc

    def health_check(self) -> bool:
        try:
            self._client.set(HEALTH_CHECK_KEY, "test")
            self._client.get(HEALTH_CHECK_KEY)
            self._client.delete(HEALTH_CHECK_KEY)
        except redis.RedisError:
            return False
        return True


__all__ = ["CACHE_TTL_SECONDS", "RedisTokenStore", "create_redis_client"]
