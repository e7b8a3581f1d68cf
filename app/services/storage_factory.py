"""
Construction of credential storage backends per tier.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError

from app.clients.dynamodb import DynamoDBTokenStore, create_dynamodb_table
from app.clients.redis_cache import RedisTokenStore, create_redis_client
from app.clients.sqlite_store import SQLiteTokenStore
from app.clients.token_store import StorageConfigurationError, TokenStore
from app.core.config import StorageSettings
from app.models.credentials import TIER_ORDER, StorageTier


class TokenStoreFactory:
    """Build the ``TokenStore`` for a tier from settings and optional handles.

    Backend handles are created lazily and reused, so constructing a store
    never touches the network. Tests and scripts may inject their own
    ``dynamodb_table`` or ``redis_client``.
    """

    def __init__(
        self,
        settings: StorageSettings,
        *,
        dynamodb_table: Any = None,
        redis_client: Any = None,
    ) -> None:
        self._settings = settings
        self._dynamodb_table = dynamodb_table
        self._redis_client = redis_client

    @property
    def preference(self) -> str:
        return self._settings.preference

    @property
    def auto_failover(self) -> bool:
        return self._settings.preference == "auto"

    def is_configured(self, tier: StorageTier) -> bool:
        if tier is StorageTier.TRANSACTIONAL:
            return bool(self._settings.token_db_path)
        if tier is StorageTier.REMOTE_CACHE:
            return bool(self._settings.redis_url) or self._redis_client is not None
        return bool(self._settings.dynamodb_table_name) or self._dynamodb_table is not None

    @property
    def configured_tiers(self) -> tuple[StorageTier, ...]:
        return tuple(tier for tier in TIER_ORDER if self.is_configured(tier))

    def lower_tiers(self, tier: StorageTier) -> tuple[StorageTier, ...]:
        """Configured tiers ranked strictly below ``tier``."""
        tiers = self.configured_tiers
        if tier not in tiers:
            return ()
        return tiers[tiers.index(tier) + 1 :]

    def initial_tier(self) -> StorageTier:
        """Tier that leads when a manager starts, per the storage preference."""
        if self.auto_failover:
            tiers = self.configured_tiers
            if not tiers:
                raise StorageConfigurationError("No credential storage tier is configured.")
            return tiers[0]
        tier = StorageTier(self._settings.preference)
        self._require(tier)
        return tier

    def _require(self, tier: StorageTier) -> None:
        if self.is_configured(tier):
            return
        hints = {
            StorageTier.TRANSACTIONAL: "TOKEN_DB_PATH",
            StorageTier.KEY_VALUE: "DYNAMODB_TABLE_NAME",
            StorageTier.REMOTE_CACHE: "REDIS_URL",
        }
        raise StorageConfigurationError(
            f"Storage tier '{tier.value}' was requested but {hints[tier]} is not configured."
        )

    def create(self, tier: Optional[StorageTier] = None) -> TokenStore:
        """Return the store for ``tier``, defaulting to the initial tier."""
        target = tier or self.initial_tier()
        self._require(target)

        if target is StorageTier.TRANSACTIONAL:
            return SQLiteTokenStore(self._settings.token_db_path)  # type: ignore[arg-type]
        if target is StorageTier.REMOTE_CACHE:
            if self._redis_client is None:
                self._redis_client = self._build_handle(
                    target, create_redis_client, self._settings.redis_url
                )
            return RedisTokenStore(self._redis_client)
        if self._dynamodb_table is None:
            self._dynamodb_table = self._build_handle(
                target, create_dynamodb_table, self._settings
            )
        return DynamoDBTokenStore(self._dynamodb_table)

    @staticmethod
    def _build_handle(tier: StorageTier, builder: Callable[..., Any], *args: Any) -> Any:
        try:
            return builder(*args)
        except (ValueError, BotoCoreError) as exc:
            raise StorageConfigurationError(
                f"Storage tier '{tier.value}' could not be initialised: {exc}"
            ) from exc


__all__ = ["TokenStoreFactory"]
