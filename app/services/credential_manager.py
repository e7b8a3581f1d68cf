"""
Tiered credential storage with automatic failover and token refresh.

A ``CredentialManager`` is built per request. It reads and writes credential
records through the active storage tier, demotes to the next configured tier
when quota consumption or consecutive errors cross their thresholds, mirrors
successful writes to lower tiers, and refreshes expired credentials against
the TIDAL authorization endpoint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from app.clients.tidal_auth import TidalAuthClient, client_id_for
from app.clients.token_store import (
    CredentialNotFoundError,
    StorageBackendError,
    StorageTiersExhaustedError,
    TokenStore,
)
from app.core.config import TidalSettings
from app.models.credentials import (
    CredentialRecord,
    SessionProfile,
    StorageState,
    StorageTier,
)
from app.services.storage_factory import TokenStoreFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierQuota:
    """Daily request allowance for a tier; ``None`` means unbounded."""

    reads: Optional[int]
    writes: Optional[int]
    threshold: float = 0.95


TIER_QUOTAS: Dict[StorageTier, TierQuota] = {
    StorageTier.TRANSACTIONAL: TierQuota(reads=5_000_000, writes=100_000),
    StorageTier.KEY_VALUE: TierQuota(reads=100_000, writes=1_000),
    StorageTier.REMOTE_CACHE: TierQuota(reads=None, writes=None),
}

ERROR_THRESHOLD = 3
QUOTA_EXCEEDED_STATUS = 429


class CredentialManager:
    """Owns the active storage tier, its usage statistics and token refresh."""

    def __init__(
        self,
        store_factory: TokenStoreFactory,
        auth_client: TidalAuthClient,
        tidal_settings: TidalSettings,
        *,
        state: Optional[StorageState] = None,
    ) -> None:
        self._factory = store_factory
        self._auth = auth_client
        self._tidal = tidal_settings
        self._state = state or StorageState(active_tier=store_factory.initial_tier())
        self._store: TokenStore = store_factory.create(self._state.active_tier)

    @property
    def active_tier(self) -> StorageTier:
        return self._state.active_tier

    @property
    def auto_failover(self) -> bool:
        return self._factory.auto_failover

    def get_storage_stats(self) -> Dict[str, Any]:
        """Snapshot of the usage statistics for the active tier."""
        return self._state.stats.snapshot()

    # -- tier transitions ---------------------------------------------------

    def _next_tier(self) -> Optional[StorageTier]:
        lower = self._factory.lower_tiers(self._state.active_tier)
        return lower[0] if lower else None

    def _should_demote(self) -> bool:
        if not self.auto_failover or self._next_tier() is None:
            return False

        tier = self._state.active_tier
        stats = self._state.stats
        quota = TIER_QUOTAS[tier]

        if quota.reads is not None and stats.reads >= quota.reads * quota.threshold:
            logger.warning(
                "Approaching %s read quota: %d/%d reads",
                tier.value,
                stats.reads,
                int(quota.reads * quota.threshold),
            )
            return True
        if quota.writes is not None and stats.writes >= quota.writes * quota.threshold:
            logger.warning(
                "Approaching %s write quota: %d/%d writes",
                tier.value,
                stats.writes,
                int(quota.writes * quota.threshold),
            )
            return True
        if stats.consecutive_errors >= ERROR_THRESHOLD:
            logger.warning(
                "Too many consecutive %s errors: %d",
                tier.value,
                stats.consecutive_errors,
            )
            return True
        return False

    def _demote(self) -> None:
        target = self._next_tier()
        if target is None:
            return
        logger.warning(
            "Switching primary storage from %s to %s",
            self._state.active_tier.value,
            target.value,
        )
        self._state.switch_to(target)
        self._store = self._factory.create(target)

    def _apply_transition_policy(self) -> None:
        if self._should_demote():
            self._demote()

    def _record_error(self, exc: Exception) -> None:
        stats = self._state.stats
        stats.errors += 1
        stats.consecutive_errors += 1
        logger.error(
            "Storage error on %s: %s, consecutive errors: %d",
            self._state.active_tier.value,
            exc,
            stats.consecutive_errors,
        )

    def _demote_after_fallback(self, exc: Exception) -> None:
        """Commit to the fallback tier on quota rejection or sustained errors."""
        if not self.auto_failover:
            return
        quota_rejected = (
            isinstance(exc, StorageBackendError)
            and exc.status_code == QUOTA_EXCEEDED_STATUS
        )
        if quota_rejected or self._state.stats.consecutive_errors >= ERROR_THRESHOLD:
            self._demote()

    # -- storage operations -------------------------------------------------

    def get_tokens(self, profile: SessionProfile) -> CredentialRecord:
        """
        Read the credential record for ``profile`` from the active tier.

        A failing read is retried once against the next configured tier. If
        that fails too, the active tier's error is re-raised.
        """
        self._apply_transition_policy()
        self._state.stats.reads += 1
        logger.info(
            "[STORAGE] Using %s for reading %s tokens",
            self._state.active_tier.value.upper(),
            profile.value,
        )

        try:
            record = self._store.get_tokens(profile)
        except (CredentialNotFoundError, StorageBackendError) as exc:
            self._record_error(exc)
            fallback = self._next_tier()
            if fallback is None:
                raise

            logger.info(
                "%s read failed, trying %s fallback for %s",
                self._state.active_tier.value,
                fallback.value,
                profile.value,
            )
            try:
                record = self._factory.create(fallback).get_tokens(profile)
            except (CredentialNotFoundError, StorageBackendError) as fallback_exc:
                logger.error(
                    "Fallback read from %s also failed: %s", fallback.value, fallback_exc
                )
                raise exc

            self._demote_after_fallback(exc)
            return record

        self._state.stats.consecutive_errors = 0
        return record

    def update_tokens(self, record: CredentialRecord, profile: SessionProfile) -> None:
        """
        Replace the credential record for ``profile`` in the active tier.

        Successful writes are mirrored to every lower configured tier when
        auto failover is enabled; mirror failures are logged only. A failing
        write falls back to the next configured tier and raises
        ``StorageTiersExhaustedError`` when no tier accepts it.
        """
        self._apply_transition_policy()
        self._state.stats.writes += 1
        logger.info(
            "[STORAGE] Using %s for writing %s tokens",
            self._state.active_tier.value.upper(),
            profile.value,
        )

        try:
            self._store.update_tokens(record, profile)
        except StorageBackendError as exc:
            self._record_error(exc)
            fallback = self._next_tier()
            if fallback is None:
                raise StorageTiersExhaustedError("update tokens", [exc]) from exc

            logger.info(
                "%s write failed, trying %s for %s",
                self._state.active_tier.value,
                fallback.value,
                profile.value,
            )
            try:
                self._factory.create(fallback).update_tokens(record, profile)
            except StorageBackendError as fallback_exc:
                raise StorageTiersExhaustedError(
                    "update tokens", [exc, fallback_exc]
                ) from exc

            self._demote_after_fallback(exc)
            return

        self._state.stats.consecutive_errors = 0
        if self.auto_failover:
            self._mirror_write(record, profile)

    def _mirror_write(self, record: CredentialRecord, profile: SessionProfile) -> None:
        for tier in self._factory.lower_tiers(self._state.active_tier):
            try:
                logger.info("[STORAGE] Backing up %s tokens to %s", profile.value, tier.value)
                self._factory.create(tier).update_tokens(record, profile)
            except Exception as exc:  # primary write already committed
                logger.error("Failed to update %s backup: %s", tier.value, exc)

    # -- refresh ------------------------------------------------------------

    async def refresh_tokens(
        self,
        profile: SessionProfile,
        stale_record: Optional[CredentialRecord] = None,
    ) -> CredentialRecord:
        """
        Refresh the TV credentials and, for mobile profiles, derive new ones.

        The TV refresh token is always exchanged first (it may be rotated).
        Mobile access tokens are then minted from the new TV refresh token,
        while the mobile record keeps its own refresh token. Without a
        ``stale_record`` a mobile profile is seeded from the TV refresh token.
        """
        if profile is SessionProfile.TV and stale_record is not None:
            tv_refresh_token = stale_record.refresh_token
        else:
            tv_refresh_token = self.get_tokens(SessionProfile.TV).refresh_token

        refreshed_at = datetime.now(timezone.utc)
        tv_grant = await self._auth.refresh(SessionProfile.TV, tv_refresh_token)
        tv_record = CredentialRecord(
            access_token=tv_grant.access_token,
            refresh_token=tv_grant.refresh_token or tv_refresh_token,
            expires_at=refreshed_at + timedelta(seconds=tv_grant.expires_in),
            country_code=tv_grant.country_code,
            updated_at=refreshed_at,
        )
        self.update_tokens(tv_record, SessionProfile.TV)

        if not profile.is_mobile:
            return tv_record

        mobile_grant = await self._auth.refresh(profile, tv_record.refresh_token)
        refreshed_at = datetime.now(timezone.utc)
        mobile_record = CredentialRecord(
            access_token=mobile_grant.access_token,
            refresh_token=(
                stale_record.refresh_token
                if stale_record is not None
                else tv_record.refresh_token
            ),
            expires_at=refreshed_at + timedelta(seconds=mobile_grant.expires_in),
            country_code=mobile_grant.country_code,
            updated_at=refreshed_at,
        )
        self.update_tokens(mobile_record, profile)
        return mobile_record

    def get_headers_for_session(
        self, profile: SessionProfile, record: CredentialRecord
    ) -> Dict[str, str]:
        """Upstream request headers for ``profile`` authenticated by ``record``."""
        headers = {
            "X-Tidal-Token": client_id_for(self._tidal, profile),
            "Authorization": f"Bearer {record.access_token}",
            "Connection": "Keep-Alive",
            "Accept-Encoding": "gzip",
            "User-Agent": self._tidal.user_agent,
        }
        if profile.is_mobile:
            headers["Host"] = self._tidal.api_host
        return headers


__all__ = [
    "CredentialManager",
    "ERROR_THRESHOLD",
    "TIER_QUOTAS",
    "TierQuota",
]
