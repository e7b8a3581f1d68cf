"""
Domain models for credential persistence and storage tier bookkeeping.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class SessionProfile(str, Enum):
    """Device identities that each hold an independent credential record."""

    TV = "TV"
    MOBILE_DEFAULT = "MOBILE_DEFAULT"
    MOBILE_ATMOS = "MOBILE_ATMOS"

    @property
    def is_mobile(self) -> bool:
        return self is not SessionProfile.TV


class StorageTier(str, Enum):
    """Storage backends in failover order, highest capacity first."""

    TRANSACTIONAL = "transactional"
    KEY_VALUE = "key_value"
    REMOTE_CACHE = "remote_cache"


TIER_ORDER: tuple[StorageTier, ...] = (
    StorageTier.TRANSACTIONAL,
    StorageTier.KEY_VALUE,
    StorageTier.REMOTE_CACHE,
)


class CredentialRecord(BaseModel):
    """Access/refresh token bundle persisted for one session profile."""

    access_token: str
    refresh_token: str
    expires_at: datetime = Field(..., description="Record is stale at or after this instant.")
    country_code: str = Field(..., description="Country of the authorizing account.")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("expires_at", "updated_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True once ``now`` has reached ``expires_at``."""
        current = now or datetime.now(timezone.utc)
        return current >= self.expires_at


@dataclass
class UsageStatistics:
    """Per-manager counters for the active tier; reset on every tier switch."""

    tier: StorageTier
    reads: int = 0
    writes: int = 0
    errors: int = 0
    consecutive_errors: int = 0

    def reset(self, tier: StorageTier) -> None:
        self.tier = tier
        self.reads = 0
        self.writes = 0
        self.errors = 0
        self.consecutive_errors = 0

    def snapshot(self) -> Dict[str, Any]:
        data = asdict(self)
        data["tier"] = self.tier.value
        return data


@dataclass
class StorageState:
    """Mutable failover state owned by a single credential manager."""

    active_tier: StorageTier
    stats: UsageStatistics = field(init=False)

    def __post_init__(self) -> None:
        self.stats = UsageStatistics(tier=self.active_tier)

    def switch_to(self, tier: StorageTier) -> None:
        self.active_tier = tier
        self.stats.reset(tier)


__all__ = [
    "CredentialRecord",
    "SessionProfile",
    "StorageState",
    "StorageTier",
    "TIER_ORDER",
    "UsageStatistics",
]
