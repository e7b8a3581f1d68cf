"""
FastAPI routes for the TIDAL credential proxy.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from app.clients import (
    CredentialNotFoundError,
    StorageBackendError,
    TokenRefreshError,
)
from app.core.config import AppSettings, StorageSettings
from app.dependencies import (
    SettingsDependency,
    get_credential_manager,
    get_storage_settings,
    get_tidal_api_service,
    get_token_store_factory,
)
from app.models.credentials import SessionProfile, StorageTier
from app.services.credential_manager import ERROR_THRESHOLD, TIER_QUOTAS
from app.services.tidal_api import UpstreamRequestError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/status", status_code=HTTPStatus.OK)
async def get_api_status(
    service: Annotated[Any, Depends(get_tidal_api_service)],
    settings: AppSettings = SettingsDependency,
) -> dict:
    """Probe the upstream API with a sample lyrics lookup and report latency."""
    api_status: dict[str, Any] = {"status": "operational", "latency_ms": 0}
    result = {
        "status": "operational",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {"api": api_status},
    }

    started = time.perf_counter()
    try:
        await service.make_request(
            f"tracks/{settings.tidal.status_sample_track_id}/lyrics",
            SessionProfile.TV,
        )
    except (
        CredentialNotFoundError,
        StorageBackendError,
        TokenRefreshError,
        UpstreamRequestError,
    ) as exc:
        logger.warning("Upstream status probe failed: %s", exc)
        api_status.update({"status": "error", "error": str(exc), "latency_ms": None})
        result["status"] = "degraded"
    else:
        api_status["latency_ms"] = round((time.perf_counter() - started) * 1000)

    return result


def _tier_limits(tier: StorageTier, stats: dict) -> dict:
    quota = TIER_QUOTAS[tier]
    active = stats["tier"] == tier.value
    reads = stats["reads"] if active else 0
    writes = stats["writes"] if active else 0
    return {
        "reads_per_day": quota.reads,
        "writes_per_day": quota.writes,
        "remaining_reads": None if quota.reads is None else quota.reads - reads,
        "remaining_writes": None if quota.writes is None else quota.writes - writes,
        "threshold_reads": None if quota.reads is None else int(quota.reads * quota.threshold),
        "threshold_writes": (
            None if quota.writes is None else int(quota.writes * quota.threshold)
        ),
    }


@router.get("/status/storage", status_code=HTTPStatus.OK)
async def get_storage_status(
    manager: Annotated[Any, Depends(get_credential_manager)],
    store_factory: Annotated[Any, Depends(get_token_store_factory)],
    storage_settings: Annotated[StorageSettings, Depends(get_storage_settings)],
) -> dict:
    """Report the active tier, usage statistics and a health probe per tier."""
    stats = manager.get_storage_stats()
    tiers: dict[str, Any] = {}
    for tier in store_factory.configured_tiers:
        healthy = store_factory.create(tier).health_check()
        tiers[tier.value] = {
            "status": "operational" if healthy else "error",
            "active": tier is manager.active_tier,
            "limits": _tier_limits(tier, stats),
        }

    lower = store_factory.lower_tiers(manager.active_tier)
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage": {
            "primary": manager.active_tier.value,
            "fallback": lower[0].value if lower else None,
            "preference": storage_settings.preference,
        },
        "statistics": stats,
        "tiers": tiers,
        "auto_switch": {
            "enabled": manager.auto_failover and bool(lower),
            "error_threshold": ERROR_THRESHOLD,
        },
    }


@router.get("/sessions/{profile}", status_code=HTTPStatus.OK)
async def get_session(
    profile: SessionProfile,
    manager: Annotated[Any, Depends(get_credential_manager)],
) -> dict:
    """Describe the stored credentials for a profile without exposing tokens."""
    record = manager.get_tokens(profile)
    return {
        "profile": profile.value,
        "country_code": record.country_code,
        "expires_at": record.expires_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
        "expired": record.is_expired(),
        "tier": manager.active_tier.value,
    }
