"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the credential manager and
the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


StoragePreference = Literal["auto", "transactional", "key_value", "remote_cache"]

REDIS_URL_SCHEMES = ("redis://", "rediss://", "unix://")


class StorageSettings(BaseSettings):
    """Which credential storage tiers are configured and which one leads."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    preference: StoragePreference = Field(
        "auto",
        validation_alias="STORAGE_PREFERENCE",
        description=(
            "Pin a single tier, or 'auto' to enable quota/error based failover "
            "and mirrored writes."
        ),
    )
    token_db_path: Optional[str] = Field(
        None,
        validation_alias="TOKEN_DB_PATH",
        description="SQLite file backing the transactional tier. Unset disables it.",
    )
    dynamodb_table_name: str = Field(
        "tidal-tokens", validation_alias="DYNAMODB_TABLE_NAME"
    )
    aws_region: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_endpoint_url: Optional[str] = Field(
        None,
        validation_alias="DYNAMODB_ENDPOINT_URL",
        description="Optional endpoint override, e.g. DynamoDB Local.",
    )
    redis_url: Optional[str] = Field(
        None,
        validation_alias="REDIS_URL",
        description="Remote cache connection URL. Unset disables the tier.",
    )

    @field_validator("preference", mode="before")
    @classmethod
    def _normalize_preference(cls, value: str) -> str:
        """Accept case and dash variations such as 'KEY-VALUE'."""
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @field_validator("redis_url")
    @classmethod
    def _validate_redis_url(cls, value: Optional[str]) -> Optional[str]:
        """Reject URLs redis-py cannot parse; blank disables the tier."""
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not value.startswith(REDIS_URL_SCHEMES):
            raise ValueError(
                "REDIS_URL must start with one of: " + ", ".join(REDIS_URL_SCHEMES)
            )
        return value


class TidalSettings(BaseSettings):
    """Upstream streaming service endpoints and client identities."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    api_base_url: HttpUrl = Field(
        "https://api.tidal.com/v1", validation_alias="TIDAL_API_BASE_URL"
    )
    auth_url: HttpUrl = Field(
        "https://auth.tidal.com/v1/oauth2/token", validation_alias="TIDAL_AUTH_URL"
    )
    tv_client_id: str = Field("4N3n6Q1x95LL5K7p", validation_alias="TIDAL_TV_CLIENT_ID")
    tv_client_secret: Optional[str] = Field(
        None,
        validation_alias="TIDAL_TV_CLIENT_SECRET",
        description="Required to refresh TV credentials.",
    )
    mobile_default_client_id: str = Field(
        "6BDSRdpK9hqEBTgU", validation_alias="TIDAL_MOBILE_DEFAULT_CLIENT_ID"
    )
    mobile_atmos_client_id: str = Field(
        "km8T1xS355y7dd3H", validation_alias="TIDAL_MOBILE_ATMOS_CLIENT_ID"
    )
    user_agent: str = Field(
        "TIDAL_ANDROID/1039 okhttp/3.14.9", validation_alias="TIDAL_USER_AGENT"
    )
    api_host: str = Field("api.tidal.com", validation_alias="TIDAL_API_HOST")
    timeout_seconds: float = Field(10.0, validation_alias="UPSTREAM_TIMEOUT_SECONDS")
    status_sample_track_id: int = Field(
        286266926, validation_alias="STATUS_SAMPLE_TRACK_ID"
    )
    default_country: str = Field("US", validation_alias="DEFAULT_COUNTRY")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    title: str = Field("TIDAL Credential Proxy", validation_alias="APP_TITLE")
    version: str = Field("0.1.0", validation_alias="APP_VERSION")
    storage: StorageSettings = Field(default_factory=StorageSettings)
    tidal: TidalSettings = Field(default_factory=TidalSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "StoragePreference",
    "StorageSettings",
    "TidalSettings",
    "get_settings",
]
