"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_manager,
    get_tidal_api_service,
    get_tidal_auth_client,
    get_token_store_factory,
)
from .config import SettingsDependency, get_app_settings, get_storage_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_credential_manager",
    "get_storage_settings",
    "get_tidal_api_service",
    "get_tidal_auth_client",
    "get_token_store_factory",
]
