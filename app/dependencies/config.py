"""
FastAPI dependency utilities for injecting configuration.
"""

from fastapi import Depends

from app.core.config import AppSettings, StorageSettings, get_settings


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return get_settings()


def get_storage_settings(
    settings: AppSettings = Depends(get_app_settings),
) -> StorageSettings:
    """Storage tier configuration, overridable through ``get_app_settings``."""
    return settings.storage


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings", "get_storage_settings"]
