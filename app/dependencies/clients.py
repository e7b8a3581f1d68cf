"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import TidalAuthClient
from app.core.config import get_settings
from app.services import CredentialManager, TidalAPIService, TokenStoreFactory


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_store_factory() -> TokenStoreFactory:
    """Provide a process-wide store factory so backend handles are reused."""
    settings = _settings()
    return TokenStoreFactory(settings.storage)


@lru_cache()
def get_tidal_auth_client() -> TidalAuthClient:
    """Create a singleton TIDAL authorization client."""
    settings = _settings()
    return TidalAuthClient(settings.tidal)


def get_credential_manager() -> CredentialManager:
    """Build a fresh credential manager; usage statistics are per request."""
    settings = _settings()
    return CredentialManager(
        store_factory=get_token_store_factory(),
        auth_client=get_tidal_auth_client(),
        tidal_settings=settings.tidal,
    )


def get_tidal_api_service() -> TidalAPIService:
    """Build a resource API service bound to a per-request credential manager."""
    settings = _settings()
    return TidalAPIService(get_credential_manager(), settings.tidal)


__all__ = [
    "get_credential_manager",
    "get_tidal_api_service",
    "get_tidal_auth_client",
    "get_token_store_factory",
]
