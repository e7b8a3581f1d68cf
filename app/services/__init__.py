"""Service layer exports."""

from .credential_manager import CredentialManager
from .storage_factory import TokenStoreFactory
from .tidal_api import TidalAPIService, UpstreamRequestError

__all__ = [
    "CredentialManager",
    "TidalAPIService",
    "TokenStoreFactory",
    "UpstreamRequestError",
]
