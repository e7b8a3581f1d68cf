"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBTokenStore
from .redis_cache import RedisTokenStore
from .sqlite_store import SQLiteTokenStore
from .tidal_auth import TidalAuthClient, TokenGrant, TokenRefreshError
from .token_store import (
    CredentialNotFoundError,
    StorageBackendError,
    StorageConfigurationError,
    StorageTiersExhaustedError,
    TokenStore,
)

__all__ = [
    "CredentialNotFoundError",
    "DynamoDBTokenStore",
    "RedisTokenStore",
    "SQLiteTokenStore",
    "StorageBackendError",
    "StorageConfigurationError",
    "StorageTiersExhaustedError",
    "TidalAuthClient",
    "TokenGrant",
    "TokenRefreshError",
    "TokenStore",
]
