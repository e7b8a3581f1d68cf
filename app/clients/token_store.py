"""
Common contract and error types for credential storage backends.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from app.models.credentials import CredentialRecord, SessionProfile, StorageTier

TOKEN_KEY_PREFIX = "tidal_tokens"
HEALTH_CHECK_KEY = "storage_health_check"


def build_token_key(profile: SessionProfile) -> str:
    """Namespaced key shared by every backend for the same profile."""
    return f"{TOKEN_KEY_PREFIX}:{profile.value}"


class CredentialNotFoundError(Exception):
    """Raised when a backend holds no credential record for a profile."""

    status_code = 404

    def __init__(self, profile: SessionProfile, tier: Optional[StorageTier] = None) -> None:
        self.profile = profile
        self.tier = tier
        super().__init__(f"No tokens found for session type: {profile.value}")


class StorageBackendError(Exception):
    """Wraps an I/O level fault raised by a specific storage backend."""

    def __init__(
        self,
        message: str,
        *,
        tier: Optional[StorageTier] = None,
        status_code: int = 500,
    ) -> None:
        self.tier = tier
        self.status_code = status_code
        super().__init__(message)


class StorageTiersExhaustedError(StorageBackendError):
    """Raised when every attempted tier failed for the same operation."""

    def __init__(self, operation: str, errors: Sequence[Exception]) -> None:
        self.errors = list(errors)
        details = "; ".join(str(error) for error in self.errors)
        super().__init__(f"All storage options failed to {operation}: {details}")


class StorageConfigurationError(ValueError):
    """Raised when a tier is requested without its prerequisites configured."""


class TokenStore(Protocol):
    """Uniform access to one credential storage backend."""

    tier: StorageTier

    def get_token_key(self, profile: SessionProfile) -> str:
        ...

    def get_tokens(self, profile: SessionProfile) -> CredentialRecord:
        ...

    def update_tokens(self, record: CredentialRecord, profile: SessionProfile) -> None:
        ...

    def health_check(self) -> bool:
        ...


__all__ = [
    "CredentialNotFoundError",
    "HEALTH_CHECK_KEY",
    "StorageBackendError",
    "StorageConfigurationError",
    "StorageTiersExhaustedError",
    "TOKEN_KEY_PREFIX",
    "TokenStore",
    "build_token_key",
]
