"""
Authenticated access to the TIDAL resource API.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from fastapi import status

from app.clients.token_store import CredentialNotFoundError
from app.core.config import TidalSettings
from app.models.credentials import CredentialRecord, SessionProfile
from app.services.credential_manager import CredentialManager
from app.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

_AUTH_FAILURE_STATUSES = frozenset(
    {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}
)


class UpstreamRequestError(Exception):
    """Raised when the resource API answers with a non-auth failure."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)


class TidalAPIService:
    """Issue GET requests with fresh credentials for a session profile."""

    def __init__(
        self,
        credential_manager: CredentialManager,
        settings: TidalSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._credentials = credential_manager
        self._settings = settings
        self._transport = transport
        self._retry = retry_config or RetryConfig(attempts=2, backoff_seconds=0.5)

    @property
    def credentials(self) -> CredentialManager:
        return self._credentials

    async def _load_record(self, profile: SessionProfile) -> CredentialRecord:
        try:
            record = self._credentials.get_tokens(profile)
        except CredentialNotFoundError:
            if not profile.is_mobile:
                raise
            logger.info("No %s credentials stored; deriving from TV session", profile.value)
            return await self._credentials.refresh_tokens(profile)

        if record.is_expired():
            logger.info("%s credentials expired at %s; refreshing", profile.value, record.expires_at)
            record = await self._credentials.refresh_tokens(profile, record)
        return record

    async def _get(
        self,
        url: str,
        profile: SessionProfile,
        record: CredentialRecord,
        params: Dict[str, Any],
    ) -> httpx.Response:
        headers = self._credentials.get_headers_for_session(profile, record)
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds, transport=self._transport
        ) as client:
            try:
                return await request_with_retry(
                    client.get,
                    url,
                    headers=headers,
                    params=params,
                    retry_config=self._retry,
                )
            except httpx.HTTPError as exc:
                raise UpstreamRequestError(
                    status.HTTP_503_SERVICE_UNAVAILABLE, f"Request failed: {exc}"
                ) from exc

    async def make_request(
        self,
        endpoint: str,
        profile: SessionProfile,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        GET ``endpoint`` relative to the API base URL and return decoded JSON.

        Stale credentials are refreshed before the call, and a 401/403 answer
        triggers one unconditional refresh followed by a single retry.
        """
        url = f"{str(self._settings.api_base_url).rstrip('/')}/{endpoint.lstrip('/')}"
        record = await self._load_record(profile)
        query = {
            "countryCode": record.country_code or self._settings.default_country,
            **(params or {}),
        }

        response = await self._get(url, profile, record, query)
        if response.status_code in _AUTH_FAILURE_STATUSES:
            logger.info(
                "Upstream rejected %s credentials with %d; refreshing and retrying",
                profile.value,
                response.status_code,
            )
            record = await self._credentials.refresh_tokens(profile, record)
            response = await self._get(url, profile, record, query)

        if not response.is_success:
            raise UpstreamRequestError(
                response.status_code,
                f"HTTP error {response.status_code}: {response.text}",
            )
        return response.json()


__all__ = ["TidalAPIService", "UpstreamRequestError"]
