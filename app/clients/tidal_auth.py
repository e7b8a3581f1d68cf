"""
TIDAL authorization endpoint client.

Exchanges refresh tokens for new access tokens on behalf of each session
profile. The initial device-code handshake is performed out of band.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from fastapi import status

from app.core.config import TidalSettings
from app.models.credentials import SessionProfile


class TokenRefreshError(Exception):
    """Raised when the authorization endpoint rejects or garbles a refresh."""

    status_code = 500


@dataclass(frozen=True)
class TokenGrant:
    """Fields returned by a successful refresh exchange."""

    access_token: str
    expires_in: int
    country_code: str
    refresh_token: Optional[str] = None


def client_id_for(settings: TidalSettings, profile: SessionProfile) -> str:
    """Client identifier the upstream expects for ``profile``."""
    return {
        SessionProfile.TV: settings.tv_client_id,
        SessionProfile.MOBILE_DEFAULT: settings.mobile_default_client_id,
        SessionProfile.MOBILE_ATMOS: settings.mobile_atmos_client_id,
    }[profile]


class TidalAuthClient:
    """Perform refresh-token grants against the TIDAL OAuth endpoint."""

    def __init__(
        self,
        settings: TidalSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def refresh(self, profile: SessionProfile, refresh_token: str) -> TokenGrant:
        """
        Exchange ``refresh_token`` for a new access token scoped to ``profile``.

        The TV profile authenticates with its client secret; mobile profiles
        present the TV refresh token with their own client identifier.
        """
        payload = {
            "client_id": client_id_for(self._settings, profile),
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        if profile is SessionProfile.TV:
            if not self._settings.tv_client_secret:
                raise TokenRefreshError("TIDAL_TV_CLIENT_SECRET is not configured.")
            payload["client_secret"] = self._settings.tv_client_secret

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(str(self._settings.auth_url), data=payload)
        except httpx.HTTPError as exc:
            raise TokenRefreshError(
                f"Failed to refresh {profile.value} token: {exc}"
            ) from exc

        if response.status_code != status.HTTP_200_OK:
            raise TokenRefreshError(
                f"Failed to refresh {profile.value} token: "
                f"{response.status_code} {response.text}"
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise TokenRefreshError(
                f"Failed to refresh {profile.value} token: response is not JSON."
            ) from exc

        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        user = token_payload.get("user") or {}
        country_code = user.get("countryCode")

        if not access_token or not expires_in or not country_code:
            raise TokenRefreshError(
                f"Incomplete refresh payload returned for {profile.value}."
            )

        return TokenGrant(
            access_token=access_token,
            expires_in=int(expires_in),
            country_code=country_code,
            refresh_token=token_payload.get("refresh_token"),
        )


__all__ = ["TidalAuthClient", "TokenGrant", "TokenRefreshError", "client_id_for"]
