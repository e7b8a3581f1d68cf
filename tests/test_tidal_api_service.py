from __future__ import annotations

import httpx
import pytest

from app.clients.tidal_auth import TokenGrant
from app.clients.token_store import CredentialNotFoundError
from app.models.credentials import SessionProfile
from app.services.credential_manager import CredentialManager
from app.services.tidal_api import TidalAPIService, UpstreamRequestError
from app.utils.http import RetryConfig

pytestmark = pytest.mark.anyio


class CountingAuthClient:
    def __init__(self) -> None:
        self.calls: list[SessionProfile] = []

    async def refresh(self, profile: SessionProfile, refresh_token: str) -> TokenGrant:
        self.calls.append(profile)
        return TokenGrant(
            access_token=f"{profile.value.lower()}-fresh",
            expires_in=3600,
            country_code="SE",
            refresh_token="tv-refresh-rotated" if profile is SessionProfile.TV else None,
        )


class UpstreamStub:
    """Answer resource requests from a queue of status codes."""

    def __init__(self, *statuses: int) -> None:
        self.statuses = list(statuses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code = self.statuses.pop(0) if self.statuses else 200
        if status_code == 200:
            return httpx.Response(200, json={"trackId": 1, "lyrics": "la la"})
        return httpx.Response(status_code, text="nope")


@pytest.fixture
def auth_client() -> CountingAuthClient:
    return CountingAuthClient()


@pytest.fixture
def build_service(make_factory, auth_client, tidal_settings):
    def _build(stub: UpstreamStub) -> TidalAPIService:
        manager = CredentialManager(make_factory(), auth_client, tidal_settings)
        return TidalAPIService(
            manager,
            tidal_settings,
            transport=httpx.MockTransport(stub),
            retry_config=RetryConfig(attempts=2, backoff_seconds=0),
        )

    return _build


async def test_fresh_record_is_used_without_refresh(build_service, auth_client, make_record) -> None:
    stub = UpstreamStub(200)
    service = build_service(stub)
    service.credentials.update_tokens(make_record("tv-current"), SessionProfile.TV)

    payload = await service.make_request("tracks/1/lyrics", SessionProfile.TV)

    assert payload["lyrics"] == "la la"
    assert auth_client.calls == []
    request = stub.requests[0]
    assert request.url.path == "/v1/tracks/1/lyrics"
    assert request.url.params["countryCode"] == "US"
    assert request.headers["Authorization"] == "Bearer tv-current"


async def test_stale_record_is_refreshed_before_use(build_service, auth_client, make_record) -> None:
    stub = UpstreamStub(200)
    service = build_service(stub)
    service.credentials.update_tokens(make_record("tv-old", expires_in=-5), SessionProfile.TV)

    await service.make_request("tracks/1", SessionProfile.TV)

    assert auth_client.calls == [SessionProfile.TV]
    assert stub.requests[0].headers["Authorization"] == "Bearer tv-fresh"
    assert stub.requests[0].url.params["countryCode"] == "SE"


async def test_auth_rejection_refreshes_and_retries_once(build_service, auth_client, make_record) -> None:
    stub = UpstreamStub(401, 200)
    service = build_service(stub)
    service.credentials.update_tokens(make_record("tv-revoked"), SessionProfile.TV)

    await service.make_request("tracks/1", SessionProfile.TV)

    assert auth_client.calls == [SessionProfile.TV]
    assert [r.headers["Authorization"] for r in stub.requests] == [
        "Bearer tv-revoked",
        "Bearer tv-fresh",
    ]


async def test_second_auth_rejection_surfaces(build_service, make_record) -> None:
    stub = UpstreamStub(403, 403)
    service = build_service(stub)
    service.credentials.update_tokens(make_record(), SessionProfile.TV)

    with pytest.raises(UpstreamRequestError) as excinfo:
        await service.make_request("tracks/1", SessionProfile.TV)

    assert excinfo.value.status_code == 403
    assert len(stub.requests) == 2


async def test_server_errors_are_retried(build_service, make_record) -> None:
    stub = UpstreamStub(503, 200)
    service = build_service(stub)
    service.credentials.update_tokens(make_record(), SessionProfile.TV)

    payload = await service.make_request("tracks/1", SessionProfile.TV)

    assert payload["trackId"] == 1
    assert len(stub.requests) == 2


async def test_missing_mobile_record_is_derived(build_service, auth_client, make_record) -> None:
    stub = UpstreamStub(200)
    service = build_service(stub)
    service.credentials.update_tokens(make_record("tv-current"), SessionProfile.TV)

    await service.make_request("tracks/1", SessionProfile.MOBILE_ATMOS, {"countryCode": "DE"})

    assert auth_client.calls == [SessionProfile.TV, SessionProfile.MOBILE_ATMOS]
    request = stub.requests[0]
    assert request.headers["Authorization"] == "Bearer mobile_atmos-fresh"
    assert request.headers["Host"] == "api.tidal.com"
    assert request.url.params["countryCode"] == "DE"


async def test_missing_tv_record_is_not_found(build_service) -> None:
    service = build_service(UpstreamStub())

    with pytest.raises(CredentialNotFoundError):
        await service.make_request("tracks/1", SessionProfile.TV)
