"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
import redis
from botocore.exceptions import ClientError

from app.core.config import StorageSettings, TidalSettings
from app.models.credentials import CredentialRecord
from app.services.storage_factory import TokenStoreFactory


class FakeDynamoDBTable:
    """In-memory stand-in for a boto3 ``Table`` keyed by ``key``."""

    def __init__(self) -> None:
        self.items: dict[str, dict] = {}
        self.fail_with: str | None = None
        self.put_calls = 0

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_with:
            raise ClientError(
                {"Error": {"Code": self.fail_with, "Message": "simulated failure"}},
                operation,
            )

    def get_item(self, Key: dict) -> dict:
        self._maybe_fail("GetItem")
        item = self.items.get(Key["key"])
        return {"Item": dict(item)} if item else {}

    def put_item(self, Item: dict) -> None:
        self._maybe_fail("PutItem")
        self.put_calls += 1
        self.items[Item["key"]] = dict(Item)

    def delete_item(self, Key: dict) -> None:
        self._maybe_fail("DeleteItem")
        self.items.pop(Key["key"], None)


class FakeRedis:
    """Minimal synchronous Redis client recording expirations."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.expirations: dict[str, int | None] = {}
        self.fail = False

    def _maybe_fail(self) -> None:
        if self.fail:
            raise redis.ConnectionError("simulated outage")

    def get(self, key: str) -> str | None:
        self._maybe_fail()
        return self.values.get(key)

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._maybe_fail()
        self.values[key] = value
        self.expirations[key] = ex
        return True

    def delete(self, key: str) -> int:
        self._maybe_fail()
        return 1 if self.values.pop(key, None) is not None else 0


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def tidal_settings() -> TidalSettings:
    return TidalSettings(
        api_base_url="https://api.tidal.test/v1",
        auth_url="https://auth.tidal.test/v1/oauth2/token",
        tv_client_id="tv-client",
        tv_client_secret="tv-secret",
        mobile_default_client_id="mobile-client",
        mobile_atmos_client_id="atmos-client",
    )


@pytest.fixture
def dynamodb_table() -> FakeDynamoDBTable:
    return FakeDynamoDBTable()


@pytest.fixture
def redis_client() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def make_factory(
    tmp_path, dynamodb_table: FakeDynamoDBTable, redis_client: FakeRedis
) -> Callable[..., TokenStoreFactory]:
    """Build a store factory over SQLite in ``tmp_path`` and the in-memory fakes."""

    def _make(
        *,
        preference: str = "auto",
        transactional: bool = True,
        remote_cache: bool = True,
    ) -> TokenStoreFactory:
        settings = StorageSettings(
            preference=preference,
            token_db_path=str(tmp_path / "tokens.db") if transactional else None,
            dynamodb_table_name="tidal-tokens-test",
            redis_url="redis://cache.test:6379/0" if remote_cache else None,
        )
        return TokenStoreFactory(
            settings,
            dynamodb_table=dynamodb_table,
            redis_client=redis_client if remote_cache else None,
        )

    return _make


@pytest.fixture
def make_record() -> Callable[..., CredentialRecord]:
    def _make(
        access_token: str = "access-1",
        refresh_token: str = "refresh-1",
        *,
        expires_in: int = 3600,
        country_code: str = "US",
    ) -> CredentialRecord:
        now = datetime.now(timezone.utc)
        return CredentialRecord(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + timedelta(seconds=expires_in),
            country_code=country_code,
            updated_at=now,
        )

    return _make
