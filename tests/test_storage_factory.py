from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.clients.dynamodb import DynamoDBTokenStore
from app.clients.redis_cache import RedisTokenStore
from app.clients.sqlite_store import SQLiteTokenStore
from app.clients.token_store import StorageConfigurationError
from app.core.config import StorageSettings
from app.models.credentials import StorageTier
from app.services import storage_factory
from app.services.storage_factory import TokenStoreFactory


def test_configured_tiers_follow_failover_order(make_factory) -> None:
    factory = make_factory()

    assert factory.configured_tiers == (
        StorageTier.TRANSACTIONAL,
        StorageTier.KEY_VALUE,
        StorageTier.REMOTE_CACHE,
    )
    assert factory.lower_tiers(StorageTier.TRANSACTIONAL) == (
        StorageTier.KEY_VALUE,
        StorageTier.REMOTE_CACHE,
    )
    assert factory.lower_tiers(StorageTier.REMOTE_CACHE) == ()


def test_key_value_is_the_only_tier_without_optional_backends(make_factory) -> None:
    factory = make_factory(transactional=False, remote_cache=False)

    assert factory.configured_tiers == (StorageTier.KEY_VALUE,)
    assert factory.initial_tier() is StorageTier.KEY_VALUE
    assert isinstance(factory.create(), DynamoDBTokenStore)


def test_auto_preference_starts_on_highest_configured_tier(make_factory) -> None:
    assert make_factory().initial_tier() is StorageTier.TRANSACTIONAL
    assert make_factory(transactional=False).initial_tier() is StorageTier.KEY_VALUE


@pytest.mark.parametrize(
    ("preference", "expected_type"),
    [
        ("transactional", SQLiteTokenStore),
        ("key_value", DynamoDBTokenStore),
        ("remote_cache", RedisTokenStore),
    ],
)
def test_pinned_preference_selects_store(make_factory, preference, expected_type) -> None:
    factory = make_factory(preference=preference)

    assert factory.auto_failover is False
    assert isinstance(factory.create(), expected_type)


def test_explicit_tier_overrides_preference(make_factory) -> None:
    factory = make_factory(preference="transactional")

    assert isinstance(factory.create(StorageTier.REMOTE_CACHE), RedisTokenStore)


def test_remote_cache_without_url_fails_fast() -> None:
    factory = TokenStoreFactory(StorageSettings(preference="auto", redis_url=None))

    with pytest.raises(StorageConfigurationError, match="REDIS_URL"):
        factory.create(StorageTier.REMOTE_CACHE)


def test_pinned_transactional_without_path_fails_fast() -> None:
    factory = TokenStoreFactory(
        StorageSettings(preference="transactional", token_db_path=None)
    )

    with pytest.raises(StorageConfigurationError, match="TOKEN_DB_PATH"):
        factory.initial_tier()


def test_creating_sqlite_store_performs_no_io(tmp_path) -> None:
    db_path = tmp_path / "tokens.db"
    factory = TokenStoreFactory(
        StorageSettings(preference="auto", token_db_path=str(db_path))
    )

    factory.create(StorageTier.TRANSACTIONAL)

    assert not db_path.exists()


def test_preference_accepts_loose_spelling() -> None:
    assert StorageSettings(preference="Key-Value").preference == "key_value"


def test_redis_url_without_scheme_is_rejected() -> None:
    with pytest.raises(ValidationError, match="REDIS_URL"):
        StorageSettings(preference="auto", redis_url="cache.internal:6379")


def test_blank_redis_url_disables_remote_cache() -> None:
    settings = StorageSettings(preference="auto", redis_url="  ")

    assert settings.redis_url is None
    assert StorageTier.REMOTE_CACHE not in TokenStoreFactory(settings).configured_tiers


def test_backend_handle_failure_is_configuration_error(monkeypatch) -> None:
    def broken_client(url: str):
        raise ValueError("unsupported connection option")

    monkeypatch.setattr(storage_factory, "create_redis_client", broken_client)
    factory = TokenStoreFactory(
        StorageSettings(preference="auto", redis_url="redis://cache.test:6379/0")
    )

    with pytest.raises(StorageConfigurationError, match="remote_cache"):
        factory.create(StorageTier.REMOTE_CACHE)
