"""Seed credential records obtained from the device-authorization flow.

The TV profile must be seeded once by an operator after completing the device
code handshake; mobile profiles are derived from it on demand. The record is
written through the credential manager, so with ``STORAGE_PREFERENCE=auto`` it
lands in the top configured tier and is mirrored to every lower one.

Example usages::

    # Seed TV credentials into the configured storage tiers.
    python -m scripts.seed_tokens --access-token "$ACCESS" \
        --refresh-token "$REFRESH" --expires-in 604800 --country-code US

    # Write the record into every configured tier regardless of preference.
    python -m scripts.seed_tokens --access-token "$ACCESS" \
        --refresh-token "$REFRESH" --all-tiers
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from app.clients import (
    StorageBackendError,
    StorageConfigurationError,
    TidalAuthClient,
)
from app.core.config import AppSettings
from app.core.logging import configure_logging
from app.models.credentials import CredentialRecord, SessionProfile
from app.services import CredentialManager, TokenStoreFactory

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORAGE_ERROR = 4

logger = logging.getLogger("scripts.seed_tokens")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Persist bootstrap credentials into the credential storage tiers."
    )
    parser.add_argument(
        "--profile",
        default=SessionProfile.TV.value,
        choices=[profile.value for profile in SessionProfile],
        help="Session profile the credentials belong to (default: TV).",
    )
    parser.add_argument("--access-token", required=True)
    parser.add_argument("--refresh-token", required=True)
    parser.add_argument(
        "--expires-in",
        type=int,
        default=0,
        help=(
            "Seconds until the access token expires. The default of 0 stores an "
            "already-stale record so the first request refreshes it."
        ),
    )
    parser.add_argument("--country-code", default="US")
    parser.add_argument(
        "--all-tiers",
        action="store_true",
        help="Write directly into every configured tier instead of the active one.",
    )
    return parser


def _build_record(args: argparse.Namespace) -> CredentialRecord:
    now = datetime.now(timezone.utc)
    return CredentialRecord(
        access_token=args.access_token,
        refresh_token=args.refresh_token,
        expires_at=now + timedelta(seconds=args.expires_in),
        country_code=args.country_code.upper(),
        updated_at=now,
    )


def seed(
    record: CredentialRecord,
    profile: SessionProfile,
    factory: TokenStoreFactory,
    auth_client: TidalAuthClient,
    settings: AppSettings,
    *,
    all_tiers: bool = False,
) -> list[str]:
    """Write ``record`` and return the tiers that received it."""
    if all_tiers:
        written = []
        for tier in factory.configured_tiers:
            factory.create(tier).update_tokens(record, profile)
            written.append(tier.value)
        return written

    manager = CredentialManager(factory, auth_client, settings.tidal)
    manager.update_tokens(record, profile)
    tiers = [manager.active_tier]
    if manager.auto_failover:
        tiers.extend(factory.lower_tiers(manager.active_tier))
    return [tier.value for tier in tiers]


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = AppSettings()  # type: ignore[call-arg]
        record = _build_record(args)
    except ValidationError as exc:
        print(
            "Settings or credential validation failed:\n" f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    configure_logging(settings.log_level)
    factory = TokenStoreFactory(settings.storage)
    profile = SessionProfile(args.profile)

    try:
        written = seed(
            record,
            profile,
            factory,
            TidalAuthClient(settings.tidal),
            settings,
            all_tiers=args.all_tiers,
        )
    except StorageConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except StorageBackendError as exc:
        print(f"Failed to store credentials: {exc}", file=sys.stderr)
        return EXIT_STORAGE_ERROR

    print(f"Stored {profile.value} credentials in: {', '.join(written)}")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
