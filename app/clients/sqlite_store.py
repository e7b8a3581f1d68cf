"""SQLite-backed transactional tier for credential records."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from pydantic import ValidationError

from app.clients.token_store import (
    CredentialNotFoundError,
    HEALTH_CHECK_KEY,
    StorageBackendError,
    build_token_key,
)
from app.models.credentials import CredentialRecord, SessionProfile, StorageTier


class SQLiteTokenStore:
    """Stores one serialized record per key with indexed expiry columns."""

    tier = StorageTier.TRANSACTIONAL

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        self._schema_ready = False

    def _connect(self) -> sqlite3.Connection:
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tokens (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tokens_expires ON tokens(expires)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tokens_updated_at ON tokens(updated_at)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS health_checks (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
        self._schema_ready = True

    def get_token_key(self, profile: SessionProfile) -> str:
        return build_token_key(profile)

    def get_tokens(self, profile: SessionProfile) -> CredentialRecord:
        try:
            self._ensure_schema()
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value FROM tokens WHERE key = ?",
                    (self.get_token_key(profile),),
                ).fetchone()
        except (sqlite3.Error, OSError) as exc:
            raise StorageBackendError(
                f"SQLite error getting tokens: {exc}", tier=self.tier
            ) from exc

        if not row or not row["value"]:
            raise CredentialNotFoundError(profile, tier=self.tier)

        try:
            return CredentialRecord.model_validate_json(row["value"])
        except ValidationError as exc:
            raise StorageBackendError(
                f"SQLite holds a malformed record for {profile.value}: {exc}",
                tier=self.tier,
            ) from exc

    def update_tokens(self, record: CredentialRecord, profile: SessionProfile) -> None:
        try:
            self._ensure_schema()
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO tokens (key, value, expires, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        self.get_token_key(profile),
                        record.model_dump_json(),
                        record.expires_at.isoformat(),
                        record.updated_at.isoformat(),
                    ),
                )
        except (sqlite3.Error, OSError) as exc:
            raise StorageBackendError(
                f"SQLite error updating tokens: {exc}", tier=self.tier
            ) from exc

    def health_check(self) -> bool:
        try:
            self._ensure_schema()
            with self._connect() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO health_checks (key, value) VALUES (?, ?)",
                    (HEALTH_CHECK_KEY, "test"),
                )
                conn.execute(
                    "SELECT value FROM health_checks WHERE key = ?", (HEALTH_CHECK_KEY,)
                ).fetchone()
                conn.execute(
                    "DELETE FROM health_checks WHERE key = ?", (HEALTH_CHECK_KEY,)
                )
        except (sqlite3.Error, OSError):
            return False
        return True


__all__ = ["SQLiteTokenStore"]
