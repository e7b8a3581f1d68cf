"""
DynamoDB-backed key-value tier for credential records.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from app.clients.token_store import (
    CredentialNotFoundError,
    HEALTH_CHECK_KEY,
    StorageBackendError,
    build_token_key,
)
from app.core.config import StorageSettings
from app.models.credentials import CredentialRecord, SessionProfile, StorageTier

_THROTTLING_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
        "ThrottlingException",
    }
)


def create_dynamodb_table(settings: StorageSettings) -> Any:
    """Build a boto3 Table handle; no request is issued until first use."""
    resource = boto3.resource(
        "dynamodb",
        region_name=settings.aws_region,
        endpoint_url=settings.dynamodb_endpoint_url,
    )
    return resource.Table(settings.dynamodb_table_name)


class DynamoDBTokenStore:
    """Stores the serialized record verbatim under its namespaced key."""

    tier = StorageTier.KEY_VALUE

    def __init__(self, table: Any) -> None:
        self._table = table

    def _wrap(self, action: str, exc: Exception) -> StorageBackendError:
        status_code = 500
        if isinstance(exc, ClientError):
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _THROTTLING_CODES:
                status_code = 429
        return StorageBackendError(
            f"DynamoDB error {action}: {exc}", tier=self.tier, status_code=status_code
        )

    def get_token_key(self, profile: SessionProfile) -> str:
        return build_token_key(profile)

    def get_tokens(self, profile: SessionProfile) -> CredentialRecord:
        try:
            response = self._table.get_item(Key={"key": self.get_token_key(profile)})
        except (BotoCoreError, ClientError) as exc:
            raise self._wrap("getting tokens", exc) from exc

        item: Optional[Dict[str, Any]] = response.get("Item")
        if not item or not item.get("value"):
            raise CredentialNotFoundError(profile, tier=self.tier)

        try:
            return CredentialRecord.model_validate_json(item["value"])
        except ValidationError as exc:
            raise StorageBackendError(
                f"DynamoDB holds a malformed record for {profile.value}: {exc}",
                tier=self.tier,
            ) from exc

    def update_tokens(self, record: CredentialRecord, profile: SessionProfile) -> None:
        item = {"key": self.get_token_key(profile), "value": record.model_dump_json()}
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise self._wrap("updating tokens", exc) from exc

    def health_check(self) -> bool:
        key = {"key": HEALTH_CHECK_KEY}
        try:
            self._table.put_item(Item={**key, "value": "test"})
            self._table.get_item(Key=key)
            self._table.delete_item(Key=key)
        except (BotoCoreError, ClientError):
            return False
        return True


__all__ = ["DynamoDBTokenStore", "create_dynamodb_table"]
