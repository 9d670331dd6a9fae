"""
DynamoDB-backed credential store.

Records live under ``pk = "<namespace>#<key>"`` with a numeric ``expires_at``
attribute that the table's TTL setting can use for eviction. DynamoDB deletes
expired items lazily, so reads filter on ``expires_at`` as well.
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from app.core.config import StoreSettings

_SORT_KEY = "record"


class DynamoDBCredentialStore:
    """Credential store operations on a single-table DynamoDB layout."""

    def __init__(
        self,
        settings: StoreSettings,
        *,
        table: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._clock = clock
        if table is None:
            if not settings.dynamodb_table_name:
                raise ValueError("DYNAMODB_TABLE_NAME is required for the dynamodb backend.")
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    @staticmethod
    def _key(namespace: str, key: str) -> Dict[str, str]:
        return {"pk": f"{namespace}#{key}", "sk": _SORT_KEY}

    def _item(
        self, namespace: str, key: str, value: Dict[str, Any], ttl_seconds: Optional[int]
    ) -> Dict[str, Any]:
        item: Dict[str, Any] = {**self._key(namespace, key), "data": json.dumps(value)}
        if ttl_seconds is not None:
            item["expires_at"] = int(self._clock()) + ttl_seconds
        return item

    def _is_live(self, item: Dict[str, Any]) -> bool:
        expires_at = item.get("expires_at")
        return expires_at is None or int(expires_at) > self._clock()

    def get(self, namespace: str, key: str) -> Optional[Dict[str, Any]]:
        response = self._table.get_item(
            Key=self._key(namespace, key), ConsistentRead=True
        )
        item = response.get("Item")
        if not item or not self._is_live(item):
            return None
        return json.loads(item["data"])

    def put(
        self,
        namespace: str,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self._table.put_item(Item=self._item(namespace, key, value, ttl_seconds))

    def add(
        self,
        namespace: str,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """Conditional put that only succeeds when no live record exists."""
        try:
            self._table.put_item(
                Item=self._item(namespace, key, value, ttl_seconds),
                ConditionExpression="attribute_not_exists(pk) OR expires_at <= :now",
                ExpressionAttributeValues={":now": int(self._clock())},
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            raise
        return True

    def delete(self, namespace: str, key: str) -> bool:
        response = self._table.delete_item(
            Key=self._key(namespace, key), ReturnValues="ALL_OLD"
        )
        previous = response.get("Attributes")
        return bool(previous) and self._is_live(previous)


__all__ = ["DynamoDBCredentialStore"]
