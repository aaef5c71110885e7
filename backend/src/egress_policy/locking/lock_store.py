"""
DynamoDB persistence for lock records.

One item per lock id: {"id": <lock id>, "expiresAt": <epoch seconds>}. The
conditional writes here are the only thing that makes a lock exclusive, so
contention is reported as a result value rather than an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

# Lazily initialized DynamoDB resource (tests patch this symbol).
dynamodb = None


@dataclass(frozen=True)
class ConditionalWriteResult:
    """
    Outcome of a conditional write against the lock table.

    Attributes:
        success: The write (or delete) was applied
        already_exists: The write was rejected because a live record holds the id
    """

    success: bool
    already_exists: bool = False


def table_from_name(table_name: str, region: Optional[str] = None):
    """
    Get a DynamoDB Table resource by name.

    Raises:
        KeyError: If table_name is empty
    """
    global dynamodb
    if dynamodb is None:
        # Import boto3 lazily so unit tests that don't need AWS can import this module.
        import boto3
        dynamodb = boto3.resource("dynamodb", region_name=region) if region else boto3.resource("dynamodb")

    if not table_name:
        raise KeyError("lock table name not set")
    return dynamodb.Table(table_name)


def _error_code(error: ClientError) -> str:
    return (error.response.get("Error") or {}).get("Code", "")


class DynamoDBLockStore:
    """Lock records in a DynamoDB table keyed by `id`."""

    def __init__(self, table: Any) -> None:
        self._table = table

    def put_if_absent_or_expired(self, lock_id: str, expires_at: int, now: int) -> ConditionalWriteResult:
        """
        Write the lock record unless a live one exists.

        A record counts as free once `now >= expiresAt`.

        Raises:
            ClientError: For any storage fault other than the failed condition
        """
        try:
            self._table.update_item(
                Key={"id": lock_id},
                UpdateExpression="SET #expiresAt = :expiresAt",
                ConditionExpression="attribute_not_exists(#id) OR #expiresAt <= :now",
                ExpressionAttributeNames={"#id": "id", "#expiresAt": "expiresAt"},
                ExpressionAttributeValues={":expiresAt": expires_at, ":now": now},
            )
        except ClientError as e:
            if _error_code(e) == CONDITIONAL_CHECK_FAILED:
                return ConditionalWriteResult(success=False, already_exists=True)
            raise
        return ConditionalWriteResult(success=True)

    def delete_if_exists(self, lock_id: str) -> ConditionalWriteResult:
        """
        Delete the lock record if present.

        A missing record (already released or reclaimed) is not an error.
        """
        try:
            self._table.delete_item(
                Key={"id": lock_id},
                ConditionExpression="attribute_exists(#id)",
                ExpressionAttributeNames={"#id": "id"},
            )
        except ClientError as e:
            if _error_code(e) == CONDITIONAL_CHECK_FAILED:
                logger.debug("lock %s was already gone on release", lock_id)
                return ConditionalWriteResult(success=False)
            raise
        return ConditionalWriteResult(success=True)
