"""
Audit sinks: a JSON log line and a DynamoDB audit table.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from .audit_writer import AuditEvent, with_request_context

# Lazily initialized DynamoDB resource (tests patch this symbol).
dynamodb = None


def audit_table_from_name(table_name: str, region: Optional[str] = None):
    """
    Get the audit DynamoDB Table resource by name.

    Raises:
        KeyError: If table_name is empty
    """
    global dynamodb
    if dynamodb is None:
        import boto3
        dynamodb = boto3.resource("dynamodb", region_name=region) if region else boto3.resource("dynamodb")

    if not table_name:
        raise KeyError("audit table name not set")
    return dynamodb.Table(table_name)


class LoggingAuditSink:
    """Emit each event as one JSON line on the `egress_policy.audit` logger."""

    name = "log"

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self._logger = logger or logging.getLogger("egress_policy.audit")
        self._level = level

    def prepare(self, event: AuditEvent, request_context: Optional[dict]) -> AuditEvent:
        return with_request_context(event, request_context)

    def write(self, event: AuditEvent, request_context: Optional[dict]) -> None:
        self._logger.log(self._level, "audit %s", json.dumps(event.to_dict(), sort_keys=True, default=str))


class DynamoDBAuditSink:
    """
    Store each event as an item in the audit table (PK `id`, SK `timestamp`).

    Attribute values that are None are omitted; floats in the body are stored
    as Decimal (boto3 rejects float).
    """

    name = "dynamodb"

    def __init__(self, table: Any) -> None:
        self._table = table

    def prepare(self, event: AuditEvent, request_context: Optional[dict]) -> AuditEvent:
        return with_request_context(event, request_context)

    def to_item(self, event: AuditEvent) -> dict:
        item = {
            "id": str(uuid4()),
            "timestamp": event.timestamp,
            "action": event.action,
            "message": event.message,
            "actor": event.actor,
            "ipAddress": event.ip_address,
            "body": json.loads(json.dumps(event.body, default=str), parse_float=Decimal),
        }
        return {key: value for key, value in item.items() if value is not None}

    def write(self, event: AuditEvent, request_context: Optional[dict]) -> None:
        self._table.put_item(Item=self.to_item(event))
