"""
Wire the bucket-policy updater from settings and real AWS clients.
"""

from __future__ import annotations

from typing import Any, Optional

from .audit import AuditWriter, DynamoDBAuditSink, LoggingAuditSink, audit_table_from_name
from .config import PolicyLockSettings
from .locking import DynamoDBLockStore, LockService, table_from_name
from .policy import BucketPolicyUpdater, S3BucketPolicyStore, get_s3_client


def create_audit_writer(settings: PolicyLockSettings) -> AuditWriter:
    """Log sink always; DynamoDB sink only when AUDIT_TABLE is configured."""
    sinks: list = [LoggingAuditSink()]
    if settings.audit_table_name:
        sinks.append(DynamoDBAuditSink(audit_table_from_name(settings.audit_table_name, settings.aws_region)))
    return AuditWriter(sinks)


def create_bucket_policy_updater(
    settings: PolicyLockSettings,
    *,
    s3_client: Optional[Any] = None,
    locks_table: Optional[Any] = None,
    audit_writer: Optional[AuditWriter] = None,
) -> BucketPolicyUpdater:
    lock_service = LockService(
        DynamoDBLockStore(locks_table or table_from_name(settings.locks_table_name, settings.aws_region)),
        settings,
    )
    policy_store = S3BucketPolicyStore(s3_client or get_s3_client(settings.aws_region))
    return BucketPolicyUpdater(
        lock_service,
        policy_store,
        audit_writer or create_audit_writer(settings),
        settings,
    )
