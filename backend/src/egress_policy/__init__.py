"""
Top-level package for the `egress_policy` Python code.

This package grants and revokes cross-account access to egress-store S3
prefixes by reconciling bucket policies under a DynamoDB-backed write lock.
"""

from .config import PolicyLockSettings, load_settings
from .errors import (
    AuditWriteError,
    ConfigurationError,
    EgressPolicyError,
    LockUnavailableError,
    MalformedPolicyDocumentError,
    PolicyFetchError,
    PolicyWriteError,
    UnknownStatementKindError,
)
from .factory import create_audit_writer, create_bucket_policy_updater
from .policy import BucketPolicyUpdater, ResourceGrant, bucket_policy_lock_id

__all__: list[str] = [
    "AuditWriteError",
    "BucketPolicyUpdater",
    "ConfigurationError",
    "EgressPolicyError",
    "LockUnavailableError",
    "MalformedPolicyDocumentError",
    "PolicyFetchError",
    "PolicyLockSettings",
    "PolicyWriteError",
    "ResourceGrant",
    "UnknownStatementKindError",
    "bucket_policy_lock_id",
    "create_audit_writer",
    "create_bucket_policy_updater",
    "load_settings",
]
