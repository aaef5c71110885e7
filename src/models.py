"""
Data models for the bucket-policy updater Lambda.

Provides the PolicyChangeRequest dataclass and helper functions for creating
requests with UUID v4 identifiers and ISO-8601 UTC timestamps.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import uuid4
from typing import Optional

from egress_policy import ResourceGrant


@dataclass
class PolicyChangeRequest:
    """
    Represents a single grant or revoke request.

    Attributes:
        request_id: Unique identifier (UUID v4) for the request
        requested_at: ISO-8601 formatted UTC timestamp of request creation
        action: "grant" or "revoke"
        resource_id: Egress store / environment id the statements are named after
        bucket_name: Bucket whose policy is changed
        path_prefix: Object key prefix the access is scoped to
        account_id: 12-digit AWS account id receiving (or losing) access
        read: Whether read access is affected
        write: Whether write access is affected
    """

    request_id: str
    requested_at: str
    action: str
    resource_id: str
    bucket_name: str
    path_prefix: str
    account_id: str
    read: bool
    write: bool

    def to_dict(self) -> dict:
        """
        Convert request to dictionary representation.

        Returns:
            Dictionary with all request fields
        """
        return {
            "request_id": self.request_id,
            "requested_at": self.requested_at,
            "action": self.action,
            "resource_id": self.resource_id,
            "bucket_name": self.bucket_name,
            "path_prefix": self.path_prefix,
            "account_id": self.account_id,
            "read": self.read,
            "write": self.write,
        }

    def to_grant(self) -> ResourceGrant:
        return ResourceGrant(
            resource_id=self.resource_id,
            bucket_name=self.bucket_name,
            path_prefix=self.path_prefix,
            read=self.read,
            write=self.write,
            grantee_account_id=self.account_id,
        )


def generate_request_id() -> str:
    """
    Generate a unique request identifier using UUID v4.

    Returns:
        UUID v4 string in standard format (8-4-4-4-12 hex digits)
    """
    return str(uuid4())


def generate_timestamp_utc() -> str:
    """
    Generate current timestamp in ISO-8601 UTC format.

    Returns:
        ISO-8601 formatted UTC timestamp (YYYY-MM-DDTHH:MM:SSZ)
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def default_path_prefix(resource_id: str) -> str:
    return f"{resource_id}/"


def create_policy_change_request(
    action: str,
    resource_id: str,
    bucket_name: str,
    account_id: str,
    read: bool,
    write: bool,
    path_prefix: Optional[str] = None,
    request_id: Optional[str] = None,
    requested_at: Optional[str] = None,
) -> PolicyChangeRequest:
    """
    Create a new PolicyChangeRequest with auto-generated ID and timestamp.

    Args:
        action: "grant" or "revoke"
        resource_id: Egress store / environment id
        bucket_name: Bucket whose policy is changed
        account_id: 12-digit AWS account id
        read: Whether read access is affected
        write: Whether write access is affected
        path_prefix: Optional key prefix (defaults to "<resource_id>/")
        request_id: Optional pre-generated UUID (auto-generated if not provided)
        requested_at: Optional pre-generated timestamp (auto-generated if not provided)

    Returns:
        PolicyChangeRequest instance with all fields populated
    """
    return PolicyChangeRequest(
        request_id=request_id or generate_request_id(),
        requested_at=requested_at or generate_timestamp_utc(),
        action=action,
        resource_id=resource_id,
        bucket_name=bucket_name,
        path_prefix=path_prefix or default_path_prefix(resource_id),
        account_id=account_id,
        read=read,
        write=write,
    )
