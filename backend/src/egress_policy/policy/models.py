"""
Data model for bucket-policy grants.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceGrant:
    """
    Desired access of one AWS account to one resource's prefix in a bucket.

    Attributes:
        resource_id: Identifier of the resource (egress store / environment id); used in Sids
        bucket_name: Bucket whose policy carries the grant
        path_prefix: Object key prefix the grant is scoped to (e.g. "env-42/")
        read: Grant GetObject and ListBucket on the prefix
        write: Grant object writes/deletes and ListBucket on the prefix
        grantee_account_id: AWS account id whose root principal receives access
    """

    resource_id: str
    bucket_name: str
    path_prefix: str
    read: bool
    write: bool
    grantee_account_id: str

    def to_dict(self) -> dict:
        """
        Convert grant to dictionary representation (audit bodies, CLI output).

        Returns:
            Dictionary with all grant fields
        """
        return {
            "resourceId": self.resource_id,
            "bucket": self.bucket_name,
            "pathPrefix": self.path_prefix,
            "read": self.read,
            "write": self.write,
            "accountId": self.grantee_account_id,
        }
