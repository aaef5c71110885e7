"""
Read and replace S3 bucket policies.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

NO_SUCH_BUCKET_POLICY = "NoSuchBucketPolicy"

# Lazily initialized S3 client (tests patch this symbol).
s3 = None


def get_s3_client(region: Optional[str] = None):
    global s3
    if s3 is None:
        # Import boto3 lazily so unit tests that don't need AWS can import this module.
        import boto3
        s3 = boto3.client("s3", region_name=region) if region else boto3.client("s3")
    return s3


class S3BucketPolicyStore:
    """Bucket policies as JSON strings, via get_bucket_policy / put_bucket_policy."""

    def __init__(self, s3_client: Any) -> None:
        self._s3 = s3_client

    def get_policy(self, bucket_name: str) -> Optional[str]:
        """
        Fetch the bucket policy JSON.

        Returns:
            The policy text, or None if the bucket has no policy yet

        Raises:
            ClientError: For any error other than NoSuchBucketPolicy
        """
        try:
            response = self._s3.get_bucket_policy(Bucket=bucket_name)
        except ClientError as e:
            if (e.response.get("Error") or {}).get("Code") == NO_SUCH_BUCKET_POLICY:
                logger.debug("bucket %s has no policy yet", bucket_name)
                return None
            raise
        return response.get("Policy")

    def put_policy(self, bucket_name: str, policy_json: str) -> None:
        """Replace the whole bucket policy."""
        self._s3.put_bucket_policy(Bucket=bucket_name, Policy=policy_json)
