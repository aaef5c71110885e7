"""
S3 egress-store stack.

This stack provisions the bucket whose policy the bucket-policy updater
manages. Every egress store gets its own key prefix (`<resourceId>/` by
default) and cross-account access is granted per prefix through bucket-policy
statements, never through ACLs.

Design goals
------------
- Secure defaults:
  - Block all public access
  - Server-side encryption
  - Enforce SSL
  - Versioning enabled (protect against accidental overwrite/deletion)
- The updater replaces the whole policy on every change, so the SSL
  enforcement statement CDK adds here is kept by the reconciler as a foreign
  statement.

Notes
-----
- Bucket names must be globally unique. We include account + region to avoid
  collisions.
"""

from aws_cdk import (
    Stack,
    aws_s3 as s3,
    CfnOutput,
    RemovalPolicy,
)
from constructs import Construct


class EgressStoreStack(Stack):
    """Stack for the egress-store S3 bucket."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment_name: str,
        **kwargs,
    ) -> None:
        """
        Initialize the egress-store stack.

        Args:
            scope: The parent construct
            construct_id: The logical ID of the stack
            environment_name: The environment name (dev, prod, etc.)
            **kwargs: Additional arguments to pass to Stack
        """
        super().__init__(scope, construct_id, **kwargs)
        self.environment_name = environment_name

        # Note: `self.account`/`self.region` may be tokens at synth-time; CDK will resolve
        # them during deployment.
        bucket_name = f"egress-store-{environment_name}-{self.account}-{self.region}"

        egress_store_bucket = s3.Bucket(
            self,
            "EgressStoreBucket",
            bucket_name=bucket_name,
            versioned=True,
            block_public_access=s3.BlockPublicAccess(
                block_public_acls=True,
                block_public_policy=True,
                ignore_public_acls=True,
                restrict_public_buckets=True,
            ),
            encryption=s3.BucketEncryption.S3_MANAGED,
            enforce_ssl=True,
            object_ownership=s3.ObjectOwnership.BUCKET_OWNER_ENFORCED,
            # Egress data is retained until explicitly removed out-of-band.
            removal_policy=RemovalPolicy.RETAIN,
        )

        self.egress_store_bucket = egress_store_bucket

        CfnOutput(
            self,
            "EgressStoreBucketName",
            value=egress_store_bucket.bucket_name,
            export_name=f"EgressStoreBucketName-{environment_name}",
            description="S3 bucket name of the egress store",
        )

        CfnOutput(
            self,
            "EgressStoreBucketArn",
            value=egress_store_bucket.bucket_arn,
            export_name=f"EgressStoreBucketArn-{environment_name}",
            description="S3 bucket ARN of the egress store",
        )
