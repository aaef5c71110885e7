"""Bucket-policy updater Lambda and execution role stack."""

from aws_cdk import (
    BundlingOptions,
    Stack,
    aws_dynamodb as dynamodb,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_s3 as s3,
    CfnOutput,
    Duration,
)
from constructs import Construct
import os


class BucketPolicyUpdaterStack(Stack):
    """Stack for the Lambda that grants and revokes egress-store access."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment_name: str,
        locks_table: dynamodb.ITable,
        audit_table: dynamodb.ITable,
        egress_store_bucket: s3.IBucket,
        **kwargs,
    ) -> None:
        """
        Initialize the bucket-policy updater stack.

        Args:
            scope: The parent construct
            construct_id: The logical ID of the stack
            environment_name: The environment name (dev, prod, etc.)
            locks_table: DynamoDB table holding lock records (from LockTableStack)
            audit_table: DynamoDB table for audit events (from LockTableStack)
            egress_store_bucket: Bucket whose policy is managed (from EgressStoreStack)
            **kwargs: Additional arguments to pass to Stack
        """
        super().__init__(scope, construct_id, **kwargs)
        self.environment_name = environment_name

        # Lambda execution role with least-privilege permissions
        lambda_role = iam.Role(
            self,
            "BucketPolicyUpdaterRole",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            role_name=f"egress-policy-updater-role-{environment_name}",
        )

        lambda_role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name(
                "service-role/AWSLambdaBasicExecutionRole"
            )
        )

        lambda_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["s3:GetBucketPolicy", "s3:PutBucketPolicy"],
                resources=[egress_store_bucket.bucket_arn],
            )
        )

        lambda_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["dynamodb:UpdateItem", "dynamodb:DeleteItem"],
                resources=[locks_table.table_arn],
            )
        )

        lambda_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["dynamodb:PutItem"],
                resources=[audit_table.table_arn],
            )
        )

        # Lambda function
        asset_path = os.path.join(os.path.dirname(__file__), "..", "..")
        pythonpath = "backend/src"

        updater_fn = lambda_.Function(
            self,
            "BucketPolicyUpdaterHandler",
            runtime=lambda_.Runtime.PYTHON_3_11,
            handler="src.handlers.bucket_policy_handler.lambda_handler",
            code=lambda_.Code.from_asset(
                asset_path,
                exclude=[
                    "cdk.out",
                    ".git",
                    ".venv",
                    "node_modules",
                    ".pytest_cache",
                    ".hypothesis",
                    ".jsii-package-cache",
                ],
                bundling=BundlingOptions(
                    image=lambda_.Runtime.PYTHON_3_11.bundling_image,
                    command=[
                        "bash",
                        "-c",
                        "pip install -r /asset-input/requirements-lambda.txt -t /asset-output "
                        "&& cp -r /asset-input/src /asset-input/backend /asset-output/",
                    ],
                ),
            ),
            role=lambda_role,
            environment={
                "LOCKS_TABLE": locks_table.table_name,
                "AUDIT_TABLE": audit_table.table_name,
                "EGRESS_STORE_BUCKET": egress_store_bucket.bucket_name,
                "BUCKET_POLICY_LOCK_TTL_SECONDS": "25",
                "BUCKET_POLICY_LOCK_MAX_ATTEMPTS": "15",
                "BUCKET_POLICY_LOCK_WAIT_SECONDS": "1",
                "PYTHONPATH": pythonpath,
            },
            # 15 attempts x 1 s waiting plus one read-modify-write must fit.
            timeout=Duration.seconds(60),
            memory_size=256,
            description="Lambda that grants and revokes egress-store access via the bucket policy",
            log_retention=logs.RetentionDays.ONE_WEEK,
        )

        self.updater_function = updater_fn
        self.lambda_role = lambda_role

        CfnOutput(
            self,
            "BucketPolicyUpdaterFunctionName",
            value=updater_fn.function_name,
            export_name=f"EgressPolicyUpdaterFunctionName-{environment_name}",
            description="Lambda function name of the bucket-policy updater (direct invoke)",
        )

        CfnOutput(
            self,
            "BucketPolicyUpdaterFunctionArn",
            value=updater_fn.function_arn,
            export_name=f"EgressPolicyUpdaterFunctionArn-{environment_name}",
            description="Lambda function ARN of the bucket-policy updater",
        )
