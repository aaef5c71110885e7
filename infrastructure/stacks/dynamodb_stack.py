"""DynamoDB stack for bucket-policy locks and the audit trail."""

from aws_cdk import (
    Stack,
    aws_dynamodb as dynamodb,
    CfnOutput,
    RemovalPolicy,
)
from constructs import Construct


class LockTableStack(Stack):
    """Stack for the lock table and the audit table."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment_name: str,
        **kwargs
    ) -> None:
        """
        Initialize the lock table stack.

        Args:
            scope: The parent construct
            construct_id: The logical ID of the stack
            environment_name: The environment name (dev, prod, etc.)
            **kwargs: Additional arguments to pass to Stack
        """
        super().__init__(scope, construct_id, **kwargs)
        self.environment_name = environment_name

        # One item per held lock: {id, expiresAt}. Expired items are reclaimed by the
        # conditional write itself; the TTL only cleans up what nobody touches again.
        locks_table = dynamodb.Table(
            self,
            "LocksTable",
            table_name=f"egress-policy-locks-{environment_name}",
            partition_key=dynamodb.Attribute(
                name="id",
                type=dynamodb.AttributeType.STRING,
            ),
            time_to_live_attribute="expiresAt",
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            encryption=dynamodb.TableEncryption.AWS_MANAGED,
            # Locks are transient; nothing to keep on stack deletion.
            removal_policy=RemovalPolicy.DESTROY,
        )

        audit_table = dynamodb.Table(
            self,
            "AuditTable",
            table_name=f"egress-policy-audit-{environment_name}",
            partition_key=dynamodb.Attribute(
                name="id",
                type=dynamodb.AttributeType.STRING,
            ),
            sort_key=dynamodb.Attribute(
                name="timestamp",
                type=dynamodb.AttributeType.NUMBER,
            ),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            encryption=dynamodb.TableEncryption.AWS_MANAGED,
            # Keep the audit trail unless explicitly removed out-of-band.
            removal_policy=RemovalPolicy.RETAIN,
            point_in_time_recovery=True,
        )

        # Store references for use by other stacks
        self.locks_table = locks_table
        self.audit_table = audit_table

        CfnOutput(
            self,
            "LocksTableName",
            value=locks_table.table_name,
            export_name=f"EgressPolicyLocksTableName-{environment_name}",
            description="DynamoDB lock table name",
        )

        CfnOutput(
            self,
            "LocksTableArn",
            value=locks_table.table_arn,
            export_name=f"EgressPolicyLocksTableArn-{environment_name}",
            description="DynamoDB lock table ARN",
        )

        CfnOutput(
            self,
            "AuditTableName",
            value=audit_table.table_name,
            export_name=f"EgressPolicyAuditTableName-{environment_name}",
            description="DynamoDB audit table name",
        )
