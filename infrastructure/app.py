"""AWS CDK Application for the egress-store bucket-policy updater (dev-only)."""

import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from aws_cdk import App, Environment, Tags

from infrastructure.stacks.bucket_policy_updater_stack import BucketPolicyUpdaterStack
from infrastructure.stacks.dynamodb_stack import LockTableStack
from infrastructure.stacks.egress_store_stack import EgressStoreStack


def create_app(app: App = None) -> App:
    """
    Create and configure the CDK App (dev-only).

    Args:
        app: Optional pre-built App (tests pass one with bundling disabled)

    Returns:
        Configured CDK App instance
    """
    app = app or App()

    # Global tags applied to all stacks in this app
    Tags.of(app).add("Project", "egress-policy")
    Tags.of(app).add("ManagedBy", "CDK")

    # CDK requires an account for non-environment-agnostic stacks; the CDK CLI
    # typically provides CDK_DEFAULT_ACCOUNT/CDK_DEFAULT_REGION automatically.
    env_config = Environment(
        account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
        region=os.environ.get("CDK_DEFAULT_REGION", "eu-central-1"),
    )

    environment_name = "dev"

    lock_table_stack = LockTableStack(
        app,
        f"EgressPolicyLocks-{environment_name}",
        environment_name=environment_name,
        env=env_config,
        description="Egress store bucket policy - lock and audit tables (dev)",
    )

    egress_store_stack = EgressStoreStack(
        app,
        f"EgressStore-{environment_name}",
        environment_name=environment_name,
        env=env_config,
        description="Egress store bucket policy - egress store bucket (dev)",
    )

    updater_stack = BucketPolicyUpdaterStack(
        app,
        f"EgressPolicyUpdater-{environment_name}",
        environment_name=environment_name,
        locks_table=lock_table_stack.locks_table,
        audit_table=lock_table_stack.audit_table,
        egress_store_bucket=egress_store_stack.egress_store_bucket,
        env=env_config,
        description="Egress store bucket policy - updater Lambda (dev)",
    )

    # Ensure deployment ordering across stacks that reference each other.
    updater_stack.add_dependency(lock_table_stack)
    updater_stack.add_dependency(egress_store_stack)

    return app


if __name__ == "__main__":
    create_app().synth()
