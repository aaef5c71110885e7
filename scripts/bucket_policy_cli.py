"""
Operator CLI for granting and revoking egress-store bucket access by hand.

Why this exists
---------------
Normally the bucket-policy Lambda is invoked by the services that create
egress stores and workspaces. When a grant has to be repaired or inspected
(e.g. an account was added manually, or a Lambda run failed with a write
error), operators use this script against the same lock table and bucket:

  python scripts/bucket_policy_cli.py grant --bucket my-egress-store \
      --resource-id env-42 --account-id 111122223333 --read --write

Security notes
--------------
- This script does not embed credentials. It relies on standard AWS credential
  resolution (env vars, shared config, SSO, instance profile, etc.).
- A real run takes the same per-bucket lock as the Lambda, so it is safe to
  run while the Lambda is active.

Operational notes
-----------------
- --dry-run reads the current policy and prints the revised document and the
  statement ids that would change. It does not take the lock and writes
  nothing.
- A real run needs LOCKS_TABLE (env or .env); AUDIT_TABLE is optional.
- The script only imports the `egress_policy` package (`pip install -e .`),
  so it runs from any working directory.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError

from egress_policy import EgressPolicyError, PolicyFetchError, ResourceGrant, create_bucket_policy_updater, load_settings
from egress_policy.log import configure_logging
from egress_policy.policy import (
    S3BucketPolicyStore,
    changed_statement_ids,
    grant_statements,
    parse_policy_document,
    revoke_statements,
    with_statements,
)
from egress_policy.validation import validate_account_id, validate_path_prefix, validate_resource_id


@dataclass(frozen=True)
class CliConfig:
    action: str
    bucket: str
    resource_id: str
    account_id: str
    path_prefix: str
    read: bool
    write: bool
    region: Optional[str]
    dry_run: bool
    log_level: str


def parse_args(argv: Optional[list[str]] = None) -> CliConfig:
    parser = argparse.ArgumentParser(
        description="Grant or revoke an AWS account's access to an egress-store prefix."
    )
    parser.add_argument("action", choices=["grant", "revoke"], help="Add or remove the account")
    parser.add_argument("--bucket", required=True, help="Egress-store bucket name")
    parser.add_argument("--resource-id", required=True, help="Egress store / environment id")
    parser.add_argument("--account-id", required=True, help="12-digit AWS account id")
    parser.add_argument(
        "--path-prefix",
        default=None,
        help="Object key prefix (default: <resource-id>/)",
    )
    parser.add_argument("--read", action="store_true", help="Affect read access (GetObject + ListBucket)")
    parser.add_argument("--write", action="store_true", help="Affect write access (PutObject etc. + ListBucket)")
    parser.add_argument("--region", default=None, help="AWS region (default: boto3 resolution)")
    parser.add_argument("--dry-run", action="store_true", help="Do not lock or write; print the revised policy")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")

    args = parser.parse_args(argv)

    resource_id = str(args.resource_id).strip()
    account_id = str(args.account_id).strip()
    path_prefix = str(args.path_prefix).strip() if args.path_prefix else f"{resource_id}/"

    for value, validator in (
        (resource_id, validate_resource_id),
        (account_id, validate_account_id),
        (path_prefix, validate_path_prefix),
    ):
        is_valid, error_msg = validator(value)
        if not is_valid:
            parser.error(error_msg)

    if not (args.read or args.write):
        parser.error("at least one of --read or --write is required")

    return CliConfig(
        action=args.action,
        bucket=str(args.bucket).strip(),
        resource_id=resource_id,
        account_id=account_id,
        path_prefix=path_prefix,
        read=bool(args.read),
        write=bool(args.write),
        region=str(args.region) if args.region else None,
        dry_run=bool(args.dry_run),
        log_level=str(args.log_level),
    )


def build_grant(cfg: CliConfig) -> ResourceGrant:
    return ResourceGrant(
        resource_id=cfg.resource_id,
        bucket_name=cfg.bucket,
        path_prefix=cfg.path_prefix,
        read=cfg.read,
        write=cfg.write,
        grantee_account_id=cfg.account_id,
    )


def preview(policy_store: S3BucketPolicyStore, cfg: CliConfig) -> tuple[dict, list[str]]:
    """
    Compute the revised policy without locking or writing.

    Returns:
        (revised_document, changed_statement_ids)

    Raises:
        PolicyFetchError: The current policy could not be read
    """
    grant = build_grant(cfg)
    revise = grant_statements if cfg.action == "grant" else revoke_statements

    try:
        current = policy_store.get_policy(cfg.bucket)
    except (ClientError, BotoCoreError) as e:
        raise PolicyFetchError(cfg.bucket, e) from e

    document = parse_policy_document(current)
    statements = revise(document, grant)
    return with_statements(document, statements), changed_statement_ids(document["Statement"], statements)


def main(argv: Optional[list[str]] = None) -> int:
    cfg = parse_args(argv)
    log = configure_logging(request_id=f"cli-{uuid4().hex[:8]}", level=cfg.log_level)

    # Import lazily so unit tests can import this module without AWS dependencies.
    import boto3

    s3 = boto3.client("s3", region_name=cfg.region) if cfg.region else boto3.client("s3")

    try:
        if cfg.dry_run:
            revised, changed = preview(S3BucketPolicyStore(s3), cfg)
            print("DRY RUN")
            print(f"- bucket: {cfg.bucket}")
            print(f"- changed statements: {', '.join(changed) if changed else '(none)'}")
            print(json.dumps(revised, indent=2))
            return 0

        settings = load_settings()
        if cfg.region:
            settings = dataclasses.replace(settings, aws_region=cfg.region)

        updater = create_bucket_policy_updater(settings, s3_client=s3)
        grant = build_grant(cfg)
        request_context = {"actor": "bucket-policy-cli"}
        if cfg.action == "grant":
            written = updater.grant_access(grant, request_context=request_context)
        else:
            written = updater.revoke_access(grant, request_context=request_context)
    except EgressPolicyError as e:
        log.error("%s failed: %s", cfg.action, e)
        print(f"ERROR ({e.code}): {e}", file=sys.stderr)
        return 1

    print(f"{cfg.action.upper()} OK")
    print(f"- bucket: {cfg.bucket}")
    print(f"- statements: {len(written.get('Statement', []))}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
