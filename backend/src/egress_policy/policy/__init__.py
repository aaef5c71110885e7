from .bucket_policy_updater import (
    GRANT_AUDIT_ACTION,
    REVOKE_AUDIT_ACTION,
    BucketPolicyUpdater,
    bucket_policy_lock_id,
)
from .documents import parse_policy_document, serialize_policy_document, with_statements
from .models import ResourceGrant
from .policy_store import S3BucketPolicyStore, get_s3_client
from .reconciler import (
    add_account_to_statement,
    changed_statement_ids,
    grant_statements,
    reconcile,
    remove_account_from_statement,
    revoke_statements,
)
from .statements import (
    DEFAULT_TEMPLATE_FNS,
    build_statement_templates,
    get_statement_template,
    is_managed_sid,
    list_statement_template,
    put_statement_template,
    templates_for_kinds,
)

__all__ = [
    "GRANT_AUDIT_ACTION",
    "REVOKE_AUDIT_ACTION",
    "BucketPolicyUpdater",
    "bucket_policy_lock_id",
    "parse_policy_document",
    "serialize_policy_document",
    "with_statements",
    "ResourceGrant",
    "S3BucketPolicyStore",
    "get_s3_client",
    "add_account_to_statement",
    "changed_statement_ids",
    "grant_statements",
    "reconcile",
    "remove_account_from_statement",
    "revoke_statements",
    "DEFAULT_TEMPLATE_FNS",
    "build_statement_templates",
    "get_statement_template",
    "is_managed_sid",
    "list_statement_template",
    "put_statement_template",
    "templates_for_kinds",
]
