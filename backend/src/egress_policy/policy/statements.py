"""
Bucket-policy statement templates for a ResourceGrant.

Each managed statement is identified by a Sid of the form "<Kind>:<resourceId>"
(Get, Put or List). The functions here only build templates; merging them into
an existing policy is the reconciler's job.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Optional

from ..errors import UnknownStatementKindError
from .models import ResourceGrant

GET_KIND = "Get"
PUT_KIND = "Put"
LIST_KIND = "List"

GET_ACTIONS = ["s3:GetObject"]
PUT_ACTIONS = [
    "s3:AbortMultipartUpload",
    "s3:ListMultipartUploadParts",
    "s3:PutObject",
    "s3:PutObjectAcl",
    "s3:DeleteObject",
]
LIST_ACTIONS = ["s3:ListBucket"]

_MANAGED_SID = re.compile(rf"^({GET_KIND}|{PUT_KIND}|{LIST_KIND}):.+$")

StatementTemplateFn = Callable[[ResourceGrant], Optional[dict]]


def account_root_arn(account_id: str) -> str:
    return f"arn:aws:iam::{account_id}:root"


def bucket_arn(bucket_name: str) -> str:
    return f"arn:aws:s3:::{bucket_name}"


def statement_id(kind: str, resource_id: str) -> str:
    return f"{kind}:{resource_id}"


def is_managed_sid(sid: object) -> bool:
    """True if `sid` follows the "<Kind>:<resourceId>" convention of managed statements."""
    return isinstance(sid, str) and _MANAGED_SID.match(sid) is not None


def _allow_statement(
    sid: str,
    grant: ResourceGrant,
    actions: list[str],
    resource,
    condition: Optional[dict] = None,
) -> dict:
    statement = {
        "Sid": sid,
        "Effect": "Allow",
        "Principal": {"AWS": [account_root_arn(grant.grantee_account_id)]},
        "Action": list(actions),
        "Resource": resource,
    }
    if condition:
        statement["Condition"] = condition
    return statement


def get_statement_template(grant: ResourceGrant) -> Optional[dict]:
    """GetObject on the grant's prefix; present iff grant.read."""
    if not grant.read:
        return None
    return _allow_statement(
        statement_id(GET_KIND, grant.resource_id),
        grant,
        GET_ACTIONS,
        [f"{bucket_arn(grant.bucket_name)}/{grant.path_prefix}*"],
    )


def put_statement_template(grant: ResourceGrant) -> Optional[dict]:
    """Object writes and deletes on the grant's prefix; present iff grant.write."""
    if not grant.write:
        return None
    return _allow_statement(
        statement_id(PUT_KIND, grant.resource_id),
        grant,
        PUT_ACTIONS,
        [f"{bucket_arn(grant.bucket_name)}/{grant.path_prefix}*"],
    )


def list_statement_template(grant: ResourceGrant) -> Optional[dict]:
    """ListBucket restricted to the grant's prefix; present iff grant.read or grant.write."""
    if not (grant.read or grant.write):
        return None
    return _allow_statement(
        statement_id(LIST_KIND, grant.resource_id),
        grant,
        LIST_ACTIONS,
        bucket_arn(grant.bucket_name),
        condition={"StringLike": {"s3:prefix": [f"{grant.path_prefix}*"]}},
    )


STATEMENT_TEMPLATES: dict[str, StatementTemplateFn] = {
    GET_KIND: get_statement_template,
    PUT_KIND: put_statement_template,
    LIST_KIND: list_statement_template,
}

DEFAULT_TEMPLATE_FNS: tuple[StatementTemplateFn, ...] = (
    get_statement_template,
    put_statement_template,
    list_statement_template,
)


def templates_for_kinds(kinds: Iterable[str]) -> tuple[StatementTemplateFn, ...]:
    """
    Map kind names ("Get", "Put", "List") to their template functions, in the given order.

    Raises:
        UnknownStatementKindError: If a kind has no template function
    """
    fns = []
    for kind in kinds:
        fn = STATEMENT_TEMPLATES.get(kind)
        if fn is None:
            raise UnknownStatementKindError(kind)
        fns.append(fn)
    return tuple(fns)


def build_statement_templates(
    grant: ResourceGrant,
    template_fns: Iterable[StatementTemplateFn] = DEFAULT_TEMPLATE_FNS,
) -> list[dict]:
    """Return the templates the grant requires, skipping kinds it does not need."""
    templates = []
    for fn in template_fns:
        template = fn(grant)
        if template is not None:
            templates.append(template)
    return templates
