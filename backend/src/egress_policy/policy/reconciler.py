"""
Merge required statements into an existing bucket policy.

The merge is idempotent: reconciling the same grant twice gives the same
statement array as reconciling it once. Statements the grant does not name
(including statements written by other tools) are returned unchanged and in
their original position.

Open question resolved here: when removing an account leaves a managed
statement with no principals at all, the statement is dropped. S3 rejects a
policy statement with an empty principal list, so keeping it would make the
next put_bucket_policy fail.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Iterable

from ..errors import MalformedPolicyDocumentError
from .models import ResourceGrant
from .statements import (
    DEFAULT_TEMPLATE_FNS,
    GET_KIND,
    PUT_KIND,
    StatementTemplateFn,
    account_root_arn,
    build_statement_templates,
    list_statement_template,
    statement_id,
)

PrincipalMergeFn = Callable[[dict, str], dict]


def _aws_principals(statement: dict) -> list[str]:
    """
    Normalize statement["Principal"]["AWS"] to a duplicate-free list (in place) and return it.

    Raises:
        MalformedPolicyDocumentError: If the principal is not an object (e.g. "*")
    """
    principal = statement.get("Principal")
    if principal is None:
        principal = {}
        statement["Principal"] = principal
    if not isinstance(principal, dict):
        raise MalformedPolicyDocumentError(
            f"Statement {statement.get('Sid')!r} has a non-object Principal and cannot be managed"
        )

    aws = principal.get("AWS")
    if aws is None:
        aws = []
    elif isinstance(aws, str):
        aws = [aws]
    elif not isinstance(aws, list):
        raise MalformedPolicyDocumentError(f"Statement {statement.get('Sid')!r} has an invalid Principal.AWS")

    principal["AWS"] = list(dict.fromkeys(aws))
    return principal["AWS"]


def add_account_to_statement(statement: dict, account_id: str) -> dict:
    """Add the account's root ARN to the statement's principals unless already present."""
    arn = account_root_arn(account_id)
    principals = _aws_principals(statement)
    if arn not in principals:
        principals.append(arn)
    return statement


def remove_account_from_statement(statement: dict, account_id: str) -> dict:
    """Remove exactly the account's root ARN; other principals are kept."""
    arn = account_root_arn(account_id)
    principals = _aws_principals(statement)
    statement["Principal"]["AWS"] = [p for p in principals if p != arn]
    return statement


def _has_principals(statement: dict) -> bool:
    principal = statement.get("Principal")
    if not isinstance(principal, dict):
        return bool(principal)
    return any(bool(value) for value in principal.values())


def reconcile(
    existing_document: dict[str, Any],
    grant: ResourceGrant,
    template_fns: Iterable[StatementTemplateFn] = DEFAULT_TEMPLATE_FNS,
    principal_merge_fn: PrincipalMergeFn = add_account_to_statement,
) -> list[dict]:
    """
    Compute the revised statement array for `grant`.

    For each required template, the existing statement with the same Sid is
    copied and passed through `principal_merge_fn`; if there is none, the
    template itself is. Revised statements replace the first statement with
    their Sid, later duplicates of that Sid are dropped, new ones are appended
    in template order, and revised statements left without principals are
    dropped. The input document is not modified.

    Args:
        existing_document: Parsed policy document
        grant: The grant to converge towards
        template_fns: Template builders, in the order new statements are appended
        principal_merge_fn: add_account_to_statement or remove_account_from_statement

    Returns:
        The full revised "Statement" array
    """
    statements = existing_document.get("Statement") or []
    if not isinstance(statements, list):
        raise MalformedPolicyDocumentError("Bucket policy 'Statement' must be an array")

    existing_by_sid: dict[str, dict] = {}
    for statement in statements:
        if isinstance(statement, dict) and isinstance(statement.get("Sid"), str):
            existing_by_sid.setdefault(statement["Sid"], statement)

    revised: dict[str, dict] = {}
    for template in build_statement_templates(grant, template_fns):
        sid = template["Sid"]
        base = existing_by_sid.get(sid)
        base = copy.deepcopy(base) if base is not None else template
        revised[sid] = principal_merge_fn(base, grant.grantee_account_id)

    result: list[dict] = []
    emitted: set[str] = set()
    for statement in statements:
        sid = statement.get("Sid") if isinstance(statement, dict) else None
        if sid not in revised:
            result.append(copy.deepcopy(statement))
            continue
        if sid in emitted:
            continue
        emitted.add(sid)
        if _has_principals(revised[sid]):
            result.append(revised[sid])

    for sid, statement in revised.items():
        if sid not in emitted and _has_principals(statement):
            result.append(statement)

    return result


def changed_statement_ids(before: list[dict], after: list[dict]) -> list[str]:
    """Sids whose statement was added, removed or modified between two statement arrays."""

    def by_sid(statements: list[dict]) -> dict[str, dict]:
        indexed: dict[str, dict] = {}
        for statement in statements:
            if isinstance(statement, dict) and isinstance(statement.get("Sid"), str):
                indexed.setdefault(statement["Sid"], statement)
        return indexed

    old, new = by_sid(before), by_sid(after)
    sids = list(old) + [sid for sid in new if sid not in old]
    return [sid for sid in sids if old.get(sid) != new.get(sid)]


def grant_statements(
    existing_document: dict[str, Any],
    grant: ResourceGrant,
    template_fns: Iterable[StatementTemplateFn] = DEFAULT_TEMPLATE_FNS,
) -> list[dict]:
    """Statements after adding the grantee to every statement the grant requires."""
    return reconcile(existing_document, grant, template_fns, add_account_to_statement)


def _retains_object_access(statements: list, grant: ResourceGrant) -> bool:
    """True if the grantee is still named in the Get/Put statement this revoke leaves alone."""
    kept_sids = set()
    if not grant.read:
        kept_sids.add(statement_id(GET_KIND, grant.resource_id))
    if not grant.write:
        kept_sids.add(statement_id(PUT_KIND, grant.resource_id))

    arn = account_root_arn(grant.grantee_account_id)
    seen: set[str] = set()
    for statement in statements:
        sid = statement.get("Sid") if isinstance(statement, dict) else None
        if sid not in kept_sids or sid in seen:
            continue
        seen.add(sid)
        principal = statement.get("Principal")
        aws = principal.get("AWS") if isinstance(principal, dict) else None
        if aws == arn or (isinstance(aws, list) and arn in aws):
            return True
    return False


def revoke_statements(
    existing_document: dict[str, Any],
    grant: ResourceGrant,
    template_fns: Iterable[StatementTemplateFn] = DEFAULT_TEMPLATE_FNS,
) -> list[dict]:
    """
    Statements after removing the grantee from every statement the grant names.

    List:<resourceId> is left untouched while the grantee keeps Get or Put
    access that this revoke does not cover.
    """
    template_fns = tuple(template_fns)
    statements = existing_document.get("Statement") or []
    if isinstance(statements, list) and _retains_object_access(statements, grant):
        template_fns = tuple(fn for fn in template_fns if fn is not list_statement_template)
    return reconcile(existing_document, grant, template_fns, remove_account_from_statement)
