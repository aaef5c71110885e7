"""
Property-based tests for the policy reconciler.

Tests idempotence, non-interference and foreign-statement preservation of
reconcile() using hypothesis-generated policy documents.
"""

import copy

import pytest
from hypothesis import given, strategies as st

from egress_policy.errors import MalformedPolicyDocumentError
from egress_policy.policy import (
    ResourceGrant,
    add_account_to_statement,
    build_statement_templates,
    changed_statement_ids,
    grant_statements,
    reconcile,
    remove_account_from_statement,
    revoke_statements,
    with_statements,
)
from egress_policy.policy.statements import account_root_arn, is_managed_sid


BUCKET = "egress-store"
ACCOUNT_A = "111111111111"
ACCOUNT_B = "222222222222"


def _grant(account_id=ACCOUNT_A, resource_id="env-1", read=True, write=True) -> ResourceGrant:
    return ResourceGrant(
        resource_id=resource_id,
        bucket_name=BUCKET,
        path_prefix=f"{resource_id}/",
        read=read,
        write=write,
        grantee_account_id=account_id,
    )


def _sids(statements):
    return [s.get("Sid") for s in statements]


def _still_named(first_by_sid, grant) -> bool:
    """True if the grantee is in a Get/Put statement that revoking `grant` does not touch."""
    kinds = [kind for kind, revoked in (("Get", grant.read), ("Put", grant.write)) if not revoked]
    grantee = account_root_arn(grant.grantee_account_id)
    for kind in kinds:
        statement = first_by_sid.get(f"{kind}:{grant.resource_id}")
        if statement is None:
            continue
        aws = statement["Principal"]["AWS"]
        if grantee in ([aws] if isinstance(aws, str) else aws):
            return True
    return False


# Strategies

account_ids = st.sampled_from(["111111111111", "222222222222", "333333333333", "444444444444"])
resource_ids = st.sampled_from(["env-1", "env-2", "env-3"])
kinds = st.sampled_from(["Get", "Put", "List"])

principal_lists = st.lists(account_ids.map(account_root_arn), max_size=3)
aws_principals = st.one_of(principal_lists, account_ids.map(account_root_arn))

managed_statements = st.builds(
    lambda kind, resource_id, aws: {
        "Sid": f"{kind}:{resource_id}",
        "Effect": "Allow",
        "Principal": {"AWS": aws},
        "Action": ["s3:GetObject"],
        "Resource": [f"arn:aws:s3:::{BUCKET}/{resource_id}/*"],
    },
    kinds,
    resource_ids,
    aws_principals,
)

foreign_statements = st.builds(
    lambda n, principal: {
        "Sid": f"Foreign{n}",
        "Effect": "Deny",
        "Principal": principal,
        "Action": "s3:*",
        "Resource": [f"arn:aws:s3:::{BUCKET}", f"arn:aws:s3:::{BUCKET}/*"],
        "Condition": {"Bool": {"aws:SecureTransport": "false"}},
    },
    st.integers(min_value=0, max_value=5),
    st.one_of(st.just("*"), st.just({"AWS": []}), principal_lists.map(lambda aws: {"AWS": aws})),
)

documents = st.builds(
    lambda statements: {"Version": "2012-10-17", "Statement": statements},
    st.lists(st.one_of(managed_statements, foreign_statements), max_size=8),
)

grants = st.builds(
    lambda account_id, resource_id, read, write: _grant(account_id, resource_id, read, write),
    account_ids,
    resource_ids,
    st.booleans(),
    st.booleans(),
)

merge_fns = st.sampled_from([add_account_to_statement, remove_account_from_statement])


# ============================================================================
# Property 1: Idempotence
# ============================================================================


@given(document=documents, grant=grants, merge_fn=merge_fns)
def test_reconcile_is_idempotent(document, grant, merge_fn):
    """
    For any document D and grant G, reconcile(reconcile(D, G), G) SHALL equal reconcile(D, G).
    """
    once = reconcile(document, grant, principal_merge_fn=merge_fn)
    twice = reconcile(with_statements(document, once), grant, principal_merge_fn=merge_fn)

    assert twice == once


@given(document=documents, grant=grants)
def test_grant_leaves_no_duplicate_sids_or_principals(document, grant):
    """
    After a grant, the grant's Sids SHALL appear once and carry no duplicate principal ARNs.
    """
    statements = grant_statements(document, grant)

    for sid in {template["Sid"] for template in build_statement_templates(grant)}:
        matching = [s for s in statements if s.get("Sid") == sid]
        assert len(matching) == 1
        principals = matching[0]["Principal"]["AWS"]
        assert len(principals) == len(set(principals))
        assert account_root_arn(grant.grantee_account_id) in principals


# ============================================================================
# Property 2: Non-interference
# ============================================================================


@given(grant=grants, other=account_ids)
def test_grant_never_removes_other_accounts(grant, other):
    """
    Granting account A SHALL never remove or duplicate a previously granted account B.
    """
    existing = {"Statement": grant_statements({"Statement": []}, _grant(other, grant.resource_id, True, True))}

    statements = grant_statements(existing, grant)

    for statement in statements:
        principals = statement["Principal"]["AWS"]
        assert principals.count(account_root_arn(other)) == 1


@given(document=documents, grant=grants)
def test_revoke_removes_only_the_grantee(document, grant):
    """
    Revoking account A SHALL remove exactly A's ARN and leave every other statement as it was.
    """
    first_by_sid = {}
    for statement in document["Statement"]:
        first_by_sid.setdefault(statement["Sid"], statement)
    revised_sids = {template["Sid"] for template in build_statement_templates(grant)}
    grantee = account_root_arn(grant.grantee_account_id)
    if _still_named(first_by_sid, grant):
        revised_sids.discard(f"List:{grant.resource_id}")

    statements = revoke_statements(document, grant)

    for statement in statements:
        sid = statement["Sid"]
        if sid in revised_sids:
            aws = first_by_sid[sid]["Principal"]["AWS"]
            aws = [aws] if isinstance(aws, str) else aws
            expected = [p for p in dict.fromkeys(aws) if p != grantee]
            assert statement["Principal"]["AWS"] == expected
            assert expected
        else:
            assert statement in document["Statement"]


@given(grant=grants, others=st.lists(account_ids, max_size=2), revoke_read=st.booleans())
def test_partial_revoke_keeps_list_for_remaining_access(grant, others, revoke_read):
    """
    Revoking only read (or only write) from a read+write grantee SHALL keep the grantee in List.
    """
    statements = []
    for account_id in others + [grant.grantee_account_id]:
        full = _grant(account_id, grant.resource_id, True, True)
        statements = grant_statements({"Statement": statements}, full)
    partial = _grant(grant.grantee_account_id, grant.resource_id, revoke_read, not revoke_read)
    grantee = account_root_arn(grant.grantee_account_id)

    revised = revoke_statements({"Statement": statements}, partial)

    by_sid = {s["Sid"]: s["Principal"]["AWS"] for s in revised}
    revoked, kept = ("Get", "Put") if revoke_read else ("Put", "Get")
    assert grantee not in by_sid.get(f"{revoked}:{grant.resource_id}", [])
    assert grantee in by_sid[f"{kept}:{grant.resource_id}"]
    assert grantee in by_sid[f"List:{grant.resource_id}"]


# ============================================================================
# Property 3: Foreign-statement preservation
# ============================================================================


@given(document=documents, grant=grants, merge_fn=merge_fns)
def test_foreign_statements_are_preserved(document, grant, merge_fn):
    """
    Statements whose Sid is not "<Kind>:<resourceId>" SHALL be returned unchanged and in order.
    """
    foreign_before = [s for s in document["Statement"] if not is_managed_sid(s.get("Sid"))]

    statements = reconcile(document, grant, principal_merge_fn=merge_fn)

    assert [s for s in statements if not is_managed_sid(s.get("Sid"))] == foreign_before


@given(document=documents, grant=grants, merge_fn=merge_fns)
def test_input_document_is_not_mutated(document, grant, merge_fn):
    snapshot = copy.deepcopy(document)

    reconcile(document, grant, principal_merge_fn=merge_fn)

    assert document == snapshot


# ============================================================================
# Examples
# ============================================================================


def test_grant_against_empty_policy_appends_templates() -> None:
    grant = ResourceGrant(
        resource_id="test-id",
        bucket_name="test-egressStoreBucketName",
        path_prefix="test-id",
        read=True,
        write=True,
        grantee_account_id="test-accountId",
    )

    statements = reconcile({"Statement": []}, grant)

    assert _sids(statements) == ["Get:test-id", "Put:test-id", "List:test-id"]
    for statement in statements:
        assert statement["Principal"]["AWS"] == ["arn:aws:iam::test-accountId:root"]
    assert statements[2]["Resource"] == "arn:aws:s3:::test-egressStoreBucketName"
    assert statements[2]["Condition"]["StringLike"]["s3:prefix"] == ["test-id*"]


def test_revised_statement_keeps_its_position() -> None:
    existing = {
        "Statement": [
            {"Sid": "DenyInsecureTransport", "Effect": "Deny", "Principal": "*", "Action": "s3:*"},
            {
                "Sid": "Get:env-1",
                "Effect": "Allow",
                "Principal": {"AWS": [account_root_arn(ACCOUNT_B)]},
                "Action": ["s3:GetObject"],
                "Resource": ["arn:aws:s3:::egress-store/env-1/*"],
            },
            {"Sid": "Custom", "Effect": "Allow", "Principal": {"AWS": "arn:aws:iam::999999999999:root"}},
        ]
    }

    statements = grant_statements(existing, _grant(read=True, write=False))

    assert _sids(statements) == ["DenyInsecureTransport", "Get:env-1", "Custom", "List:env-1"]
    assert statements[1]["Principal"]["AWS"] == [account_root_arn(ACCOUNT_B), account_root_arn(ACCOUNT_A)]
    assert statements[2] == existing["Statement"][2]


def test_existing_statement_fields_other_than_principal_are_kept() -> None:
    existing = {
        "Statement": [
            {
                "Sid": "Get:env-1",
                "Effect": "Allow",
                "Principal": {"AWS": [account_root_arn(ACCOUNT_B)]},
                "Action": ["s3:GetObject", "s3:GetObjectTagging"],
                "Resource": ["arn:aws:s3:::egress-store/legacy/*"],
            }
        ]
    }

    statements = grant_statements(existing, _grant(read=True, write=False))

    assert statements[0]["Action"] == ["s3:GetObject", "s3:GetObjectTagging"]
    assert statements[0]["Resource"] == ["arn:aws:s3:::egress-store/legacy/*"]


def test_string_principal_is_normalized_to_list() -> None:
    existing = {
        "Statement": [
            {"Sid": "Get:env-1", "Effect": "Allow", "Principal": {"AWS": account_root_arn(ACCOUNT_B)}}
        ]
    }

    statements = grant_statements(existing, _grant(read=True, write=False))

    assert statements[0]["Principal"]["AWS"] == [account_root_arn(ACCOUNT_B), account_root_arn(ACCOUNT_A)]


def test_later_duplicate_sids_are_dropped() -> None:
    duplicate = {"Sid": "Get:env-1", "Effect": "Allow", "Principal": {"AWS": [account_root_arn(ACCOUNT_B)]}}
    existing = {"Statement": [duplicate, {"Sid": "Other"}, copy.deepcopy(duplicate)]}

    statements = grant_statements(existing, _grant(read=True, write=False))

    assert _sids(statements) == ["Get:env-1", "Other", "List:env-1"]


def test_revoking_last_principal_drops_statement() -> None:
    granted = grant_statements({"Statement": [{"Sid": "Keep"}]}, _grant())

    statements = revoke_statements({"Statement": granted}, _grant())

    assert statements == [{"Sid": "Keep"}]


def test_revoking_read_only_keeps_list_while_put_remains() -> None:
    granted = grant_statements({"Statement": []}, _grant(read=True, write=True))

    statements = revoke_statements({"Statement": granted}, _grant(read=True, write=False))

    assert _sids(statements) == ["Put:env-1", "List:env-1"]
    assert statements[1] == granted[2]


def test_revoking_write_only_keeps_list_while_get_remains() -> None:
    granted = grant_statements({"Statement": []}, _grant(read=True, write=True))

    statements = revoke_statements({"Statement": granted}, _grant(read=False, write=True))

    assert _sids(statements) == ["Get:env-1", "List:env-1"]


def test_revoking_remaining_access_then_drops_list() -> None:
    granted = grant_statements({"Statement": []}, _grant(read=True, write=True))
    statements = revoke_statements({"Statement": granted}, _grant(read=True, write=False))

    statements = revoke_statements({"Statement": statements}, _grant(read=False, write=True))

    assert statements == []


def test_revoke_keeps_statement_with_other_principals() -> None:
    granted = grant_statements({"Statement": []}, _grant(ACCOUNT_B))
    granted = grant_statements({"Statement": granted}, _grant(ACCOUNT_A))

    statements = revoke_statements({"Statement": granted}, _grant(ACCOUNT_A))

    assert _sids(statements) == ["Get:env-1", "Put:env-1", "List:env-1"]
    for statement in statements:
        assert statement["Principal"]["AWS"] == [account_root_arn(ACCOUNT_B)]


def test_revoke_against_empty_policy_adds_nothing() -> None:
    assert revoke_statements({"Statement": []}, _grant()) == []


def test_remove_account_from_sole_principal_leaves_empty_list() -> None:
    statement = {"Sid": "Get:env-1", "Principal": {"AWS": [account_root_arn(ACCOUNT_A)]}}
    assert remove_account_from_statement(statement, ACCOUNT_A)["Principal"]["AWS"] == []


def test_add_account_creates_missing_principal() -> None:
    statement = add_account_to_statement({"Sid": "Get:env-1"}, ACCOUNT_A)
    assert statement["Principal"] == {"AWS": [account_root_arn(ACCOUNT_A)]}


def test_wildcard_principal_on_managed_statement_raises() -> None:
    existing = {"Statement": [{"Sid": "Get:env-1", "Effect": "Allow", "Principal": "*"}]}

    with pytest.raises(MalformedPolicyDocumentError):
        grant_statements(existing, _grant(read=True, write=False))


def test_changed_statement_ids_reports_added_modified_and_removed() -> None:
    before = [{"Sid": "A", "x": 1}, {"Sid": "B", "x": 1}, {"Sid": "C", "x": 1}]
    after = [{"Sid": "A", "x": 1}, {"Sid": "B", "x": 2}, {"Sid": "D", "x": 1}]

    assert changed_statement_ids(before, after) == ["B", "C", "D"]
