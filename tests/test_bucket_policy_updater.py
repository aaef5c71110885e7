"""
Tests for the bucket-policy updater.

The lock store, policy store and audit sink are in-memory fakes, so each test
can assert exactly how often the policy was read and written.
"""

import json
import threading

import pytest
from hypothesis import given, settings, strategies as st

from egress_policy.audit import AuditWriter
from egress_policy.errors import (
    LockUnavailableError,
    MalformedPolicyDocumentError,
    PolicyFetchError,
    PolicyWriteError,
)
from egress_policy.locking import LockService
from egress_policy.policy import (
    GRANT_AUDIT_ACTION,
    REVOKE_AUDIT_ACTION,
    BucketPolicyUpdater,
    ResourceGrant,
    bucket_policy_lock_id,
)
from egress_policy.policy.statements import account_root_arn
from fakes import (
    FakeClock,
    FakePolicyStore,
    InMemoryLockStore,
    RecordingAuditSink,
    RecordingSleep,
    client_error,
    make_settings,
)


BUCKET = "test-egressStoreBucketName"

CDK_SSL_STATEMENT = {
    "Effect": "Deny",
    "Principal": {"AWS": "*"},
    "Action": "s3:*",
    "Resource": [f"arn:aws:s3:::{BUCKET}", f"arn:aws:s3:::{BUCKET}/*"],
    "Condition": {"Bool": {"aws:SecureTransport": "false"}},
}


def _grant(account_id="111111111111", resource_id="test-id", read=True, write=True) -> ResourceGrant:
    return ResourceGrant(
        resource_id=resource_id,
        bucket_name=BUCKET,
        path_prefix=f"{resource_id}/",
        read=read,
        write=write,
        grantee_account_id=account_id,
    )


class Harness:
    def __init__(self, policies=None, *, audit_sinks=None, **settings_overrides):
        self.clock = FakeClock()
        self.sleep = RecordingSleep(self.clock)
        self.lock_store = InMemoryLockStore()
        self.policy_store = FakePolicyStore(policies)
        self.audit_sink = RecordingAuditSink()
        self.settings = make_settings(**settings_overrides)
        self.updater = BucketPolicyUpdater(
            LockService(self.lock_store, self.settings, clock=self.clock, sleep=self.sleep),
            self.policy_store,
            AuditWriter(audit_sinks if audit_sinks is not None else [self.audit_sink]),
            self.settings,
        )


def test_lock_id_is_per_bucket() -> None:
    assert bucket_policy_lock_id("my-bucket") == "s3|bucket-policy|my-bucket"


def test_grant_against_empty_policy_writes_three_statements() -> None:
    h = Harness({BUCKET: {"Statement": []}})

    written = h.updater.grant_access(
        ResourceGrant(
            resource_id="test-id",
            bucket_name=BUCKET,
            path_prefix="test-id",
            read=True,
            write=True,
            grantee_account_id="test-accountId",
        )
    )

    assert len(h.policy_store.put_calls) == 1
    stored = h.policy_store.document(BUCKET)
    assert stored == written
    assert [s["Sid"] for s in stored["Statement"]] == ["Get:test-id", "Put:test-id", "List:test-id"]
    for statement in stored["Statement"]:
        assert statement["Principal"]["AWS"] == ["arn:aws:iam::test-accountId:root"]
    assert stored["Statement"][2]["Resource"] == f"arn:aws:s3:::{BUCKET}"
    assert stored["Statement"][2]["Condition"]["StringLike"]["s3:prefix"] == ["test-id*"]


def test_grant_on_bucket_without_policy_creates_one() -> None:
    h = Harness()

    h.updater.grant_access(_grant(read=True, write=False))

    assert [s["Sid"] for s in h.policy_store.document(BUCKET)["Statement"]] == ["Get:test-id", "List:test-id"]


def test_grant_releases_lock_and_writes_once() -> None:
    h = Harness({BUCKET: {"Version": "2012-10-17", "Statement": [CDK_SSL_STATEMENT]}})

    h.updater.grant_access(_grant())

    assert len(h.policy_store.get_calls) == 1
    assert len(h.policy_store.put_calls) == 1
    assert h.lock_store.records == {}
    stored = h.policy_store.document(BUCKET)
    assert stored["Version"] == "2012-10-17"
    assert stored["Statement"][0] == CDK_SSL_STATEMENT


def test_repeated_grant_still_writes_but_changes_nothing() -> None:
    h = Harness({BUCKET: {"Statement": []}})

    first = h.updater.grant_access(_grant())
    second = h.updater.grant_access(_grant())

    assert first == second
    assert len(h.policy_store.put_calls) == 2


def test_grant_audits_event_with_policy() -> None:
    h = Harness({BUCKET: {"Statement": []}})

    written = h.updater.grant_access(_grant(), request_context={"actor": "svc"})

    assert len(h.audit_sink.written) == 1
    event, request_context = h.audit_sink.written[0]
    assert event.action == GRANT_AUDIT_ACTION
    assert request_context == {"actor": "svc"}
    assert event.body == {
        "bucket": BUCKET,
        "resourceId": "test-id",
        "accountId": "111111111111",
        "read": True,
        "write": True,
        "pathPrefix": "test-id/",
        "policy": written,
    }


def test_revoke_removes_grantee_and_audits() -> None:
    h = Harness({BUCKET: {"Statement": [CDK_SSL_STATEMENT]}})
    h.updater.grant_access(_grant("111111111111"))
    h.updater.grant_access(_grant("222222222222"))

    written = h.updater.revoke_access(_grant("111111111111"))

    for statement in written["Statement"][1:]:
        assert statement["Principal"]["AWS"] == [account_root_arn("222222222222")]
    assert h.audit_sink.written[-1][0].action == REVOKE_AUDIT_ACTION


def test_revoke_of_last_account_leaves_only_foreign_statements() -> None:
    h = Harness({BUCKET: {"Statement": [CDK_SSL_STATEMENT]}})
    h.updater.grant_access(_grant())

    written = h.updater.revoke_access(_grant())

    assert written["Statement"] == [CDK_SSL_STATEMENT]


def test_lock_exhaustion_never_touches_policy() -> None:
    h = Harness({BUCKET: {"Statement": []}}, lock_max_attempts=3, lock_wait_seconds=1.0)
    h.lock_store.records[bucket_policy_lock_id(BUCKET)] = 10**12

    with pytest.raises(LockUnavailableError):
        h.updater.grant_access(_grant())

    assert h.policy_store.get_calls == []
    assert h.policy_store.put_calls == []
    assert h.audit_sink.written == []
    assert h.sleep.calls == [1.0, 1.0]


def test_fetch_failure_is_wrapped_and_lock_released() -> None:
    h = Harness()
    cause = client_error("AccessDenied", "GetBucketPolicy")
    h.policy_store.get_error = cause

    with pytest.raises(PolicyFetchError) as exc_info:
        h.updater.grant_access(_grant())

    assert exc_info.value.__cause__ is cause
    assert h.policy_store.put_calls == []
    assert h.lock_store.records == {}


def test_write_failure_is_wrapped_and_not_audited() -> None:
    h = Harness({BUCKET: {"Statement": []}})
    h.policy_store.put_error = client_error("MalformedPolicy", "PutBucketPolicy")

    with pytest.raises(PolicyWriteError):
        h.updater.grant_access(_grant())

    assert h.audit_sink.written == []
    assert h.lock_store.records == {}


@pytest.mark.parametrize("side", ["get", "put"])
def test_non_aws_store_failures_are_wrapped_too(side) -> None:
    h = Harness({BUCKET: {"Statement": []}})
    cause = OSError("connection reset")
    setattr(h.policy_store, f"{side}_error", cause)
    expected = PolicyFetchError if side == "get" else PolicyWriteError

    with pytest.raises(expected) as exc_info:
        h.updater.revoke_access(_grant())

    assert exc_info.value.__cause__ is cause
    assert h.lock_store.records == {}


def test_revoking_read_keeps_list_while_write_remains() -> None:
    h = Harness({BUCKET: {"Statement": [CDK_SSL_STATEMENT]}})
    h.updater.grant_access(_grant(read=True, write=True))

    written = h.updater.revoke_access(_grant(read=True, write=False))

    principals = {s.get("Sid"): s["Principal"]["AWS"] for s in written["Statement"]}
    grantee = [account_root_arn("111111111111")]
    assert "Get:test-id" not in principals
    assert principals["Put:test-id"] == grantee
    assert principals["List:test-id"] == grantee
    assert written["Statement"][0] == CDK_SSL_STATEMENT

    written = h.updater.revoke_access(_grant(read=False, write=True))

    assert written["Statement"] == [CDK_SSL_STATEMENT]


def test_malformed_existing_policy_is_not_overwritten() -> None:
    h = Harness({BUCKET: "{not json"})

    with pytest.raises(MalformedPolicyDocumentError):
        h.updater.grant_access(_grant())

    assert h.policy_store.put_calls == []
    assert h.lock_store.records == {}


def test_audit_failure_does_not_fail_grant() -> None:
    h = Harness({BUCKET: {"Statement": []}}, audit_sinks=[RecordingAuditSink(fail_on_write=True)])

    written = h.updater.grant_access(_grant())

    assert len(written["Statement"]) == 3
    assert len(h.policy_store.put_calls) == 1


# ============================================================================
# Property: No lost updates under concurrent grants
# ============================================================================


@settings(max_examples=20, deadline=None)
@given(accounts=st.lists(st.from_regex(r"[0-9]{12}", fullmatch=True), min_size=2, max_size=6, unique=True))
def test_concurrent_grants_are_all_applied(accounts):
    """
    For any set of accounts granted concurrently on one bucket, every account SHALL end up in the policy.
    """
    lock_store = InMemoryLockStore()
    policy_store = FakePolicyStore({BUCKET: {"Statement": []}})
    settings_ = make_settings(lock_max_attempts=1000, lock_wait_seconds=0.001)

    def worker(account_id):
        updater = BucketPolicyUpdater(
            LockService(lock_store, settings_),
            policy_store,
            AuditWriter([]),
            settings_,
        )
        updater.grant_access(_grant(account_id, read=True, write=False))

    threads = [threading.Thread(target=worker, args=(a,)) for a in accounts]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    document = json.loads(policy_store.policies[BUCKET])
    for statement in document["Statement"]:
        assert sorted(statement["Principal"]["AWS"]) == sorted(account_root_arn(a) for a in accounts)
    assert len(policy_store.put_calls) == len(accounts)
