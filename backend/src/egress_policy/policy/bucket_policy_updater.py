"""
Serialized read-modify-write of an S3 bucket policy.

Every change to a bucket's policy goes through a per-bucket write lock, so
concurrent grants and revokes on the same bucket never overwrite each other.
The whole document is replaced on write; statements other tools own are
carried over unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from ..audit import AuditEvent, AuditWriter
from ..config import PolicyLockSettings
from ..errors import PolicyFetchError, PolicyWriteError
from ..locking import LockService
from .documents import parse_policy_document, serialize_policy_document, with_statements
from .models import ResourceGrant
from .reconciler import grant_statements, revoke_statements

logger = logging.getLogger(__name__)

GRANT_AUDIT_ACTION = "grant-bucket-policy-access"
REVOKE_AUDIT_ACTION = "revoke-bucket-policy-access"

ReviseFn = Callable[[dict[str, Any], ResourceGrant], list[dict]]


def bucket_policy_lock_id(bucket_name: str) -> str:
    return f"s3|bucket-policy|{bucket_name}"


class BucketPolicyUpdater:
    def __init__(
        self,
        lock_service: LockService,
        policy_store,
        audit_writer: AuditWriter,
        settings: PolicyLockSettings,
    ) -> None:
        self._lock_service = lock_service
        self._policy_store = policy_store
        self._audit_writer = audit_writer
        self._settings = settings

    def grant_access(self, grant: ResourceGrant, *, request_context: Optional[dict] = None) -> dict:
        """
        Add the grantee account to every statement the grant requires.

        Returns:
            The policy document that was written

        Raises:
            LockUnavailableError: The bucket's policy lock stayed busy; nothing was read or written
            PolicyFetchError: The current policy could not be read
            MalformedPolicyDocumentError: The current policy cannot be merged into
            PolicyWriteError: The revised policy could not be written; the grant is not in effect
        """
        return self._update(grant, grant_statements, GRANT_AUDIT_ACTION, request_context)

    def revoke_access(self, grant: ResourceGrant, *, request_context: Optional[dict] = None) -> dict:
        """Remove the grantee account from the grant's statements. Raises like grant_access()."""
        return self._update(grant, revoke_statements, REVOKE_AUDIT_ACTION, request_context)

    def _update(
        self,
        grant: ResourceGrant,
        revise: ReviseFn,
        audit_action: str,
        request_context: Optional[dict],
    ) -> dict:
        def apply() -> dict:
            document = self._read_modify_write(grant, revise)
            body = dict(grant.to_dict(), policy=document)
            self._audit_writer.write_and_forget(request_context, AuditEvent(action=audit_action, body=body))
            return document

        return self._lock_service.with_lock(
            bucket_policy_lock_id(grant.bucket_name),
            apply,
            expires_in_seconds=self._settings.lock_ttl_seconds,
            max_attempts=self._settings.lock_max_attempts,
            wait_seconds=self._settings.lock_wait_seconds,
        )

    def _read_modify_write(self, grant: ResourceGrant, revise: ReviseFn) -> dict:
        bucket = grant.bucket_name
        try:
            current = self._policy_store.get_policy(bucket)
        except Exception as e:
            logger.error("reading bucket policy for %s failed: %s", bucket, e)
            raise PolicyFetchError(bucket, e) from e

        document = parse_policy_document(current)
        revised = with_statements(document, revise(document, grant))
        logger.debug("revised bucket policy for %s: %s", bucket, revised)

        try:
            self._policy_store.put_policy(bucket, serialize_policy_document(revised))
        except Exception as e:
            logger.error("writing bucket policy for %s failed: %s", bucket, e)
            raise PolicyWriteError(bucket, e) from e

        logger.info(
            "bucket policy for %s updated (resource %s, account %s, %s)",
            bucket,
            grant.resource_id,
            grant.grantee_account_id,
            revise.__name__,
        )
        return revised
