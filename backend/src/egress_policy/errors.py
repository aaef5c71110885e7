"""Structured error types for the bucket-policy updater."""

from __future__ import annotations

from typing import Optional


class EgressPolicyError(Exception):
    """
    Base error for all bucket-policy and lock failures.

    `safe` marks errors whose message may be shown to the end user as is;
    everything else is reported with a generic message and logged in full.
    """

    code = "internalError"
    safe = False
    retryable = False


class ConfigurationError(EgressPolicyError):
    """Raised when required settings are missing or invalid."""

    code = "configuration"


class LockUnavailableError(EgressPolicyError):
    """Raised when a lock could not be obtained within the allowed attempts."""

    code = "lockUnavailable"
    safe = True
    retryable = True

    def __init__(self, lock_id: str, attempts: int) -> None:
        self.lock_id = lock_id
        self.attempts = attempts
        super().__init__(
            f"Could not obtain a lock after {attempts} attempt(s). Please try again later."
        )


class PolicyFetchError(EgressPolicyError):
    """Raised when the current bucket policy cannot be read."""

    code = "policyFetchFailed"

    def __init__(self, bucket_name: str, cause: Optional[BaseException] = None) -> None:
        self.bucket_name = bucket_name
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed reading bucket policy for bucket {bucket_name}{detail}")


class PolicyWriteError(EgressPolicyError):
    """
    Raised when the revised bucket policy cannot be written.

    The grant or revoke must be treated as not confirmed.
    """

    code = "policyWriteFailed"

    def __init__(self, bucket_name: str, cause: Optional[BaseException] = None) -> None:
        self.bucket_name = bucket_name
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed updating bucket policy for bucket {bucket_name}{detail}")


class MalformedPolicyDocumentError(EgressPolicyError):
    """Raised when an existing policy document cannot be parsed or has the wrong shape."""

    code = "malformedPolicyDocument"


class UnknownStatementKindError(EgressPolicyError):
    """Raised when a statement kind has no template builder."""

    code = "unknownStatementKind"

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"No statement template for kind {kind!r}")


class AuditWriteError(EgressPolicyError):
    """Raised by AuditWriter.write() when a sink fails."""

    code = "auditWriteFailed"

    def __init__(self, sink_name: str, cause: BaseException) -> None:
        self.sink_name = sink_name
        super().__init__(f"Audit sink {sink_name} failed: {cause}")
