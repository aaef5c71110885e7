"""
Time-bounded exclusive write locks.

Locks are leases: a holder that crashes simply lets its record expire after
`expires_in_seconds`. There is no renewal and no fencing, so the lease must be
comfortably longer than the critical section it protects.

Times are whole seconds: `now` is the clock rounded up, and it is used both
for the expiry check and for the new `expiresAt`. A lease obtained at a
fractional time therefore starts up to 1s late, and another caller can
reclaim it up to 1s before `expires_in_seconds` have really passed.
"""

from __future__ import annotations

import logging
import math
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from ..config import PolicyLockSettings
from ..errors import LockUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _validate_lock_id(lock_id: str) -> None:
    if not isinstance(lock_id, str) or not lock_id.strip():
        raise ValueError("lock id must be a non-empty string")


def _validate_expires_in(expires_in_seconds: int) -> None:
    if isinstance(expires_in_seconds, bool) or not isinstance(expires_in_seconds, int) or expires_in_seconds < 1:
        raise ValueError("expires_in_seconds must be a positive integer")


class LockService:
    """
    Obtain and release write locks backed by a conditional-write store.

    The store must provide `put_if_absent_or_expired(lock_id, expires_at, now)`
    and `delete_if_exists(lock_id)`, both returning a ConditionalWriteResult.
    """

    def __init__(
        self,
        store,
        settings: PolicyLockSettings,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock
        self._sleep = sleep

    def obtain(self, lock_id: str, expires_in_seconds: int) -> Optional[str]:
        """
        Try once to obtain the lock.

        Args:
            lock_id: Identifier of the critical section (e.g. "s3|bucket-policy|<bucket>")
            expires_in_seconds: Lease length counted from now

        Returns:
            The write token (the lock id) or None if another live lock holds the id

        Raises:
            ValueError: On invalid arguments
            ClientError: On storage faults (contention is not a fault)
        """
        _validate_lock_id(lock_id)
        _validate_expires_in(expires_in_seconds)

        now = math.ceil(self._clock())
        result = self._store.put_if_absent_or_expired(lock_id, now + expires_in_seconds, now)
        if not result.success:
            logger.debug("lock %s is held by another caller", lock_id)
            return None
        logger.debug("obtained lock %s (expires in %ss)", lock_id, expires_in_seconds)
        return lock_id

    def release(self, token: str) -> None:
        """Release the lock for `token`. Releasing an absent or expired lock is a no-op."""
        _validate_lock_id(token)
        result = self._store.delete_if_exists(token)
        if result.success:
            logger.debug("released lock %s", token)

    def obtain_with_retry(
        self,
        lock_id: str,
        expires_in_seconds: int,
        max_attempts: int,
        wait_seconds: float,
    ) -> str:
        """
        Call obtain() up to `max_attempts` times with a fixed pause in between.

        Raises:
            LockUnavailableError: If every attempt found the lock held
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if wait_seconds < 0:
            raise ValueError("wait_seconds must be >= 0")

        for attempt in range(1, max_attempts + 1):
            token = self.obtain(lock_id, expires_in_seconds)
            if token is not None:
                return token
            if attempt < max_attempts:
                logger.info("lock %s busy (attempt %s/%s), retrying in %ss", lock_id, attempt, max_attempts, wait_seconds)
                self._sleep(wait_seconds)

        logger.warning("could not obtain lock %s after %s attempts", lock_id, max_attempts)
        raise LockUnavailableError(lock_id, max_attempts)

    def with_lock(
        self,
        lock_id: str,
        fn: Callable[[], T],
        *,
        expires_in_seconds: Optional[int] = None,
        max_attempts: Optional[int] = None,
        wait_seconds: Optional[float] = None,
    ) -> T:
        """
        Run `fn` while holding the lock and release it on every exit path.

        `fn` is never called if the lock cannot be obtained. A failure to
        release is logged and does not replace fn's result or exception.

        Raises:
            LockUnavailableError: If the lock could not be obtained
        """
        with self.locked(
            lock_id,
            expires_in_seconds=expires_in_seconds,
            max_attempts=max_attempts,
            wait_seconds=wait_seconds,
        ):
            return fn()

    @contextmanager
    def locked(
        self,
        lock_id: str,
        *,
        expires_in_seconds: Optional[int] = None,
        max_attempts: Optional[int] = None,
        wait_seconds: Optional[float] = None,
    ) -> Iterator[str]:
        """Context-manager form of with_lock(); yields the write token."""
        token = self.obtain_with_retry(
            lock_id,
            expires_in_seconds if expires_in_seconds is not None else self._settings.lock_ttl_seconds,
            max_attempts if max_attempts is not None else self._settings.lock_max_attempts,
            wait_seconds if wait_seconds is not None else self._settings.lock_wait_seconds,
        )
        try:
            yield token
        finally:
            try:
                self.release(token)
            except Exception as e:
                # The lease expires on its own; the caller's outcome wins.
                logger.warning("releasing lock %s failed: %s", token, e)
