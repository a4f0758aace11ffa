"""
Exclusivity guard for operations that must never overlap.

Each interface instance owns one ExclusivityLock. The guard admits a
request only while the lock is free and rejects everything else at once
with OperationInProgressError; nothing is queued or retried. Admission
hands out a LockToken, and the lock is released by releasing that token,
which is idempotent and can never free a later acquisition.
"""

import logging

from swordgate.core.exceptions import OperationInProgressError
from swordgate.core.models import OperationKind

logger = logging.getLogger(__name__)


class ExclusivityLock:
    """A single held/free token, owned by one interface instance."""

    def __init__(self) -> None:
        self._holder: "LockToken | None" = None
        self._acquisitions = 0

    @property
    def held(self) -> bool:
        return self._holder is not None

    @property
    def acquisitions(self) -> int:
        """Number of successful acquisitions so far."""
        return self._acquisitions

    def try_acquire(self) -> "LockToken | None":
        if self._holder is not None:
            return None
        self._acquisitions += 1
        self._holder = LockToken(self, self._acquisitions)
        return self._holder

    def _release(self, token: "LockToken") -> bool:
        if self._holder is not token:
            return False
        self._holder = None
        return True


class LockToken:
    """
    Proof of one acquisition of an ExclusivityLock.

    Attributes:
        serial: Acquisition number, for diagnostics
    """

    def __init__(self, lock: ExclusivityLock, serial: int) -> None:
        self._lock = lock
        self.serial = serial
        self.released = False

    def release(self) -> bool:
        """
        Release the lock held by this token.

        Returns:
            True on the first call, False on any later call
        """
        if self.released:
            return False
        self.released = True
        return self._lock._release(self)


class ExclusivityGuard:
    """
    Admission control for mutually exclusive operation kinds.

    Args:
        lock: The lock to guard with (a fresh one per guard by default)
        guarded: Operation kinds subject to the guard; Search only by default

    Example:
        >>> guard = ExclusivityGuard()
        >>> token = guard.admit(OperationKind.SEARCH)
        >>> guard.admit(OperationKind.SEARCH)
        Traceback (most recent call last):
        ...
        OperationInProgressError: Module search in progress. Wait until it is finished.
        >>> token.release()
        True
    """

    def __init__(
        self,
        lock: ExclusivityLock | None = None,
        guarded: frozenset[OperationKind] = frozenset({OperationKind.SEARCH}),
    ) -> None:
        self.lock = lock if lock is not None else ExclusivityLock()
        self.guarded = guarded

    def guards(self, kind: OperationKind) -> bool:
        return kind in self.guarded

    def admit(self, kind: OperationKind, operation: str | None = None) -> LockToken:
        """
        Admit one request of ``kind`` or reject it immediately.

        Raises:
            OperationInProgressError: If an operation of a guarded kind is running
        """
        token = self.lock.try_acquire()
        if token is None:
            logger.warning("Rejected %s: exclusive operation already running", kind.value)
            raise OperationInProgressError(operation or kind.value)
        logger.debug("Admitted %s (acquisition %d)", kind.value, token.serial)
        return token


__all__ = ["ExclusivityGuard", "ExclusivityLock", "LockToken"]
