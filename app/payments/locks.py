"""
Locking primitives for payment records.

Refunds hold a Redis lock per order for the whole gateway round trip, so
two refund requests for one order cannot both reach Razorpay. Every write to
a PaymentRecord, refund or not, goes through check_version, which rejects
the write when another writer committed first.

    with DistributedLock(f"payment:refund:{order_id}", ttl=120):
        ...  # gateway refund + record update

    with transaction.atomic():
        check_version(PaymentRecord, record.pk, expected_version=record.version)
        record.save()
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING, TypeVar

from django.db import models, transaction
from django_redis import get_redis_connection

from payments.exceptions import (
    ConcurrentModificationError,
    LockAcquisitionError,
    PaymentNotFoundError,
)

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

M = TypeVar("M", bound=models.Model)

POLL_INTERVAL = 0.05


class DistributedLock:
    """
    Mutual exclusion on a Redis key with an expiry.

    The key holds a random token for the holder. Release deletes the key only
    while it still holds that token, so a holder whose TTL lapsed cannot free
    a lock that someone else has since taken.

    Args:
        key: Name of the guarded resource; stored as ``lock:<key>``
        ttl: Seconds before Redis drops the lock on its own
        blocking: Poll until ``timeout`` instead of failing at once
        timeout: Longest wait in seconds when blocking
    """

    _RELEASE_IF_OWNER = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    end
    return 0
    """

    def __init__(self, key: str, ttl: int = 30, blocking: bool = True, timeout: float = 10.0) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._client: Redis | None = None

    @property
    def redis(self) -> Redis:
        if self._client is None:
            self._client = get_redis_connection("default")
        return self._client

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def _claim(self, token: str) -> bool:
        return bool(self.redis.set(self.key, token, nx=True, ex=self.ttl))

    def acquire(self) -> bool:
        """
        Take the lock or raise LockAcquisitionError.

        Non-blocking locks make a single attempt. Blocking locks retry every
        POLL_INTERVAL seconds until ``timeout`` has passed.
        """
        token = uuid.uuid4().hex
        deadline = time.monotonic() + self.timeout if self.blocking else None

        while True:
            if self._claim(token):
                self._token = token
                return True
            if deadline is None:
                raise LockAcquisitionError(
                    f"Lock '{self.key}' is already held",
                    details={"key": self.key},
                )
            if time.monotonic() >= deadline:
                raise LockAcquisitionError(
                    f"Could not take lock '{self.key}' within {self.timeout}s",
                    details={"key": self.key, "timeout": self.timeout},
                )
            time.sleep(POLL_INTERVAL)

    def release(self) -> bool:
        """Give the lock back. False when it was not held or had already expired."""
        if self._token is None:
            return False
        token, self._token = self._token, None
        return bool(self.redis.eval(self._RELEASE_IF_OWNER, 1, self.key, token))

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False


def check_version(model_class: type[M], pk: Any, expected_version: int) -> M:
    """
    Row-lock ``pk`` and confirm nobody has written it since it was read.

    The SELECT ... FOR UPDATE is filtered on the version, so of two writers
    holding the same version only the first to lock passes. Run this inside
    the caller's transaction.atomic() block, which keeps the row lock until
    the write commits.

    Raises:
        PaymentNotFoundError: The row is gone
        ConcurrentModificationError: The row is at another version
    """
    with transaction.atomic():
        locked = model_class.objects.select_for_update().filter(pk=pk, version=expected_version).first()
        if locked is not None:
            return locked

        current = model_class.objects.filter(pk=pk).values_list("version", flat=True).first()
        name = model_class.__name__
        if current is None:
            raise PaymentNotFoundError(f"{name} {pk} not found", details={"pk": str(pk)})
        raise ConcurrentModificationError(
            f"{name} {pk} was modified by another writer (expected version {expected_version}, found {current})",
            details={"pk": str(pk), "expected_version": expected_version, "current_version": current},
        )


__all__ = ["DistributedLock", "check_version"]
