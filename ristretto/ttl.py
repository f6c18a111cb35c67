"""Buckets of keys grouped by expiration time."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional, Protocol

DEFAULT_BUCKET_DURATION_SECS = 5


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def storage_bucket(t: int, bucket_duration_secs: int = DEFAULT_BUCKET_DURATION_SECS) -> int:
    """Return the bucket an item expiring at unix time ``t`` is stored in."""
    return _trunc_div(t, bucket_duration_secs) + 1


def cleanup_bucket(t: int, bucket_duration_secs: int = DEFAULT_BUCKET_DURATION_SECS) -> int:
    """Return the bucket that is safe to clean at unix time ``t``.

    It is always one behind the storage bucket so that nothing that may not
    have expired yet gets removed.
    """
    return storage_bucket(t, bucket_duration_secs) - 1


class _Store(Protocol):
    def expiration(self, key: int) -> int: ...

    def delete(self, key: int, conflict: int) -> tuple[int, Any]: ...


class _Policy(Protocol):
    def cost(self, key: int) -> int: ...

    def delete(self, key: int) -> None: ...


EvictCallback = Callable[[int, int, Any, int], None]


class ExpirationMap:
    """Maps bucket numbers to the keys (with their conflict hashes) expiring in them."""

    def __init__(self, bucket_duration_secs: int = DEFAULT_BUCKET_DURATION_SECS) -> None:
        if bucket_duration_secs <= 0:
            raise ValueError("bucket_duration_secs must be positive")
        self.bucket_duration_secs = bucket_duration_secs
        self.buckets: dict[int, dict[int, int]] = {}
        self._lock = threading.Lock()

    def _bucket(self, t: int) -> int:
        return storage_bucket(t, self.bucket_duration_secs)

    def add(self, key: int, conflict: int, expiration: int) -> None:
        """Record ``key`` as expiring at ``expiration``; zero means never."""
        if expiration == 0:
            return
        number = self._bucket(expiration)
        with self._lock:
            self.buckets.setdefault(number, {})[key] = conflict

    def update(self, key: int, conflict: int, old_expiration: int, new_expiration: int) -> None:
        """Move ``key`` from the bucket of its old expiration to that of the new one."""
        with self._lock:
            old = self.buckets.get(self._bucket(old_expiration))
            if old is not None:
                old.pop(key, None)
            self.buckets.setdefault(self._bucket(new_expiration), {})[key] = conflict

    def delete(self, key: int, expiration: int) -> None:
        """Forget ``key`` from the bucket of ``expiration``."""
        number = self._bucket(expiration)
        with self._lock:
            bucket = self.buckets.get(number)
            if bucket is not None:
                bucket.pop(key, None)

    def cleanup(
        self, store: _Store, policy: _Policy, on_evict: Optional[EvictCallback]
    ) -> None:
        """Remove the items of the bucket that just completed.

        Each removed item is deleted from ``policy`` and ``store`` and then
        reported as ``on_evict(key, conflict, value, cost)``.
        """
        with self._lock:
            now = int(time.time())
            keys = self.buckets.pop(cleanup_bucket(now, self.bucket_duration_secs), {})

        for key, conflict in keys.items():
            # The store must agree that the key has expired.
            if store.expiration(key) > now:
                continue
            cost = policy.cost(key)
            policy.delete(key)
            _, value = store.delete(key, conflict)
            if on_evict is not None:
                on_evict(key, conflict, value, cost)