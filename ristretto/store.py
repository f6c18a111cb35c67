"""Sharded, lock-protected hash map holding the cached values."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .ttl import DEFAULT_BUCKET_DURATION_SECS, ExpirationMap, _Policy

NUM_SHARDS = 256

EvictCallback = Callable[[int, int, Any, int], None]


class ItemFlag(Enum):
    """What a buffered item asks the cache to do."""

    NEW = 0
    DELETE = 1
    UPDATE = 2


@dataclass
class Item:
    """A key-value pair travelling between the cache, its store and its policy."""

    key: int
    conflict: int = 0
    value: Any = None
    cost: int = 0
    expiration: int = 0
    flag: ItemFlag = ItemFlag.NEW
    waiter: Optional[threading.Event] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class _Entry:
    key: int
    conflict: int
    value: Any
    expiration: int


def _conflicts(conflict: int, entry: _Entry) -> bool:
    return conflict != 0 and conflict != entry.conflict


class _Shard:
    """One lock-protected part of the map."""

    def __init__(self, expiry: ExpirationMap) -> None:
        self._lock = threading.Lock()
        self._data: dict[int, _Entry] = {}
        self._expiry = expiry

    def get(self, key: int, conflict: int) -> tuple[Any, bool]:
        with self._lock:
            entry = self._data.get(key)
        if entry is None or _conflicts(conflict, entry):
            return None, False
        if entry.expiration != 0 and int(time.time()) > entry.expiration:
            return None, False
        return entry.value, True

    def expiration(self, key: int) -> int:
        with self._lock:
            entry = self._data.get(key)
        return 0 if entry is None else entry.expiration

    def set(self, item: Item) -> None:
        with self._lock:
            entry = self._data.get(item.key)
            if entry is not None:
                if _conflicts(item.conflict, entry):
                    return
                self._expiry.update(item.key, item.conflict, entry.expiration, item.expiration)
            else:
                self._expiry.add(item.key, item.conflict, item.expiration)
            self._data[item.key] = _Entry(item.key, item.conflict, item.value, item.expiration)

    def delete(self, key: int, conflict: int) -> tuple[int, Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or _conflicts(conflict, entry):
                return 0, None
            if entry.expiration != 0:
                self._expiry.delete(key, entry.expiration)
            del self._data[key]
        return entry.conflict, entry.value

    def update(self, item: Item) -> tuple[Any, bool]:
        with self._lock:
            entry = self._data.get(item.key)
            if entry is None or _conflicts(item.conflict, entry):
                return None, False
            self._expiry.update(item.key, item.conflict, entry.expiration, item.expiration)
            self._data[item.key] = _Entry(item.key, item.conflict, item.value, item.expiration)
        return entry.value, True

    def clear(self, on_evict: Optional[EvictCallback]) -> None:
        with self._lock:
            entries = list(self._data.values())
            self._data = {}
        if on_evict is not None:
            for entry in entries:
                on_evict(entry.key, entry.conflict, entry.value, 0)


class ShardedMap:
    """Concurrent map from 64-bit key hashes to values, split over 256 shards.

    A non-zero conflict hash must match the stored one for an operation to
    apply; zero matches anything.
    """

    def __init__(self, bucket_duration_secs: int = DEFAULT_BUCKET_DURATION_SECS) -> None:
        self.expiry_map = ExpirationMap(bucket_duration_secs)
        self._shards = [_Shard(self.expiry_map) for _ in range(NUM_SHARDS)]

    def _shard(self, key: int) -> _Shard:
        return self._shards[key % NUM_SHARDS]

    def get(self, key: int, conflict: int) -> tuple[Any, bool]:
        """Return ``(value, found)``; expired items are not found."""
        return self._shard(key).get(key, conflict)

    def expiration(self, key: int) -> int:
        """Return the unix expiration time of ``key``, or 0 if none or missing."""
        return self._shard(key).expiration(key)

    def set(self, item: Optional[Item]) -> None:
        """Store ``item``, replacing an existing entry whose conflict hash matches."""
        if item is None:
            return
        self._shard(item.key).set(item)

    def delete(self, key: int, conflict: int) -> tuple[int, Any]:
        """Remove ``key``; return its ``(conflict, value)``, or ``(0, None)`` if absent."""
        return self._shard(key).delete(key, conflict)

    def update(self, item: Item) -> tuple[Any, bool]:
        """Replace an existing entry; return ``(previous value, updated)``."""
        return self._shard(item.key).update(item)

    def cleanup(self, policy: _Policy, on_evict: Optional[EvictCallback]) -> None:
        """Remove expired items whose bucket has completed."""
        self.expiry_map.cleanup(self, policy, on_evict)

    def clear(self, on_evict: Optional[EvictCallback]) -> None:
        """Remove everything, reporting each entry as ``on_evict(key, conflict, value, 0)``."""
        for shard in self._shards:
            shard.clear(on_evict)