"""A fixed-size, thread-safe in-memory cache with TinyLFU admission and sampled LFU eviction."""

from __future__ import annotations

import hashlib
import queue
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Optional, Union

from .metrics import Metrics, MetricType
from .policy import DefaultPolicy
from .ring import RingBuffer
from .store import Item, ItemFlag, ShardedMap
from .ttl import DEFAULT_BUCKET_DURATION_SECS

ITEM_SIZE = 40
"""Cost charged for storing one item internally, unless that cost is ignored."""

DEFAULT_SET_BUF_SIZE = 32 * 1024

_MASK64 = (1 << 64) - 1
_WAKE = object()

KeyToHash = Callable[[Any], "tuple[int, int]"]


def _default_key_to_hash(key: Any) -> tuple[int, int]:
    """Hash ``key`` into a 64-bit key hash and a 64-bit conflict hash.

    Integers hash to themselves with no conflict hash; strings and bytes get
    two independent 64-bit hashes.
    """
    if isinstance(key, int):
        return int(key) & _MASK64, 0
    if isinstance(key, str):
        data = key.encode("utf-8")
    elif isinstance(key, (bytes, bytearray, memoryview)):
        data = bytes(key)
    else:
        raise TypeError(f"unsupported key type: {type(key).__name__}")
    digest = hashlib.blake2b(data, digest_size=16).digest()
    return int.from_bytes(digest[:8], "little"), int.from_bytes(digest[8:], "little")


@dataclass
class Config:
    """Settings for a :class:`Cache`.

    ``num_counters`` is the number of access-frequency counters to keep
    (about ten times the expected number of items), ``max_cost`` the
    capacity in whatever units costs are given, and ``buffer_items`` the
    size of the access batches handed to the policy.
    """

    num_counters: int
    max_cost: int
    buffer_items: int = 64
    metrics: bool = False
    on_evict: Optional[Callable[[Item], None]] = None
    on_reject: Optional[Callable[[Item], None]] = None
    on_exit: Optional[Callable[[Any], None]] = None
    key_to_hash: Optional[KeyToHash] = None
    cost: Optional[Callable[[Any], int]] = None
    ignore_internal_cost: bool = False
    bucket_duration_secs: int = DEFAULT_BUCKET_DURATION_SECS
    set_buf_size: int = DEFAULT_SET_BUF_SIZE


class Cache:
    """Thread-safe cache; sets are applied asynchronously by a background thread."""

    def __init__(self, config: Config) -> None:
        if config.num_counters == 0:
            raise ValueError("num_counters can't be zero")
        if config.max_cost == 0:
            raise ValueError("max_cost can't be zero")
        if config.buffer_items == 0:
            raise ValueError("buffer_items can't be zero")
        self._config = config
        self.policy = DefaultPolicy(config.num_counters, config.max_cost)
        self.store = ShardedMap(config.bucket_duration_secs)
        self._get_buf = RingBuffer(self.policy, config.buffer_items)
        self._set_buf: queue.Queue = queue.Queue(maxsize=config.set_buf_size)
        self._key_to_hash: KeyToHash = config.key_to_hash or _default_key_to_hash
        self._cost = config.cost
        self._ignore_internal_cost = config.ignore_internal_cost
        self._cleanup_interval = config.bucket_duration_secs / 2
        self.is_closed = False
        self.metrics: Optional[Metrics] = None
        if config.metrics:
            self.metrics = Metrics()
            self.policy.collect_metrics(self.metrics)
        self._lifecycle = threading.Lock()
        self._stop = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._start_worker()

    # callbacks ---------------------------------------------------------

    def _record(self, metric: MetricType, key_hash: int, delta: int) -> None:
        if self.metrics is not None:
            self.metrics.add(metric, key_hash, delta)

    def _on_exit(self, value: Any) -> None:
        if self._config.on_exit is not None and value is not None:
            self._config.on_exit(value)

    def _on_evict(self, item: Item) -> None:
        if self._config.on_evict is not None:
            self._config.on_evict(item)
        self._on_exit(item.value)

    def _on_reject(self, item: Item) -> None:
        if self._config.on_reject is not None:
            self._config.on_reject(item)
        self._on_exit(item.value)

    def _evict_entry(self, key: int, conflict: int, value: Any, cost: int) -> None:
        self._on_evict(Item(key=key, conflict=conflict, value=value, cost=cost))

    # background processing ---------------------------------------------

    def _start_worker(self) -> None:
        self._stop = threading.Event()
        self._worker = threading.Thread(
            target=self._process_items, args=(self._stop,), daemon=True
        )
        self._worker.start()

    def _stop_worker(self) -> None:
        self._stop.set()
        try:
            self._set_buf.put_nowait(_WAKE)
        except queue.Full:
            pass
        if self._worker is not None:
            self._worker.join()
            self._worker = None

    def _process_items(self, stop: threading.Event) -> None:
        next_cleanup = time.monotonic() + self._cleanup_interval
        while not stop.is_set():
            now = time.monotonic()
            if now >= next_cleanup:
                self.store.cleanup(self.policy, self._evict_entry)
                next_cleanup = now + self._cleanup_interval
                continue
            try:
                item = self._set_buf.get(timeout=next_cleanup - now)
            except queue.Empty:
                continue
            if item is _WAKE:
                continue
            self._apply(item)

    def _apply(self, item: Item) -> None:
        if item.waiter is not None:
            item.waiter.set()
            return
        if item.cost == 0 and self._cost is not None and item.flag is not ItemFlag.DELETE:
            item.cost = self._cost(item.value)
        if not self._ignore_internal_cost:
            item.cost += ITEM_SIZE

        if item.flag is ItemFlag.NEW:
            victims, added = self.policy.add(item.key, item.cost)
            if added:
                self.store.set(item)
                self._record(MetricType.KEY_ADD, item.key, 1)
            else:
                self._on_reject(item)
            for victim in victims:
                victim.conflict, victim.value = self.store.delete(victim.key, 0)
                self._on_evict(victim)
        elif item.flag is ItemFlag.UPDATE:
            self.policy.update(item.key, item.cost)
        else:
            self.policy.delete(item.key)
            _, value = self.store.delete(item.key, item.conflict)
            self._on_exit(value)

    def _drain(self, evict: bool) -> None:
        while True:
            try:
                item = self._set_buf.get_nowait()
            except queue.Empty:
                return
            if item is _WAKE:
                continue
            if item.waiter is not None:
                item.waiter.set()
                continue
            # Updated values are already in the store and are evicted from there.
            if evict and item.flag is not ItemFlag.UPDATE:
                self._on_evict(item)

    # public interface --------------------------------------------------

    def wait(self) -> None:
        """Block until every set queued before this call has been applied."""
        if self.is_closed:
            return
        waiter = threading.Event()
        self._set_buf.put(Item(key=0, waiter=waiter))
        while not waiter.wait(0.1):
            if self.is_closed:
                return

    def get(self, key: Any) -> tuple[Any, bool]:
        """Return ``(value, found)``; the value may be None even when found."""
        if self.is_closed or key is None:
            return None, False
        key_hash, conflict = self._key_to_hash(key)
        self._get_buf.push(key_hash)
        value, ok = self.store.get(key_hash, conflict)
        self._record(MetricType.HIT if ok else MetricType.MISS, key_hash, 1)
        return value, ok

    def set(
        self,
        key: Any,
        value: Any,
        cost: int = 0,
        ttl: Union[float, timedelta] = 0,
    ) -> bool:
        """Queue ``key`` with ``value`` for admission; return False if the set was dropped.

        A cost of 0 asks the configured cost function for the cost. A ``ttl``
        in seconds of 0 never expires; a negative one discards the set. Even
        when True is returned the policy may still reject the item.
        """
        if self.is_closed or key is None:
            return False
        if isinstance(ttl, timedelta):
            ttl = ttl.total_seconds()
        if ttl < 0:
            return False
        expiration = 0 if ttl == 0 else int(time.time() + ttl)

        key_hash, conflict = self._key_to_hash(key)
        item = Item(
            key=key_hash,
            conflict=conflict,
            value=value,
            cost=cost,
            expiration=expiration,
            flag=ItemFlag.NEW,
        )
        # The store is updated at once so the new expiration takes effect immediately.
        prev, updated = self.store.update(item)
        if updated:
            self._on_exit(prev)
            item.flag = ItemFlag.UPDATE
        try:
            self._set_buf.put_nowait(item)
        except queue.Full:
            if item.flag is ItemFlag.UPDATE:
                return True
            self._record(MetricType.DROP_SETS, key_hash, 1)
            return False
        return True

    def delete(self, key: Any) -> None:
        """Remove ``key`` from the cache if present."""
        if self.is_closed or key is None:
            return
        key_hash, conflict = self._key_to_hash(key)
        _, prev = self.store.delete(key_hash, conflict)
        self._on_exit(prev)
        # A pending set for this key must not be applied after the delete.
        self._set_buf.put(Item(key=key_hash, conflict=conflict, flag=ItemFlag.DELETE))

    def get_ttl(self, key: Any) -> tuple[float, bool]:
        """Return ``(seconds left, found)``; 0 seconds with found means no expiry."""
        if key is None:
            return 0.0, False
        key_hash, conflict = self._key_to_hash(key)
        _, ok = self.store.get(key_hash, conflict)
        if not ok:
            return 0.0, False
        expiration = self.store.expiration(key_hash)
        if expiration == 0:
            return 0.0, True
        remaining = expiration - time.time()
        if remaining < 0:
            return 0.0, False
        return remaining, True

    def close(self) -> None:
        """Empty the cache and stop its background threads."""
        with self._lifecycle:
            if self.is_closed:
                return
            self._clear()
            self._stop_worker()
            self.policy.close()
            self.is_closed = True
            self._drain(evict=False)

    def clear(self) -> None:
        """Remove every item and reset the policy counters and metrics."""
        with self._lifecycle:
            if self.is_closed:
                return
            self._clear()

    def _clear(self) -> None:
        self._stop_worker()
        self._drain(evict=True)
        self.policy.clear()
        self.store.clear(self._evict_entry)
        if self.metrics is not None:
            self.metrics.clear()
        self._start_worker()

    def max_cost(self) -> int:
        """The current capacity."""
        return self.policy.max_cost()

    def update_max_cost(self, max_cost: int) -> None:
        """Change the capacity."""
        self.policy.update_max_cost(max_cost)

    def __enter__(self) -> Cache:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()