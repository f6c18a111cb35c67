"""Admission (TinyLFU) and eviction (sampled LFU) policies."""

from __future__ import annotations

import queue
import threading
from typing import Optional

from .bloom import Bloom
from .metrics import Metrics, MetricType
from .sketch import CountMinSketch
from .store import Item

LFU_SAMPLE = 5

_STOP = object()


class SampledLFU:
    """Tracks the cost of every admitted key and the total cost in use."""

    def __init__(self, max_cost: int) -> None:
        self.max_cost = max_cost
        self.used = 0
        self.metrics: Optional[Metrics] = None
        self.key_costs: dict[int, int] = {}

    def room_left(self, cost: int) -> int:
        """Room remaining after adding an item of ``cost``; negative if it does not fit."""
        return self.max_cost - (self.used + cost)

    def fill_sample(self, sample: list[tuple[int, int]]) -> list[tuple[int, int]]:
        """Top ``sample`` up to ``LFU_SAMPLE`` ``(key, cost)`` pairs and return it."""
        if len(sample) >= LFU_SAMPLE:
            return sample
        present = {key for key, _ in sample}
        for key, cost in self.key_costs.items():
            if key in present:
                continue
            sample.append((key, cost))
            if len(sample) >= LFU_SAMPLE:
                break
        return sample

    def delete(self, key: int) -> None:
        """Forget ``key`` and release its cost."""
        cost = self.key_costs.pop(key, None)
        if cost is None:
            return
        self.used -= cost
        if self.metrics is not None:
            self.metrics.add(MetricType.COST_EVICT, key, cost)
            self.metrics.add(MetricType.KEY_EVICT, key, 1)

    def add(self, key: int, cost: int) -> None:
        """Record ``key`` with ``cost``."""
        self.key_costs[key] = cost
        self.used += cost

    def update_if_has(self, key: int, cost: int) -> bool:
        """Change the cost of ``key`` if present; return whether it was."""
        prev = self.key_costs.get(key)
        if prev is None:
            return False
        if self.metrics is not None:
            self.metrics.add(MetricType.KEY_UPDATE, key, 1)
            if cost != prev:
                self.metrics.add(MetricType.COST_ADD, key, cost - prev)
        self.used += cost - prev
        self.key_costs[key] = cost
        return True

    def clear(self) -> None:
        """Forget every key."""
        self.used = 0
        self.key_costs = {}


class TinyLFU:
    """Access-frequency estimator: a doorkeeper Bloom filter in front of a sketch.

    Not thread-safe.
    """

    def __init__(self, num_counters: int) -> None:
        self.freq = CountMinSketch(num_counters)
        self.door = Bloom(float(num_counters), 0.01)
        self.incrs = 0
        self.reset_at = num_counters

    def push(self, keys) -> None:
        """Record an access for each key."""
        for key in keys:
            self.increment(key)

    def estimate(self, key: int) -> int:
        """Estimated number of accesses to ``key``."""
        hits = self.freq.estimate(key)
        if self.door.has(key):
            hits += 1
        return hits

    def increment(self, key: int) -> None:
        """Record one access to ``key``, ageing all counters periodically."""
        if not self.door.add_if_not_has(key):
            self.freq.increment(key)
        self.incrs += 1
        if self.incrs >= self.reset_at:
            self.reset()

    def reset(self) -> None:
        """Clear the doorkeeper and halve every counter."""
        self.incrs = 0
        self.door.clear()
        self.freq.reset()

    def clear(self) -> None:
        """Forget every access."""
        self.incrs = 0
        self.door.clear()
        self.freq.clear()


class DefaultPolicy:
    """Decides which items are admitted to the cache and which are evicted.

    Access batches passed to :meth:`push` are applied by a background thread;
    at most three batches wait at a time and further ones are dropped.
    """

    def __init__(self, num_counters: int, max_cost: int) -> None:
        self._lock = threading.Lock()
        self.admit = TinyLFU(num_counters)
        self.evict = SampledLFU(max_cost)
        self.metrics: Optional[Metrics] = None
        self.is_closed = False
        self._items: queue.Queue = queue.Queue(maxsize=3)
        self._worker = threading.Thread(target=self._process_items, daemon=True)
        self._worker.start()

    def _process_items(self) -> None:
        while True:
            keys = self._items.get()
            if keys is _STOP:
                return
            with self._lock:
                self.admit.push(keys)

    def collect_metrics(self, metrics: Metrics) -> None:
        """Start recording statistics into ``metrics``."""
        self.metrics = metrics
        self.evict.metrics = metrics

    def push(self, keys) -> bool:
        """Queue a batch of accessed keys; return False if it was dropped."""
        if self.is_closed:
            return False
        if not keys:
            return True
        batch = list(keys)
        try:
            self._items.put_nowait(batch)
        except queue.Full:
            if self.metrics is not None:
                self.metrics.add(MetricType.DROP_GETS, batch[0], len(batch))
            return False
        if self.metrics is not None:
            self.metrics.add(MetricType.KEEP_GETS, batch[0], len(batch))
        return True

    def add(self, key: int, cost: int) -> tuple[list[Item], bool]:
        """Try to admit ``key`` with ``cost``.

        Return the items evicted to make room and whether ``key`` was admitted.
        An existing key only has its cost updated and is reported as not added.
        """
        with self._lock:
            if cost > self.evict.max_cost:
                return [], False
            if self.evict.update_if_has(key, cost):
                return [], False

            room = self.evict.room_left(cost)
            if room >= 0:
                self.evict.add(key, cost)
                if self.metrics is not None:
                    self.metrics.add(MetricType.COST_ADD, key, cost)
                return [], True

            incoming_hits = self.admit.estimate(key)
            sample: list[tuple[int, int]] = []
            victims: list[Item] = []
            while room < 0:
                sample = self.evict.fill_sample(sample)
                min_index, (min_key, min_cost) = min(
                    enumerate(sample), key=lambda pair: self.admit.estimate(pair[1][0])
                )
                min_hits = self.admit.estimate(min_key)
                if incoming_hits < min_hits:
                    if self.metrics is not None:
                        self.metrics.add(MetricType.REJECT_SETS, key, 1)
                    return victims, False
                self.evict.delete(min_key)
                sample[min_index] = sample[-1]
                sample.pop()
                victims.append(Item(key=min_key, conflict=0, cost=min_cost))
                room = self.evict.room_left(cost)

            self.evict.add(key, cost)
            if self.metrics is not None:
                self.metrics.add(MetricType.COST_ADD, key, cost)
            return victims, True

    def has(self, key: int) -> bool:
        """Return True if ``key`` is admitted."""
        with self._lock:
            return key in self.evict.key_costs

    def delete(self, key: int) -> None:
        """Forget ``key``."""
        with self._lock:
            self.evict.delete(key)

    def capacity(self) -> int:
        """Cost still available."""
        with self._lock:
            return self.evict.max_cost - self.evict.used

    def update(self, key: int, cost: int) -> None:
        """Change the cost of ``key`` if it is admitted."""
        with self._lock:
            self.evict.update_if_has(key, cost)

    def cost(self, key: int) -> int:
        """Cost of ``key``, or -1 if it is not admitted."""
        with self._lock:
            return self.evict.key_costs.get(key, -1)

    def clear(self) -> None:
        """Forget every key and every access."""
        with self._lock:
            self.admit.clear()
            self.evict.clear()

    def close(self) -> None:
        """Stop the background thread; later pushes are refused."""
        if self.is_closed:
            return
        self._items.put(_STOP)
        self._worker.join()
        self.is_closed = True

    def max_cost(self) -> int:
        """The current cost limit."""
        return self.evict.max_cost

    def update_max_cost(self, max_cost: int) -> None:
        """Change the cost limit."""
        self.evict.max_cost = max_cost