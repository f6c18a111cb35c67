"""Running statistics for a cache instance."""

from __future__ import annotations

import threading
from enum import Enum

_MASK64 = (1 << 64) - 1


class MetricType(Enum):
    """The statistics a cache keeps, with their printed labels as values."""

    HIT = "hit"
    MISS = "miss"
    KEY_ADD = "keys-added"
    KEY_UPDATE = "keys-updated"
    KEY_EVICT = "keys-evicted"
    COST_ADD = "cost-added"
    COST_EVICT = "cost-evicted"
    DROP_SETS = "sets-dropped"
    REJECT_SETS = "sets-rejected"
    DROP_GETS = "gets-dropped"
    KEEP_GETS = "gets-kept"

    def __str__(self) -> str:
        return self.value


class Metrics:
    """Thread-safe counters for hits, misses, additions, evictions and drops.

    Counters are unsigned 64-bit values: a negative delta wraps around, so a
    later positive delta of the same size brings the counter back.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[MetricType, int] = dict.fromkeys(MetricType, 0)

    def add(self, metric: MetricType, key_hash: int, delta: int) -> None:
        """Add ``delta`` to the counter for ``metric``."""
        with self._lock:
            self._counts[metric] = (self._counts[metric] + delta) & _MASK64

    def get(self, metric: MetricType) -> int:
        """Return the current value of ``metric``."""
        with self._lock:
            return self._counts[metric]

    def hits(self) -> int:
        """Number of lookups that found a value."""
        return self.get(MetricType.HIT)

    def misses(self) -> int:
        """Number of lookups that found nothing."""
        return self.get(MetricType.MISS)

    def keys_added(self) -> int:
        """Number of new keys admitted."""
        return self.get(MetricType.KEY_ADD)

    def keys_updated(self) -> int:
        """Number of updates to keys already present."""
        return self.get(MetricType.KEY_UPDATE)

    def keys_evicted(self) -> int:
        """Number of keys evicted."""
        return self.get(MetricType.KEY_EVICT)

    def cost_added(self) -> int:
        """Sum of the costs of admitted items."""
        return self.get(MetricType.COST_ADD)

    def cost_evicted(self) -> int:
        """Sum of the costs of evicted items."""
        return self.get(MetricType.COST_EVICT)

    def sets_dropped(self) -> int:
        """Number of sets that never reached the internal buffer."""
        return self.get(MetricType.DROP_SETS)

    def sets_rejected(self) -> int:
        """Number of sets rejected by the admission policy."""
        return self.get(MetricType.REJECT_SETS)

    def gets_dropped(self) -> int:
        """Number of access records dropped internally."""
        return self.get(MetricType.DROP_GETS)

    def gets_kept(self) -> int:
        """Number of access records kept."""
        return self.get(MetricType.KEEP_GETS)

    def ratio(self) -> float:
        """Hits over all lookups, or 0.0 if there were none."""
        with self._lock:
            hits = self._counts[MetricType.HIT]
            misses = self._counts[MetricType.MISS]
        if hits == 0 and misses == 0:
            return 0.0
        return hits / (hits + misses)

    def clear(self) -> None:
        """Reset every counter to zero."""
        with self._lock:
            for metric in self._counts:
                self._counts[metric] = 0

    def __str__(self) -> str:
        with self._lock:
            counts = dict(self._counts)
        parts = [f"{metric.value}: {counts[metric]} " for metric in MetricType]
        total = counts[MetricType.HIT] + counts[MetricType.MISS]
        parts.append(f"gets-total: {total} ")
        parts.append(f"hit-ratio: {self.ratio():.2f}")
        return "".join(parts)