"""Count-Min sketch with 4-bit counters."""

from __future__ import annotations

import random

DEPTH = 4


def next_power_of_two(x: int) -> int:
    """Round ``x`` up to the next power of two; non-positive values give 0."""
    if x <= 0:
        return 0
    return 1 << (x - 1).bit_length()


class CountMinSketch:
    """Count-Min sketch of ``DEPTH`` rows, two 4-bit counters per byte."""

    def __init__(self, num_counters: int, seed: int | None = None) -> None:
        if num_counters <= 0:
            raise ValueError("CountMinSketch: bad num_counters")
        num_counters = next_power_of_two(num_counters)
        self.mask = num_counters - 1
        rng = random.Random(seed)
        self.seeds = [rng.getrandbits(64) for _ in range(DEPTH)]
        self.rows = [bytearray(num_counters // 2) for _ in range(DEPTH)]

    def _positions(self, hashed: int):
        for row, seed in zip(self.rows, self.seeds):
            yield row, (hashed ^ seed) & self.mask

    def increment(self, hashed: int) -> None:
        """Increment the counters for ``hashed``, saturating at 15."""
        for row, n in self._positions(hashed):
            i = n // 2
            shift = (n & 1) * 4
            if (row[i] >> shift) & 0x0F < 15:
                row[i] += 1 << shift

    def estimate(self, hashed: int) -> int:
        """Return the smallest counter value for ``hashed``."""
        return min(
            (row[n // 2] >> ((n & 1) * 4)) & 0x0F for row, n in self._positions(hashed)
        )

    def reset(self) -> None:
        """Halve every counter."""
        for row in self.rows:
            row[:] = bytes((b >> 1) & 0x77 for b in row)

    def clear(self) -> None:
        """Zero every counter."""
        for row in self.rows:
            row[:] = bytes(len(row))

    def row_string(self, index: int) -> str:
        """Render the counters of one row as two-digit numbers."""
        row = self.rows[index]
        return " ".join(
            f"{(row[i // 2] >> ((i & 1) * 4)) & 0x0F:02d}" for i in range(len(row) * 2)
        )