"""Lossy striped buffers that batch keys before handing them to a consumer."""

from __future__ import annotations

from collections import deque
from typing import Protocol


class RingConsumer(Protocol):
    def push(self, keys: list[int]) -> bool:
        """Accept a batch of keys; return False if the batch was dropped."""


class RingStripe:
    """A single, non-thread-safe buffer that drains to its consumer when full."""

    def __init__(self, consumer: RingConsumer, capacity: int) -> None:
        self.consumer = consumer
        self.capacity = capacity
        self.data: list[int] = []

    def push(self, item: int) -> None:
        """Append ``item`` and drain to the consumer if the stripe is full."""
        self.data.append(item)
        if len(self.data) >= self.capacity:
            if self.consumer.push(self.data):
                self.data = []
            else:
                self.data.clear()


class RingBuffer:
    """A pool of stripes shared between threads; items may be lost under contention."""

    def __init__(self, consumer: RingConsumer, capacity: int) -> None:
        self.consumer = consumer
        self.capacity = capacity
        self._pool: deque[RingStripe] = deque()

    def push(self, item: int) -> None:
        """Add ``item`` to a free stripe, draining it if it fills up."""
        try:
            stripe = self._pool.pop()
        except IndexError:
            stripe = RingStripe(self.consumer, self.capacity)
        stripe.push(item)
        self._pool.append(stripe)