"""A fixed-size Bloom filter keyed by 64-bit hashes."""

from __future__ import annotations

import base64
import binascii
import json
import math

_MASK64 = (1 << 64) - 1
_LN2 = 0.69314718056


def _get_size(entries: int) -> tuple[int, int]:
    """Round ``entries`` up to a power of two (at least 512), returning size and exponent."""
    entries = max(entries, 512)
    size = 1
    exponent = 0
    while size < entries:
        size <<= 1
        exponent += 1
    return size, exponent


def _size_by_false_positives(num_entries: float, wrongs: float) -> tuple[int, int]:
    size = -1 * num_entries * math.log(wrongs) / (_LN2**2)
    locs = math.ceil(_LN2 * size / num_entries)
    return int(size), int(locs)


class Bloom:
    """Bloom filter over 64-bit hash values.

    ``locs`` below 1 is taken as the wanted false-positive rate, and the
    number of bits and hash locations are derived from it; otherwise
    ``entries`` is the number of bits and ``locs`` the number of hash
    locations per entry.
    """

    def __init__(self, entries: float, locs: float) -> None:
        if locs < 1:
            if entries <= 0 or locs <= 0:
                raise ValueError("entries must be positive and the false-positive rate in (0, 1)")
            num_bits, num_locs = _size_by_false_positives(float(entries), float(locs))
        else:
            num_bits, num_locs = int(entries), int(locs)
        size, exponent = _get_size(num_bits)
        self.size_exp = exponent
        self.size = size - 1
        self.set_locs = num_locs
        self.shift = 64 - exponent
        self.elem_num = 0
        self._bits = bytearray(size >> 3)

    def _locations(self, hash_value: int):
        hash_value &= _MASK64
        high = hash_value >> self.shift
        low = hash_value & ((1 << self.size_exp) - 1)
        for i in range(self.set_locs):
            yield (high + i * low) & self.size

    def add(self, hash_value: int) -> None:
        """Record ``hash_value`` in the filter."""
        for idx in self._locations(hash_value):
            self.set_bit(idx)
            self.elem_num += 1

    def has(self, hash_value: int) -> bool:
        """Return True if every bit for ``hash_value`` is set."""
        return all(self.is_set(idx) for idx in self._locations(hash_value))

    def add_if_not_has(self, hash_value: int) -> bool:
        """Add ``hash_value`` unless present; return True if it was added."""
        if self.has(hash_value):
            return False
        self.add(hash_value)
        return True

    def total_size(self) -> int:
        """Approximate size of the filter in bytes."""
        return len(self._bits) + 5 * 8

    def clear(self) -> None:
        """Reset every bit to zero."""
        self._bits[:] = bytes(len(self._bits))

    def set_bit(self, idx: int) -> None:
        self._bits[idx >> 3] |= 1 << (idx & 7)

    def is_set(self, idx: int) -> bool:
        return (self._bits[idx >> 3] >> (idx & 7)) & 1 == 1

    def to_json(self) -> bytes:
        """Serialise the bitset and location count as a JSON document."""
        document = {
            "FilterSet": base64.b64encode(bytes(self._bits)).decode("ascii"),
            "SetLocs": self.set_locs,
        }
        return json.dumps(document, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> Bloom:
        """Rebuild a filter from the output of :meth:`to_json`."""
        document = json.loads(data)
        try:
            filter_set = base64.b64decode(document["FilterSet"], validate=True)
            locs = int(document["SetLocs"])
        except (KeyError, TypeError, binascii.Error) as exc:
            raise ValueError(f"invalid bloom filter document: {exc}") from exc
        bloom = cls(len(filter_set) << 3, locs)
        bloom._bits[: len(filter_set)] = filter_set
        return bloom