"""Key generators and trace-file readers for simulating cache workloads.

A simulator is a callable taking no arguments that returns the next key and
raises :class:`SimulatorDone` once its source runs out.
"""

from __future__ import annotations

import math
import random
import re
from typing import IO, Callable, Optional, Union

Simulator = Callable[[], int]
Parser = Callable[[str], list]

_UINT64_MAX = (1 << 64) - 1
_DIGITS = re.compile(r"[0-9]+")


class SimulatorDone(Exception):
    """Raised when the underlying source has run out of values."""

    def __init__(self, message: str = "no more values in the Simulator") -> None:
        super().__init__(message)


class BadLineError(ValueError):
    """Raised when a trace line is not in the expected format."""

    def __init__(self, message: str = "bad line for trace format") -> None:
        super().__init__(message)


def _parse_uint(text: str) -> int:
    if not _DIGITS.fullmatch(text):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(text)
    if value > _UINT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def zipfian(s: float, v: float, n: int, seed: Optional[int] = None) -> Simulator:
    """Return a simulator of keys in ``[0, n]`` with P(k) proportional to (v + k) ** -s.

    ``s`` must be greater than 1 and ``v`` at least 1.
    """
    if s <= 1.0 or v < 1:
        raise ValueError("zipfian requires s > 1 and v >= 1")
    rng = random.Random(seed)
    one_minus_q = 1.0 - s
    one_minus_q_inv = 1.0 / one_minus_q

    def h(x: float) -> float:
        return math.exp(one_minus_q * math.log(v + x)) * one_minus_q_inv

    def hinv(x: float) -> float:
        return math.exp(one_minus_q_inv * math.log(one_minus_q * x)) - v

    hxm = h(float(n) + 0.5)
    hx0_minus_hxm = h(0.5) - math.exp(math.log(v) * -s) - hxm
    threshold = 1.0 - hinv(h(1.5) - math.exp(-s * math.log(v + 1.0)))

    def next_key() -> int:
        while True:
            ur = hxm + rng.random() * hx0_minus_hxm
            x = hinv(ur)
            k = math.floor(x + 0.5)
            if k - x <= threshold:
                return int(k)
            if ur >= h(k + 0.5) - math.exp(-math.log(k + v) * s):
                return int(k)

    return next_key


def uniform(maximum: int, seed: Optional[int] = None) -> Simulator:
    """Return a simulator of uniformly random keys in ``[0, maximum)``."""
    if maximum <= 0:
        raise ValueError("maximum must be positive")
    rng = random.Random(seed)
    return lambda: rng.randrange(maximum)


def reader(parser: Parser, file: IO[Union[str, bytes]]) -> Simulator:
    """Return a simulator that reads ``file`` line by line through ``parser``.

    A line may hold several keys; they are returned one at a time before the
    next line is read. Errors raised by the parser (including
    :class:`SimulatorDone` at the end of the file) propagate to the caller.
    """
    pending: list[int] = []

    def next_key() -> int:
        while not pending:
            line = file.readline()
            if isinstance(line, bytes):
                line = line.decode("utf-8")
            pending.extend(parser(line))
        return pending.pop(0)

    return next_key


def parse_lirs(line: str) -> list[int]:
    """Parse one LIRS trace line, which holds a single key."""
    line = line.strip()
    if not line:
        raise SimulatorDone()
    return [_parse_uint(line)]


def parse_arc(line: str) -> list[int]:
    """Parse one ARC trace line: start, count, and two ignored columns."""
    if not line:
        raise SimulatorDone()
    cols = line.split()
    if len(cols) != 4:
        raise BadLineError()
    start = _parse_uint(cols[0])
    count = _parse_uint(cols[1])
    return [(start + i) & _UINT64_MAX for i in range(count)]


def _draw(simulator: Simulator) -> int:
    try:
        return simulator()
    except (SimulatorDone, ValueError):
        return 0


def collection(simulator: Simulator, size: int) -> list[int]:
    """Draw ``size`` keys; a failed draw gives 0."""
    return [_draw(simulator) for _ in range(size)]


def string_collection(simulator: Simulator, size: int) -> list[str]:
    """Draw ``size`` keys as decimal strings; a failed draw gives "0"."""
    return [str(_draw(simulator)) for _ in range(size)]