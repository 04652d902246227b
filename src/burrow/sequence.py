"""Sequence number arithmetic and initial sequence number strategies.

All sequence and acknowledgment values live in a 16-bit space and wrap
around; comparisons are done on the forward distance between two values.
"""

from __future__ import annotations

import secrets
from typing import Callable, Iterable, Iterator

from .constants import SEQ_MASK, SEQ_MODULUS

IsnSource = Callable[[], int]


def seq_add(seq: int, n: int) -> int:
    return (seq + n) & SEQ_MASK


def seq_distance(start: int, end: int) -> int:
    """Forward distance from ``start`` to ``end``, modulo 65536."""
    return (end - start) & SEQ_MASK


def seq_in_window(value: int, base: int, length: int) -> bool:
    """True if ``value`` lies in the closed interval ``[base, base + length]``."""
    return seq_distance(base, value) <= min(length, SEQ_MASK)


def random_isn() -> int:
    return secrets.randbelow(SEQ_MODULUS)


def fixed_isn(value: int) -> IsnSource:
    if not 0 <= value <= SEQ_MASK:
        raise ValueError(f"isn must fit in 16 bits, got {value!r}")
    return lambda: value


def scripted_isn(values: Iterable[int]) -> IsnSource:
    """Hand out the given values in order; raises StopIteration when used up."""
    it: Iterator[int] = iter(values)
    return lambda: next(it) & SEQ_MASK
