"""Bit-vector helpers for fixed-width signals (vectors are plain ints)."""

from __future__ import annotations

from typing import Iterable


def mask(width: int) -> int:
    """All-ones value of the given width."""
    return (1 << width) - 1


def fits(value: int, width: int) -> bool:
    """True if value is a non-negative integer representable in width bits."""
    return 0 <= value <= mask(width)


def onehot(index: int, width: int) -> int:
    """One-hot vector with bit ``index`` set; zero if index is out of range."""
    if 0 <= index < width:
        return 1 << index
    return 0


def bit(vector: int, index: int) -> bool:
    return bool((vector >> index) & 1)


def concat_vectors(chunks: Iterable[int], chunk_width: int) -> int:
    """
    Concatenate equal-width vectors, first chunk in the least significant bits.

    Used to build a flat per-target-unit vector out of per-channel rank vectors
    (target index = channel * ranks_per_channel + rank).
    """
    result = 0
    for i, chunk in enumerate(chunks):
        result |= (chunk & mask(chunk_width)) << (i * chunk_width)
    return result
