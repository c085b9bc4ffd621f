"""
LSB-first priority encoder.

Selects the lowest-index set bit of a fixed-width vector. Used to pick the
lowest free slot out of a free bitmask.
"""

from __future__ import annotations

from typing import Tuple

from .bits import mask


def priority_encode_lsb(vector: int, width: int) -> Tuple[int, bool]:
    """
    Encode the lowest set bit of a vector.

    Args:
        vector: Input bit vector (bits above ``width`` are ignored).
        width: Vector width in bits.

    Returns:
        (index, valid). ``valid`` is False and index is 0 when no bit is set.
    """
    vector &= mask(width)
    if vector == 0:
        return 0, False
    # Isolate the lowest set bit
    return (vector & -vector).bit_length() - 1, True


class PriorityEncoder:
    """Fixed-width priority encoder (lowest index wins)."""

    def __init__(self, width: int):
        if width < 1:
            raise ValueError(f"width must be >= 1, got {width}")
        self.width = width

    def encode(self, vector: int) -> Tuple[int, bool]:
        return priority_encode_lsb(vector, self.width)

    def __repr__(self) -> str:
        return f"PriorityEncoder(width={self.width})"
