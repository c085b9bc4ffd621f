"""
Reusable fixed-width hardware primitives.

- bits: bit-vector helpers (mask, one-hot, field fit checks)
- PriorityEncoder: lowest set bit of a fixed-width vector
- DualPortBuffer: registered two-port memory with external addresses
- TimingCounter: generic down-counter gating timing-constrained transitions
"""

from .bits import mask, fits, onehot, bit, concat_vectors
from .priority_encoder import PriorityEncoder, priority_encode_lsb
from .dual_port_buffer import DualPortBuffer
from .timing_counter import TimingCounter, TimingCounterState

__all__ = [
    "mask",
    "fits",
    "onehot",
    "bit",
    "concat_vectors",
    "PriorityEncoder",
    "priority_encode_lsb",
    "DualPortBuffer",
    "TimingCounter",
    "TimingCounterState",
]
