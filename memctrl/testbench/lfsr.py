"""
LFSR-based stimulus.

Galois LFSR for reproducible pseudo-random traffic, and a generator that
turns it into controller read/write transactions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING

from ..common.bits import mask
from .driver import ReadTransaction, WriteTransaction

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


# Maximal-length Galois tap masks
LFSR_TAPS: Dict[int, int] = {
    8: 0xB8,
    16: 0xB400,
    32: 0x80200003,
}


class Lfsr:
    """
    Galois linear-feedback shift register.

    Args:
        width: Register width (8, 16 or 32 unless taps are given).
        seed: Non-zero initial state.
        taps: Feedback mask; defaults to a maximal-length polynomial.
    """

    def __init__(self, width: int = 32, seed: int = 1, taps: Optional[int] = None):
        if taps is None:
            if width not in LFSR_TAPS:
                raise ValueError(f"No default taps for width {width}")
            taps = LFSR_TAPS[width]
        seed &= mask(width)
        if seed == 0:
            raise ValueError("LFSR seed must be non-zero")
        self.width = width
        self.taps = taps
        self.state = seed

    def step(self) -> int:
        """Advance one shift and return the new state."""
        lsb = self.state & 1
        self.state >>= 1
        if lsb:
            self.state ^= self.taps
        return self.state

    def next_bits(self, nbits: int) -> int:
        """Collect nbits of output, one shift per bit."""
        value = 0
        for _ in range(nbits):
            value = (value << 1) | (self.step() & 1)
        return value

    def __iter__(self) -> Iterator[int]:
        while True:
            yield self.step()


@dataclass
class TrafficMix:
    """Traffic generator knobs."""
    write_percent: int = 50         # Share of writes, 0-100
    full_strobe_percent: int = 75   # Share of beats with every byte enabled
    address_pool: int = 16          # Distinct burst addresses drawn from


class LfsrTrafficGenerator:
    """
    Random read/write transaction source.

    Addresses are burst-aligned and drawn from a small pool so reads hit
    previously written data. Write tags cycle through all ids so
    outstanding tags stay distinct within the assembler window.
    """

    def __init__(self, config: "MemCtrlConfig", seed: int = 1, mix: Optional[TrafficMix] = None):
        self.config = config
        self.mix = mix or TrafficMix()
        self._lfsr = Lfsr(32, seed)
        self._next_id = 0
        self._pool = self._build_pool()

    def _build_pool(self) -> List[int]:
        cfg = self.config
        # Column-aligned bursts spread over channels and ranks
        pool = []
        for _ in range(self.mix.address_pool):
            addr = self._lfsr.next_bits(cfg.addr_width)
            addr &= ~mask(cfg.column_bits)
            pool.append(addr)
        return pool

    def _tag(self) -> Tuple[int, int]:
        tag_id = self._next_id
        self._next_id = (self._next_id + 1) % (1 << self.config.id_width)
        return tag_id, self._lfsr.next_bits(self.config.user_width)

    def _beats(self) -> List[Tuple[int, int]]:
        cfg = self.config
        beats = []
        for _ in range(cfg.burst_length):
            data = self._lfsr.next_bits(cfg.data_width)
            if self._lfsr.next_bits(7) % 100 < self.mix.full_strobe_percent:
                strobe = mask(cfg.strobe_width)
            else:
                strobe = self._lfsr.next_bits(cfg.strobe_width)
            beats.append((data, strobe))
        return beats

    def next_transaction(self):
        """Draw one ReadTransaction or WriteTransaction."""
        addr = self._pool[self._lfsr.next_bits(16) % len(self._pool)]
        tag_id, user = self._tag()
        if self._lfsr.next_bits(7) % 100 < self.mix.write_percent:
            return WriteTransaction(addr=addr, id=tag_id, user=user, beats=self._beats())
        return ReadTransaction(addr=addr, id=tag_id, user=user)

    def generate(self, count: int) -> list:
        return [self.next_transaction() for _ in range(count)]
