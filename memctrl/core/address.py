"""
Address translation.

Maps a flat physical address onto structured DRAM coordinates by a lossless
bit-slice. Field order, MSB -> LSB:

    | channel | rank | bankgroup | bank | row | column |

The target unit (one per channel x rank pair) is selected by the MSBs that
span the channel + rank width.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple, TYPE_CHECKING

from ..common.bits import mask, onehot, bit

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


def _field_layout(config: "MemCtrlConfig") -> List[Tuple[str, int]]:
    """(name, width) pairs, MSB first."""
    return [
        ("channel", config.channel_bits),
        ("rank", config.rank_bits),
        ("bankgroup", config.bankgroup_bits),
        ("bank", config.bank_bits),
        ("row", config.row_bits),
        ("column", config.column_bits),
    ]


@dataclass(frozen=True)
class MemoryAddress:
    """Structured DRAM coordinates."""
    channel: int = 0
    rank: int = 0
    bankgroup: int = 0
    bank: int = 0
    row: int = 0
    column: int = 0

    @classmethod
    def from_flat(cls, addr: int, config: "MemCtrlConfig") -> "MemoryAddress":
        """
        Decompose a flat physical address.

        Args:
            addr: Physical address (bits above addr_width are ignored).
            config: Field widths.

        Returns:
            MemoryAddress whose to_flat() reproduces addr.
        """
        addr &= mask(config.addr_width)
        values = {}
        shift = config.addr_width
        for name, width in _field_layout(config):
            shift -= width
            values[name] = (addr >> shift) & mask(width)
        return cls(**values)

    def to_flat(self, config: "MemCtrlConfig") -> int:
        """Reassemble the flat physical address."""
        addr = 0
        for name, width in _field_layout(config):
            addr = (addr << width) | (getattr(self, name) & mask(width))
        return addr

    def target_index(self, config: "MemCtrlConfig") -> int:
        """Target-unit index: {channel, rank} concatenated."""
        return (self.channel << config.rank_bits) | self.rank

    def __str__(self) -> str:
        return (f"ch{self.channel}.rk{self.rank}.bg{self.bankgroup}"
                f".ba{self.bank}.row{self.row:#x}.col{self.column:#x}")


@dataclass(frozen=True)
class TranslationResult:
    """Output of the address translation unit for one cycle."""
    address: MemoryAddress
    target_vector: int              # One-hot, gated by readiness; 0 if not ready
    target_index: int
    is_read: bool
    valid: bool

    @property
    def target_ready(self) -> bool:
        return self.target_vector != 0


class AddressTranslationUnit:
    """
    Combinational address translation (no state, no latency).

    A valid read is translated in preference to a write; a write address is
    translated only when no read is valid.
    """

    def __init__(self, config: "MemCtrlConfig"):
        self.config = config

    def target_index_of(self, addr: int) -> int:
        """Target-unit index from the channel + rank MSBs of a flat address."""
        cfg = self.config
        addr &= mask(cfg.addr_width)
        return addr >> (cfg.addr_width - cfg.target_bits)

    def translate(
        self,
        read_valid: bool,
        read_addr: int,
        write_valid: bool,
        write_addr: int,
        ready_vector: int,
    ) -> TranslationResult:
        """
        Translate the selected request address.

        Args:
            read_valid: Read address channel valid.
            read_addr: Read flat address.
            write_valid: Write address channel valid.
            write_addr: Write flat address.
            ready_vector: Per-target-unit readiness (bit i = unit i ready).

        Returns:
            TranslationResult. When neither request is valid, ``valid`` is
            False and the target vector is zero.
        """
        cfg = self.config
        if read_valid:
            addr, is_read = read_addr, True
        elif write_valid:
            addr, is_read = write_addr, False
        else:
            return TranslationResult(
                address=MemoryAddress(), target_vector=0, target_index=0,
                is_read=False, valid=False,
            )

        index = self.target_index_of(addr)
        vector = onehot(index, cfg.num_target_units) if bit(ready_vector, index) else 0
        return TranslationResult(
            address=MemoryAddress.from_flat(addr, cfg),
            target_vector=vector,
            target_index=index,
            is_read=is_read,
            valid=True,
        )
