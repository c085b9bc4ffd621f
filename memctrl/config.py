"""
Memory controller configuration.

A single immutable configuration object is built once and handed to every
component. Field widths are shared bit-for-bit with the backend, so both
sides must be constructed from the same instance.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict


@dataclass(frozen=True)
class MemCtrlConfig:
    """Memory controller configuration."""
    # Address field widths (MSB -> LSB: channel, rank, bankgroup, bank, row, column)
    channel_bits: int = 1
    rank_bits: int = 1
    bankgroup_bits: int = 2
    bank_bits: int = 2
    row_bits: int = 16
    column_bits: int = 10

    # Data path
    data_width: int = 64            # Bits per beat
    id_width: int = 4               # AXI ID width (bits)
    user_width: int = 4             # AXI user width (bits)
    burst_length: int = 8           # Beats per write burst

    # Write assembler queue depths (independent, not 1:1)
    aw_queue_depth: int = 4
    w_queue_depth: int = 4

    # Response arbitration: max consecutive completed bursts before a forced switch
    switch_threshold: int = 4

    # Raise ProtocolViolation on invariant breaks (debug build)
    check_protocol: bool = True

    def __post_init__(self):
        for name in ("channel_bits", "rank_bits", "bankgroup_bits", "bank_bits"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        for name in ("row_bits", "column_bits", "data_width", "id_width", "user_width"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.data_width % 8 != 0:
            raise ValueError(f"data_width must be a multiple of 8, got {self.data_width}")
        if self.burst_length < 1:
            raise ValueError(f"burst_length must be >= 1, got {self.burst_length}")
        if self.aw_queue_depth < 1 or self.w_queue_depth < 1:
            raise ValueError("assembler queue depths must be >= 1")
        if self.switch_threshold < 1:
            raise ValueError(f"switch_threshold must be >= 1, got {self.switch_threshold}")

    # =========================================================================
    # Derived widths
    # =========================================================================

    @property
    def addr_width(self) -> int:
        """Physical address width: sum of all address field widths."""
        return (self.channel_bits + self.rank_bits + self.bankgroup_bits
                + self.bank_bits + self.row_bits + self.column_bits)

    @property
    def target_bits(self) -> int:
        """Width of the target-unit index (channel + rank)."""
        return self.channel_bits + self.rank_bits

    @property
    def strobe_width(self) -> int:
        return self.data_width // 8

    @property
    def num_channels(self) -> int:
        return 1 << self.channel_bits

    @property
    def ranks_per_channel(self) -> int:
        return 1 << self.rank_bits

    @property
    def num_target_units(self) -> int:
        """One target unit per channel x rank pair."""
        return 1 << self.target_bits

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemCtrlConfig":
        """
        Build a config from a dict of overrides.

        Args:
            data: Field name -> value. Missing fields keep their defaults.

        Returns:
            New MemCtrlConfig.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: str | Path) -> "MemCtrlConfig":
        """Load config overrides from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
