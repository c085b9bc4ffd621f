"""
Wire-level signal bundles.

All fields are fixed-width bit fields whose widths come from MemCtrlConfig
and must match bit-for-bit between the controller and its backend.

Consumer side (cache -> controller):
- ConsumerRequest: AW / W / AR channels plus r_ready, b_ready
- ConsumerResponse: R / B channels plus aw_ready, ar_ready, w_ready

Backend side (controller <-> per-channel backend):
- ChannelRequest: one line per channel, driven by the dispatcher
- ChannelResponse: one bundle per channel backend
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional, TYPE_CHECKING

from ..errors import protocol_check
from ..common.bits import fits

if TYPE_CHECKING:
    from ..config import MemCtrlConfig
    from .address import MemoryAddress


class Tag(NamedTuple):
    """(id, user) pair associating write address and write data."""
    id: int
    user: int


def _check_fields(obj, config: "MemCtrlConfig", widths: dict) -> None:
    for name, width in widths.items():
        value = getattr(obj, name)
        protocol_check(
            config, fits(value, width),
            f"{type(obj).__name__}.{name}={value} does not fit {width} bits"
        )


# =============================================================================
# Consumer Side
# =============================================================================

@dataclass(frozen=True)
class ConsumerRequest:
    """Signals driven by the consumer for one cycle."""
    # Write address channel
    aw_valid: bool = False
    aw_id: int = 0
    aw_addr: int = 0
    aw_user: int = 0

    # Write data channel
    w_valid: bool = False
    w_data: int = 0
    w_user: int = 0
    w_id: int = 0
    w_last: bool = False
    w_strb: int = 0

    # Read address channel
    ar_valid: bool = False
    ar_addr: int = 0
    ar_id: int = 0
    ar_user: int = 0

    # Response readiness
    r_ready: bool = False
    b_ready: bool = False

    @property
    def aw_tag(self) -> Tag:
        return Tag(self.aw_id, self.aw_user)

    @property
    def w_tag(self) -> Tag:
        return Tag(self.w_id, self.w_user)

    def validate(self, config: "MemCtrlConfig") -> None:
        """Check every field against its configured width."""
        _check_fields(self, config, {
            "aw_id": config.id_width,
            "aw_addr": config.addr_width,
            "aw_user": config.user_width,
            "w_data": config.data_width,
            "w_user": config.user_width,
            "w_id": config.id_width,
            "w_strb": config.strobe_width,
            "ar_addr": config.addr_width,
            "ar_id": config.id_width,
            "ar_user": config.user_width,
        })


@dataclass(frozen=True)
class ConsumerResponse:
    """Signals driven by the controller toward the consumer for one cycle."""
    # Read data channel
    r_valid: bool = False
    r_data: int = 0
    r_user: int = 0
    r_id: int = 0
    r_last: bool = False

    # Write ack channel
    b_valid: bool = False
    b_user: int = 0
    b_id: int = 0

    # Request readiness
    aw_ready: bool = False
    ar_ready: bool = False
    w_ready: bool = False


# =============================================================================
# Backend Side
# =============================================================================

@dataclass(frozen=True)
class ChannelRequest:
    """
    Request line toward one channel backend.

    ``valid`` is a per-target-unit vector over the channel's ranks. For a
    write burst it is non-zero only on the first beat; data beats follow on
    consecutive cycles and ``last`` marks the final one.
    """
    address: Optional["MemoryAddress"] = None
    id: int = 0
    user: int = 0
    write: bool = False
    valid: int = 0
    data: int = 0
    strobe: int = 0
    last: bool = False
    beat: bool = False              # Line carries a write data beat this cycle

    # Response readiness (set by the response arbiter, always passed through)
    read_ready: bool = False
    ack_ready: bool = False

    @property
    def is_idle(self) -> bool:
        return self.valid == 0 and not self.beat

    @property
    def is_read(self) -> bool:
        return self.valid != 0 and not self.write

    @property
    def is_write(self) -> bool:
        return self.write and (self.valid != 0 or self.beat)


@dataclass(frozen=True)
class ChannelResponse:
    """Signals driven by one channel backend for one cycle."""
    # Read data
    r_valid: bool = False
    r_data: int = 0
    r_id: int = 0
    r_user: int = 0
    r_last: bool = False

    # Write ack
    b_valid: bool = False
    b_id: int = 0
    b_user: int = 0

    # Per-rank readiness vectors
    ar_ready: int = 0
    aw_ready: int = 0
    w_ready: int = 0

    # Pending read responses (read-buffer occupancy)
    occupancy: int = 0

    def validate(self, config: "MemCtrlConfig") -> None:
        _check_fields(self, config, {
            "r_data": config.data_width,
            "r_id": config.id_width,
            "r_user": config.user_width,
            "b_id": config.id_width,
            "b_user": config.user_width,
            "ar_ready": config.ranks_per_channel,
            "aw_ready": config.ranks_per_channel,
            "w_ready": config.ranks_per_channel,
        })
        protocol_check(config, self.occupancy >= 0,
                       f"ChannelResponse.occupancy={self.occupancy} is negative")


IDLE_CHANNEL_RESPONSE = ChannelResponse()

