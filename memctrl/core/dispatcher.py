"""
Channel Dispatcher.

Stateless routing: the single active request is replicated onto the channel
line selected by its MemoryAddress.channel field and zeroed on every other
line. Per-channel response readiness (read_ready, ack_ready) is passed
through on every line regardless of the request.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence, TYPE_CHECKING

from ..common.bits import mask
from ..errors import protocol_check
from .request_arbiter import ArbiterDecision, Grant
from .signals import ChannelRequest

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


class ChannelDispatcher:
    """Route the arbiter's decision to exactly one channel line."""

    def __init__(self, config: "MemCtrlConfig"):
        self.config = config

    def _rank_vector(self, target_index: int) -> int:
        """Per-channel valid vector (over ranks) for a target-unit index."""
        return 1 << (target_index & mask(self.config.rank_bits))

    def build_request(self, decision: ArbiterDecision) -> ChannelRequest:
        """Channel-agnostic request for a decision (readiness not set)."""
        if decision.grant == Grant.READ:
            read = decision.read
            return ChannelRequest(
                address=read.address,
                id=decision.read_tag.id,
                user=decision.read_tag.user,
                write=False,
                valid=self._rank_vector(read.target_index),
                last=True,
            )
        if decision.grant == Grant.WRITE:
            beat = decision.write_beat
            return ChannelRequest(
                address=beat.address,
                id=beat.tag.id,
                user=beat.tag.user,
                write=True,
                valid=self._rank_vector(beat.target_index) if beat.first else 0,
                data=beat.data,
                strobe=beat.strobe,
                last=beat.last,
                beat=True,
            )
        return ChannelRequest()

    def dispatch(
        self,
        decision: ArbiterDecision,
        read_ready: Sequence[bool],
        ack_ready: Sequence[bool],
    ) -> List[ChannelRequest]:
        """
        Produce one request line per channel.

        Args:
            decision: This cycle's arbitration result.
            read_ready: Per-channel read-data readiness from the response arbiter.
            ack_ready: Per-channel write-ack readiness from the response arbiter.

        Returns:
            List of ChannelRequest indexed by channel; at most one is non-idle.
        """
        n = self.config.num_channels
        protocol_check(self.config, len(read_ready) == n and len(ack_ready) == n,
                       f"expected {n} readiness entries, one per channel")

        request = self.build_request(decision)
        target = request.address.channel if request.address is not None else None

        lines = []
        for ch in range(n):
            line = request if ch == target else ChannelRequest()
            lines.append(replace(line, read_ready=bool(read_ready[ch]),
                                 ack_ready=bool(ack_ready[ch])))
        return lines
