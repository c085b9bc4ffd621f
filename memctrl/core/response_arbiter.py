"""
Channel Response Arbiter.

Fairness state machine selecting which channel backend's read-response
stream is forwarded to the single consumer-facing response bus.

States SERVE_0 .. SERVE_{N-1} (binary for two channels) with auxiliary
``switch_pending`` flag and a bounded consecutive-service counter.

Rules:
- Preference: switch toward a channel with strictly larger pending-response
  occupancy; ties keep the current channel. While another channel is
  preferred the consecutive counter is held at zero.
- Aging: once the served channel has completed ``switch_threshold``
  consecutive bursts, switch iff another channel has a pending response.
  Aging targets rotate round-robin past the last aged channel, so with more
  than two channels every pending channel is reached within N-1 aging rounds.
- Hand-off only at a burst boundary: the served channel's ``last``
  handshake this cycle, or no burst in progress. Responses are never
  interleaved mid-burst.
- A channel granted by aging keeps the bus until it completes one burst
  (or drains), so the starved channel is actually served.

The served channel alone receives read_ready; the others are withheld.
Write acks are single-beat: the served channel's ack goes first, otherwise
the lowest-index channel with a valid ack is forwarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..common.priority_encoder import priority_encode_lsb
from ..errors import protocol_check
from .signals import ChannelResponse, ConsumerResponse

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArbitrationState:
    """Externally visible response-arbiter state."""
    served: int = 0
    switch_pending: bool = False
    consecutive: int = 0


@dataclass
class ResponseArbiterStats:
    """Per-channel service statistics."""
    beats: List[int] = field(default_factory=list)
    bursts: List[int] = field(default_factory=list)
    acks: List[int] = field(default_factory=list)
    switches: int = 0
    aging_switches: int = 0
    max_consecutive: int = 0


class ChannelResponseArbiter:
    """Burst-aligned, aging-bounded response multiplexer."""

    def __init__(self, config: "MemCtrlConfig"):
        self.config = config
        self.num_channels = config.num_channels
        self.threshold = config.switch_threshold
        self.reset()

    def reset(self) -> None:
        """Return to channel 0 with no pending switch."""
        self._served = 0
        self._switch_pending = False
        self._consecutive = 0
        self._mid_burst = False
        self._aging_grant = False
        self._aging_ptr = 0
        n = self.num_channels
        self.stats = ResponseArbiterStats(beats=[0] * n, bursts=[0] * n, acks=[0] * n)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def served(self) -> int:
        return self._served

    @property
    def switch_pending(self) -> bool:
        return self._switch_pending

    @property
    def consecutive(self) -> int:
        return self._consecutive

    @property
    def mid_burst(self) -> bool:
        return self._mid_burst

    @property
    def state(self) -> ArbitrationState:
        return ArbitrationState(
            served=self._served,
            switch_pending=self._switch_pending,
            consecutive=self._consecutive,
        )

    # =========================================================================
    # Combinational outputs (pre-tick state)
    # =========================================================================

    def read_ready_mask(self, consumer_r_ready: bool) -> List[bool]:
        """read_ready per channel: only the served channel sees the consumer's ready."""
        return [consumer_r_ready and ch == self._served for ch in range(self.num_channels)]

    def ack_channel(self, responses: Sequence[ChannelResponse]) -> Optional[int]:
        """Channel whose write ack is forwarded this cycle, if any."""
        if responses[self._served].b_valid:
            return self._served
        vector = 0
        for ch, rsp in enumerate(responses):
            if rsp.b_valid:
                vector |= 1 << ch
        index, valid = priority_encode_lsb(vector, self.num_channels)
        return index if valid else None

    def ack_ready_mask(
        self, responses: Sequence[ChannelResponse], consumer_b_ready: bool
    ) -> List[bool]:
        ch_sel = self.ack_channel(responses)
        return [consumer_b_ready and ch == ch_sel for ch in range(self.num_channels)]

    def select(self, responses: Sequence[ChannelResponse]) -> ConsumerResponse:
        """
        Multiplex the response fields onto the consumer bus.

        Only R and B fields are set; request-side readiness is filled in by
        the controller.
        """
        self._check_responses(responses)
        r = responses[self._served]
        ack_ch = self.ack_channel(responses)
        b = responses[ack_ch] if ack_ch is not None else ChannelResponse()
        return ConsumerResponse(
            r_valid=r.r_valid,
            r_data=r.r_data,
            r_user=r.r_user,
            r_id=r.r_id,
            r_last=r.r_last,
            b_valid=b.b_valid,
            b_user=b.b_user,
            b_id=b.b_id,
        )

    def _check_responses(self, responses: Sequence[ChannelResponse]) -> None:
        protocol_check(self.config, len(responses) == self.num_channels,
                       f"expected {self.num_channels} channel responses, got {len(responses)}")

    # =========================================================================
    # Candidate selection
    # =========================================================================

    def _others(self) -> List[int]:
        """Non-served channels in cyclic order starting after the served one."""
        n = self.num_channels
        return [(self._served + k) % n for k in range(1, n)]

    def _preferred(self, occupancy: Sequence[int]) -> Optional[int]:
        """Other channel with the largest occupancy, if strictly larger than the served one."""
        best: Optional[int] = None
        for ch in self._others():
            if best is None or occupancy[ch] > occupancy[best]:
                best = ch
        if best is not None and occupancy[best] > occupancy[self._served]:
            return best
        return None

    def _next_pending(self, occupancy: Sequence[int]) -> Optional[int]:
        """Next non-served channel with a pending response, cyclic after the last aged one."""
        n = self.num_channels
        for k in range(1, n + 1):
            ch = (self._aging_ptr + k) % n
            if ch != self._served and occupancy[ch] > 0:
                return ch
        return None

    # =========================================================================
    # Sequential update
    # =========================================================================

    def tick(
        self,
        responses: Sequence[ChannelResponse],
        consumer_r_ready: bool,
        consumer_b_ready: bool = False,
    ) -> Tuple[bool, bool]:
        """
        Advance one cycle.

        Args:
            responses: Per-channel backend responses sampled this cycle.
            consumer_r_ready: Consumer read-data ready.
            consumer_b_ready: Consumer write-ack ready (statistics only).

        Returns:
            (fire, fire_last) for the served channel's read handshake.
        """
        self._check_responses(responses)
        s = self._served
        occupancy = [rsp.occupancy for rsp in responses]

        fire = responses[s].r_valid and consumer_r_ready
        fire_last = fire and responses[s].r_last
        mid_next = (self._mid_burst or fire) and not fire_last

        if fire:
            self.stats.beats[s] += 1
        if fire_last:
            self.stats.bursts[s] += 1
            self._aging_grant = False
        if occupancy[s] == 0:
            self._aging_grant = False
        ack_ch = self.ack_channel(responses)
        if ack_ch is not None and consumer_b_ready:
            self.stats.acks[ack_ch] += 1

        preferred = None if self._aging_grant else self._preferred(occupancy)
        if preferred is not None:
            consecutive = 0
        else:
            consecutive = self._consecutive + (1 if fire_last else 0)
        self.stats.max_consecutive = max(self.stats.max_consecutive, consecutive)

        aging = consecutive >= self.threshold and self._next_pending(occupancy) is not None
        pending = self._switch_pending or preferred is not None or aging

        self._mid_burst = mid_next
        self._consecutive = consecutive
        self._switch_pending = pending

        if pending and not mid_next:
            target = preferred if preferred is not None else self._next_pending(occupancy)
            if target is None:
                # Nothing pending elsewhere: drop the switch
                self._switch_pending = False
            else:
                self._hand_off(target, by_aging=preferred is None)

        return fire, fire_last

    def _hand_off(self, target: int, by_aging: bool) -> None:
        logger.debug("Response bus hand-off: ch%d -> ch%d (%s, after %d bursts)",
                     self._served, target, "aging" if by_aging else "occupancy",
                     self._consecutive)
        self._served = target
        self._switch_pending = False
        self._consecutive = 0
        self._aging_grant = by_aging
        self.stats.switches += 1
        if by_aging:
            self._aging_ptr = target
            self.stats.aging_switches += 1

    def __repr__(self) -> str:
        return (f"ChannelResponseArbiter(served={self._served}, "
                f"pending={self._switch_pending}, consecutive={self._consecutive})")
