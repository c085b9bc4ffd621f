"""
Channel backend model.

Black-box stand-in for one channel's backend (rank scheduling, DRAM timing
and PHY are out of scope). It exposes exactly the interface the controller
sees:

- per-rank ar/aw/w ready vectors
- request acceptance keyed by (id, user)
- read-buffer occupancy (pending read responses)
- read bursts with last signaling, single-beat write acks

Reads complete after a fixed latency and return burst_length beats from a
sparse memory image; writes are acknowledged a fixed latency after their
final beat. Latencies are modeled with TimingCounter.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple, TYPE_CHECKING

from ..common.bits import mask
from ..common.timing_counter import TimingCounter
from ..core.signals import ChannelRequest, ChannelResponse, Tag
from ..errors import protocol_check

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


logger = logging.getLogger(__name__)


@dataclass
class _PendingRead:
    tag: Tag
    flat_addr: int
    timer: TimingCounter


@dataclass
class _PendingAck:
    tag: Tag
    timer: TimingCounter


@dataclass
class _IncomingWrite:
    tag: Tag
    flat_addr: int
    beats: List[Tuple[int, int]] = field(default_factory=list)


@dataclass
class BackendStats:
    reads_accepted: int = 0
    writes_accepted: int = 0
    r_beats_sent: int = 0
    acks_sent: int = 0


class ChannelBackendModel:
    """
    One channel backend.

    Args:
        channel: Channel index served by this backend.
        config: Shared controller configuration.
        read_latency: Cycles from read acceptance to first data beat (>= 1).
        write_ack_latency: Cycles from final write beat to ack (>= 1).
        read_buffer_depth: Max pending read bursts; ar_ready drops when reached.
    """

    def __init__(
        self,
        channel: int,
        config: "MemCtrlConfig",
        read_latency: int = 4,
        write_ack_latency: int = 2,
        read_buffer_depth: int = 8,
    ):
        if read_latency < 1 or write_ack_latency < 1:
            raise ValueError("backend latencies must be >= 1")
        self.channel = channel
        self.config = config
        self.read_latency = read_latency
        self.write_ack_latency = write_ack_latency
        self.read_buffer_depth = read_buffer_depth

        # Per-rank readiness (tests may override)
        all_ranks = mask(config.ranks_per_channel)
        self.ar_ready_mask = all_ranks
        self.aw_ready_mask = all_ranks
        self.w_ready_mask = all_ranks

        # Sparse memory image: (flat burst address, beat) -> data
        self.memory: Dict[Tuple[int, int], int] = {}

        self._pending_reads: List[_PendingRead] = []
        self._read_responses: Deque[Tuple[Tag, int]] = deque()  # (tag, flat addr)
        self._r_beat = 0
        self._pending_acks: List[_PendingAck] = []
        self._ack_queue: Deque[Tag] = deque()
        self._incoming: Optional[_IncomingWrite] = None

        self.stats = BackendStats()

    # =========================================================================
    # Outputs (pre-tick state)
    # =========================================================================

    @property
    def occupancy(self) -> int:
        """Read responses pending (waiting on latency or ready to stream)."""
        return len(self._pending_reads) + len(self._read_responses)

    def set_ready(self, ar: Optional[int] = None, aw: Optional[int] = None,
                  w: Optional[int] = None) -> None:
        if ar is not None:
            self.ar_ready_mask = ar
        if aw is not None:
            self.aw_ready_mask = aw
        if w is not None:
            self.w_ready_mask = w

    def outputs(self) -> ChannelResponse:
        """Signals driven toward the controller this cycle."""
        r_valid = bool(self._read_responses)
        r_tag, r_addr = self._read_responses[0] if r_valid else (Tag(0, 0), 0)
        b_valid = bool(self._ack_queue)
        b_tag = self._ack_queue[0] if b_valid else Tag(0, 0)

        ar_ready = self.ar_ready_mask if self.occupancy < self.read_buffer_depth else 0
        # A write burst is mid-flight: no new write address
        aw_ready = self.aw_ready_mask if self._incoming is None else 0

        return ChannelResponse(
            r_valid=r_valid,
            r_data=self.memory.get((r_addr, self._r_beat), 0) if r_valid else 0,
            r_id=r_tag.id,
            r_user=r_tag.user,
            r_last=r_valid and self._r_beat == self.config.burst_length - 1,
            b_valid=b_valid,
            b_id=b_tag.id,
            b_user=b_tag.user,
            ar_ready=ar_ready,
            aw_ready=aw_ready,
            w_ready=self.w_ready_mask,
            occupancy=self.occupancy,
        )

    # =========================================================================
    # Sequential update
    # =========================================================================

    def _new_timer(self, latency: int, name: str) -> TimingCounter:
        timer = TimingCounter(self.config, width=max(latency.bit_length(), 1), name=name)
        timer.setup(latency)
        timer.tick()
        return timer

    def tick(self, request: ChannelRequest) -> None:
        """
        Sample this cycle's request line and advance one cycle.

        Args:
            request: Line driven by the controller's dispatcher for this channel.
        """
        current = self.outputs()

        # Response handshakes
        if current.r_valid and request.read_ready:
            self.stats.r_beats_sent += 1
            if current.r_last:
                self._read_responses.popleft()
                self._r_beat = 0
            else:
                self._r_beat += 1
        if current.b_valid and request.ack_ready:
            self._ack_queue.popleft()
            self.stats.acks_sent += 1

        # Latency counters
        for pending in list(self._pending_reads):
            pending.timer.tick()
            if pending.timer.expired:
                self._pending_reads.remove(pending)
                self._read_responses.append((pending.tag, pending.flat_addr))
        for pending in list(self._pending_acks):
            pending.timer.tick()
            if pending.timer.expired:
                self._pending_acks.remove(pending)
                self._ack_queue.append(pending.tag)

        # New requests
        if request.is_read:
            protocol_check(self.config, (current.ar_ready & request.valid) != 0,
                           f"ch{self.channel}: read issued to a rank that is not ready")
            flat = request.address.to_flat(self.config)
            self._pending_reads.append(_PendingRead(
                tag=Tag(request.id, request.user), flat_addr=flat,
                timer=self._new_timer(self.read_latency, f"ch{self.channel}_rd"),
            ))
            self.stats.reads_accepted += 1
        elif request.write and request.beat:
            self._accept_write_beat(request, current)

    def _accept_write_beat(self, request: ChannelRequest, current: ChannelResponse) -> None:
        if request.valid:
            protocol_check(self.config, self._incoming is None,
                           f"ch{self.channel}: new write burst before previous last beat")
            protocol_check(self.config, (current.aw_ready & request.valid) != 0,
                           f"ch{self.channel}: write issued to a rank that is not ready")
            self._incoming = _IncomingWrite(
                tag=Tag(request.id, request.user),
                flat_addr=request.address.to_flat(self.config),
            )
        protocol_check(self.config, self._incoming is not None,
                       f"ch{self.channel}: write data beat without a burst")
        if self._incoming is None:
            return
        self._incoming.beats.append((request.data, request.strobe))
        if request.last:
            self._commit_write(self._incoming)
            self._incoming = None

    def _commit_write(self, write: _IncomingWrite) -> None:
        for beat, (data, strobe) in enumerate(write.beats):
            old = self.memory.get((write.flat_addr, beat), 0)
            self.memory[(write.flat_addr, beat)] = apply_strobe(old, data, strobe)
        self._pending_acks.append(_PendingAck(
            tag=write.tag,
            timer=self._new_timer(self.write_ack_latency, f"ch{self.channel}_ack"),
        ))
        self.stats.writes_accepted += 1
        logger.debug("ch%d: write burst committed tag=%s addr=%#x",
                     self.channel, write.tag, write.flat_addr)

    def reset(self) -> None:
        self.memory.clear()
        self._pending_reads.clear()
        self._read_responses.clear()
        self._r_beat = 0
        self._pending_acks.clear()
        self._ack_queue.clear()
        self._incoming = None
        self.stats = BackendStats()

    def __repr__(self) -> str:
        return (f"ChannelBackendModel(ch{self.channel}, occupancy={self.occupancy}, "
                f"acks={len(self._ack_queue)})")


def apply_strobe(old: int, data: int, strobe: int) -> int:
    """Merge data into old under a byte-enable strobe."""
    result = old
    byte = 0
    while strobe >> byte:
        if (strobe >> byte) & 1:
            lane = 0xFF << (8 * byte)
            result = (result & ~lane) | (data & lane)
        byte += 1
    return result
