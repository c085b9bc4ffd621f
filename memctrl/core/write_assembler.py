"""
Write Request Assembler.

Reassembles complete write bursts from independently paced write-address
(AW) and write-data (W) streams. Both queues are fixed-size arenas with
explicit free bitmasks; an address entry and a data entry are paired only by
tag (id, user), never by index.

Push side:
- AW: occupies the lowest free address slot (priority encoder over aw_free).
- W: the first beat of a burst claims the lowest slot the push pointer may
  use and captures the tag; each beat fills the next offset given by the push
  beat counter, which wraps every burst_length beats (slot becomes filled).

Pop side:
- A dedicated burst-position counter walks the matched pair's beats; after
  the final beat both slots are released.

Same-slot race: if a new burst claims the data slot released in the same
cycle, the push keeps that slot's pointer-free bit cleared while the
data-free bit is still set by the release. The new burst is not lost.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, TYPE_CHECKING

from ..common.bits import mask, bit
from ..common.dual_port_buffer import DualPortBuffer
from ..common.priority_encoder import PriorityEncoder
from ..errors import ProtocolViolation, protocol_check
from .address import MemoryAddress
from .signals import Tag

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


logger = logging.getLogger(__name__)


@dataclass
class WriteAddrEntry:
    """Address queue slot."""
    address: MemoryAddress = MemoryAddress()
    tag: Tag = Tag(0, 0)
    target_index: int = 0
    occupied: bool = False


@dataclass
class WriteDataEntry:
    """Data queue slot; the (data, strobe) beats live in the payload buffer."""
    tag: Tag = Tag(0, 0)
    fill_count: int = 0
    occupied: bool = False


@dataclass(frozen=True)
class WriteBeat:
    """One beat of a write burst issued downstream."""
    address: MemoryAddress
    tag: Tag
    target_index: int
    data: int
    strobe: int
    beat: int
    first: bool
    last: bool
    aw_index: int
    w_index: int


class WriteRequestAssembler:
    """
    Tag-matched AW/W burst assembler.

    All observations (ready signals, matches, beats) reflect pre-tick state.
    push_aw(), push_w() and pop_beat() stage this cycle's activity, tick()
    commits it.
    """

    def __init__(self, config: "MemCtrlConfig"):
        self.config = config
        self.burst_length = config.burst_length
        self.aw_depth = config.aw_queue_depth
        self.w_depth = config.w_queue_depth

        self._aw_encoder = PriorityEncoder(self.aw_depth)
        self._w_encoder = PriorityEncoder(self.w_depth)

        # Beat payload: slot * burst_length + beat -> (data, strobe)
        self._payload = DualPortBuffer(
            self.w_depth * self.burst_length, config,
            name="w_payload", fill=(0, 0),
        )

        self._aw_entries: List[WriteAddrEntry] = []
        self._w_entries: List[WriteDataEntry] = []
        self.reset()

    def reset(self) -> None:
        """Synchronous reset: clear all occupancy, counters and the active pair."""
        self._aw_entries = [WriteAddrEntry() for _ in range(self.aw_depth)]
        self._w_entries = [WriteDataEntry() for _ in range(self.w_depth)]
        self._aw_free = mask(self.aw_depth)
        self._w_ptr_free = mask(self.w_depth)
        self._w_data_free = mask(self.w_depth)
        self._payload.reset()

        # Push side: slot being filled and beat counter
        self._push_slot: Optional[int] = None
        self._push_beat = 0

        # Pop side: latched pair and burst-position counter
        self._active_pair: Optional[Tuple[int, int]] = None
        self._pop_beat = 0

        self._clear_staged()

    def _clear_staged(self) -> None:
        self._staged_aw: Optional[Tuple[int, WriteAddrEntry]] = None
        self._staged_w: Optional[Tuple[Tag, int, int, bool]] = None
        self._staged_pop: Optional[WriteBeat] = None

    # =========================================================================
    # Observations (pre-tick state)
    # =========================================================================

    @property
    def full(self) -> bool:
        """No free address slot: AW must be backpressured."""
        return self._aw_free == 0

    @property
    def aw_ready(self) -> bool:
        return not self.full

    @property
    def w_ready(self) -> bool:
        """A burst is mid-fill, or a slot can be claimed for a new burst."""
        return self._push_slot is not None or self._w_ptr_free != 0

    @property
    def aw_free_mask(self) -> int:
        return self._aw_free

    @property
    def w_ptr_free_mask(self) -> int:
        return self._w_ptr_free

    @property
    def w_data_free_mask(self) -> int:
        return self._w_data_free

    @property
    def aw_occupancy(self) -> int:
        return self.aw_depth - bin(self._aw_free).count("1")

    @property
    def w_occupancy(self) -> int:
        return self.w_depth - bin(self._w_ptr_free).count("1")

    @property
    def push_beat(self) -> int:
        return self._push_beat

    @property
    def pop_beat_index(self) -> int:
        return self._pop_beat

    @property
    def burst_in_progress(self) -> bool:
        return self._active_pair is not None

    def aw_entry(self, index: int) -> WriteAddrEntry:
        return self._aw_entries[index]

    def w_entry(self, index: int) -> WriteDataEntry:
        return self._w_entries[index]

    def is_filled(self, w_index: int) -> bool:
        return self._w_entries[w_index].occupied and not bit(self._w_data_free, w_index)

    def data_beats(self, w_index: int) -> List[Tuple[int, int]]:
        """Committed (data, strobe) beats of a data slot (debug view)."""
        base = w_index * self.burst_length
        return [self._payload.peek(base + i) for i in range(self.burst_length)]

    def _matches(self) -> List[Tuple[int, int]]:
        """All (w_index, aw_index) pairs whose tags match."""
        pairs = []
        for w_idx in range(self.w_depth):
            if not self.is_filled(w_idx):
                continue
            w_tag = self._w_entries[w_idx].tag
            for aw_idx in range(self.aw_depth):
                entry = self._aw_entries[aw_idx]
                if entry.occupied and entry.tag == w_tag:
                    pairs.append((w_idx, aw_idx))
        return pairs

    @property
    def ready_vector(self) -> int:
        """Assembly-ready vector: bit i set if data slot i has a matching address."""
        vector = 0
        for w_idx, _ in self._matches():
            vector |= 1 << w_idx
        return vector

    @property
    def matched_pair(self) -> Optional[Tuple[int, int]]:
        """
        Pair (aw_index, w_index) issued next.

        While a burst is in progress this is the latched pair. Otherwise the
        tie-break among matching pairs is: lowest data index, then lowest
        address index (the result of a highest-to-lowest overwrite scan).
        """
        if self._active_pair is not None:
            return self._active_pair
        pairs = self._matches()
        if not pairs:
            return None
        w_idx, aw_idx = min(pairs)
        return aw_idx, w_idx

    @property
    def assembly_ready(self) -> bool:
        """Some data slot is currently matched (or a matched burst is mid-issue)."""
        return self._active_pair is not None or self.ready_vector != 0

    @property
    def next_target_index(self) -> Optional[int]:
        pair = self.matched_pair
        if pair is None:
            return None
        return self._aw_entries[pair[0]].target_index

    # =========================================================================
    # Staged activity
    # =========================================================================

    def push_aw(self, address: MemoryAddress, tag: Tag, target_index: int) -> int:
        """
        Accept a write-address transaction into the lowest free slot.

        Args:
            address: Translated write address.
            tag: (id, user) of the transaction.
            target_index: Target-unit index of the address.

        Returns:
            Claimed address slot index.

        Raises:
            ProtocolViolation: Queue full (caller ignored aw_ready) or a
                second AW push in the same cycle.
        """
        protocol_check(self.config, not self.full, "push_aw while address queue is full")
        protocol_check(self.config, self._staged_aw is None, "two AW pushes in one cycle")
        slot, _ = self._aw_encoder.encode(self._aw_free)
        self._staged_aw = (slot, WriteAddrEntry(
            address=address, tag=tag, target_index=target_index, occupied=True,
        ))
        return slot

    def push_w(self, data: int, strobe: int, tag: Tag, last: bool) -> None:
        """
        Accept one write-data beat.

        The tag is captured on the first beat of a burst; ``last`` must be
        set exactly on the beat that completes the burst.
        """
        protocol_check(self.config, self.w_ready, "push_w while data queue has no free slot")
        protocol_check(self.config, self._staged_w is None, "two W pushes in one cycle")
        wraps = self._push_beat == self.burst_length - 1
        protocol_check(
            self.config, last == wraps,
            f"w_last={last} on beat {self._push_beat} of a {self.burst_length}-beat burst"
        )
        self._staged_w = (tag, data, strobe, last)

    def pop_beat(self) -> WriteBeat:
        """
        Read the next beat of the matched burst for issue this cycle.

        The matched pair is latched on the first beat and held until the
        final beat, after which both slots are released on tick().
        """
        protocol_check(self.config, self._staged_pop is None, "two pops in one cycle")
        pair = self.matched_pair
        if pair is None:
            raise ProtocolViolation("pop_beat with no assembled burst")
        aw_idx, w_idx = pair
        entry = self._aw_entries[aw_idx]
        data, strobe = self._payload.read(w_idx * self.burst_length + self._pop_beat)
        beat = WriteBeat(
            address=entry.address,
            tag=entry.tag,
            target_index=entry.target_index,
            data=data,
            strobe=strobe,
            beat=self._pop_beat,
            first=self._pop_beat == 0,
            last=self._pop_beat == self.burst_length - 1,
            aw_index=aw_idx,
            w_index=w_idx,
        )
        self._staged_pop = beat
        return beat

    # =========================================================================
    # Commit
    # =========================================================================

    def tick(self) -> None:
        """Commit this cycle's pop, AW push and W push (release before push)."""
        release_aw = 0
        release_w = 0

        # Pop side
        beat = self._staged_pop
        if beat is not None:
            if beat.first:
                self._active_pair = (beat.aw_index, beat.w_index)
            if beat.last:
                release_aw = 1 << beat.aw_index
                release_w = 1 << beat.w_index
                self._aw_entries[beat.aw_index] = WriteAddrEntry()
                self._w_entries[beat.w_index] = WriteDataEntry()
                self._active_pair = None
                self._pop_beat = 0
                logger.debug("Burst retired: tag=%s aw[%d] w[%d]",
                             beat.tag, beat.aw_index, beat.w_index)
            else:
                self._pop_beat += 1

        # AW push
        claim_aw = 0
        if self._staged_aw is not None:
            slot, entry = self._staged_aw
            self._aw_entries[slot] = entry
            claim_aw = 1 << slot

        # W push
        claim_w = 0
        filled_w = 0
        if self._staged_w is not None:
            tag, data, strobe, last = self._staged_w
            if self._push_slot is None:
                # Slot released this cycle is claimable by a new burst
                candidates = self._w_ptr_free | release_w
                if self.burst_length == 1:
                    # Its only payload beat was read this cycle
                    candidates &= ~release_w
                slot, _ = self._w_encoder.encode(candidates)
                self._push_slot = slot
                self._w_entries[slot] = WriteDataEntry(tag=tag, fill_count=0, occupied=True)
                claim_w = 1 << slot
            slot = self._push_slot
            self._payload.write(slot * self.burst_length + self._push_beat, (data, strobe))
            self._w_entries[slot].fill_count += 1
            self._push_beat += 1
            if self._push_beat == self.burst_length:
                filled_w = 1 << slot
                self._push_slot = None
                self._push_beat = 0
                logger.debug("Burst filled: tag=%s w[%d]", self._w_entries[slot].tag, slot)

        self._aw_free = (self._aw_free | release_aw) & ~claim_aw & mask(self.aw_depth)
        # Push wins over release for the pointer-free bit
        self._w_ptr_free = (self._w_ptr_free | release_w) & ~claim_w & mask(self.w_depth)
        self._w_data_free = (self._w_data_free | release_w) & ~filled_w & mask(self.w_depth)

        if self.full:
            logger.debug("Address queue full")

        self._payload.tick()
        self._clear_staged()

    def __repr__(self) -> str:
        return (f"WriteRequestAssembler(aw={self.aw_occupancy}/{self.aw_depth}, "
                f"w={self.w_occupancy}/{self.w_depth}, "
                f"ready={self.ready_vector:#x})")
