"""
Request Arbiter.

Decides, each cycle, the single request issued downstream:

1. Mid-burst: keep issuing the current write burst (one beat per cycle).
2. Assembly-ready burst: write mode preempts reads. The burst starts once
   its target unit reports aw_ready and w_ready; until then nothing issues.
3. Otherwise a read whose translated target unit is ready issues for one
   cycle.

A write burst is burst-granular: valid only on its first beat, last only on
its final beat. Read and write are never granted in the same cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, TYPE_CHECKING

from ..common.bits import bit
from ..errors import protocol_check
from .address import TranslationResult
from .signals import Tag
from .write_assembler import WriteBeat, WriteRequestAssembler

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


logger = logging.getLogger(__name__)


class Grant(Enum):
    """Request granted this cycle."""
    IDLE = auto()
    READ = auto()
    WRITE = auto()


@dataclass(frozen=True)
class ArbiterDecision:
    """Arbitration result for one cycle."""
    grant: Grant = Grant.IDLE
    write_beat: Optional[WriteBeat] = None
    read: Optional[TranslationResult] = None
    read_tag: Tag = Tag(0, 0)

    @property
    def is_read(self) -> bool:
        return self.grant == Grant.READ

    @property
    def is_write(self) -> bool:
        return self.grant == Grant.WRITE

    @property
    def valid(self) -> bool:
        """Request strobe: every read, and only the first beat of a write burst."""
        if self.grant == Grant.READ:
            return True
        return self.write_beat is not None and self.write_beat.first

    @property
    def last(self) -> bool:
        if self.grant == Grant.READ:
            return True
        return self.write_beat is not None and self.write_beat.last


IDLE_DECISION = ArbiterDecision()


@dataclass
class ArbiterStats:
    reads_issued: int = 0
    bursts_started: int = 0
    bursts_completed: int = 0
    write_beats: int = 0
    write_stall_cycles: int = 0     # Burst assembled but target unit not ready


class RequestArbiter:
    """Read-first request arbiter with write-burst preemption."""

    def __init__(self, config: "MemCtrlConfig"):
        self.config = config
        self._write_mode = False
        self.stats = ArbiterStats()

    @property
    def write_mode(self) -> bool:
        """A write burst has started and not yet issued its final beat."""
        return self._write_mode

    def write_pending(self, assembler: WriteRequestAssembler) -> bool:
        """Writes own the request path this cycle (reads must wait)."""
        return self._write_mode or assembler.assembly_ready

    def arbitrate(
        self,
        assembler: WriteRequestAssembler,
        read: TranslationResult,
        aw_ready_vector: int,
        w_ready_vector: int,
        read_tag: Tag = Tag(0, 0),
    ) -> ArbiterDecision:
        """
        Pick this cycle's request.

        Args:
            assembler: Write assembler (pre-tick state). A WRITE grant pops
                one beat from it.
            read: Translation of the consumer's read address.
            aw_ready_vector: Per-target-unit write-address readiness.
            w_ready_vector: Per-target-unit write-data readiness.
            read_tag: (id, user) of the read request.

        Returns:
            ArbiterDecision for this cycle.
        """
        if self._write_mode:
            protocol_check(self.config, assembler.burst_in_progress,
                           "write mode without a burst in progress")
            return ArbiterDecision(grant=Grant.WRITE, write_beat=assembler.pop_beat())

        if assembler.assembly_ready:
            target = assembler.next_target_index
            if bit(aw_ready_vector, target) and bit(w_ready_vector, target):
                return ArbiterDecision(grant=Grant.WRITE, write_beat=assembler.pop_beat())
            self.stats.write_stall_cycles += 1
            return IDLE_DECISION

        if read.valid and read.is_read and read.target_ready:
            return ArbiterDecision(grant=Grant.READ, read=read, read_tag=read_tag)

        return IDLE_DECISION

    def tick(self, decision: ArbiterDecision) -> None:
        """Commit the cycle's decision."""
        protocol_check(
            self.config, not (decision.write_beat is not None and decision.read is not None),
            "read and write issued in the same cycle"
        )
        if decision.grant == Grant.READ:
            self.stats.reads_issued += 1
        elif decision.grant == Grant.WRITE:
            beat = decision.write_beat
            self.stats.write_beats += 1
            if beat.first:
                self.stats.bursts_started += 1
                logger.debug("Write burst start: tag=%s addr=%s", beat.tag, beat.address)
            if beat.last:
                self.stats.bursts_completed += 1
                self._write_mode = False
            else:
                self._write_mode = True

    def reset(self) -> None:
        self._write_mode = False
        self.stats = ArbiterStats()
