"""
Controller performance metrics.

Aggregates the counters kept by the request and response arbiters into a
single report, and rates response-bus fairness with Jain's index:

    J = (sum x)^2 / (n * sum x^2)

where x is the number of read beats granted to each channel. J is 1.0 for
a perfectly even split and 1/n when one channel gets everything.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Sequence, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ..core.controller import MemoryController


class FairnessStatus(Enum):
    """
    Response-bus fairness based on Jain's index.
    """

    FAIR = "fair"  # J >= 0.9
    SKEWED = "skewed"  # 0.6 <= J < 0.9
    STARVING = "starving"  # J < 0.6


@dataclass
class FairnessReport:
    """
    Fairness of read-beat grants across channels.

    Attributes:
        index: Jain's fairness index in [1/n, 1].
        shares: Fraction of granted beats per channel.
        status: Classified fairness status.
    """

    index: float
    shares: List[float]
    status: FairnessStatus

    @property
    def is_fair(self) -> bool:
        return self.status == FairnessStatus.FAIR


def calculate_fairness_status(index: float) -> FairnessStatus:
    """
    Classify a Jain's index value.

    Args:
        index: Jain's fairness index

    Returns:
        FairnessStatus enum value
    """
    if index >= 0.9:
        return FairnessStatus.FAIR
    elif index >= 0.6:
        return FairnessStatus.SKEWED
    else:
        return FairnessStatus.STARVING


def calculate_fairness(grants: Sequence[int]) -> FairnessReport:
    """
    Jain's fairness index over per-channel grant counts.

    Args:
        grants: Beats (or bursts) granted per channel.

    Returns:
        FairnessReport. With no grants at all the split is trivially fair.
    """
    x = np.asarray(grants, dtype=float)
    if x.size == 0:
        raise ValueError("grants must not be empty")
    total = x.sum()
    if total == 0:
        return FairnessReport(index=1.0, shares=[0.0] * x.size, status=FairnessStatus.FAIR)
    index = float(total ** 2 / (x.size * np.sum(x ** 2)))
    shares = (x / total).tolist()
    return FairnessReport(index=index, shares=shares, status=calculate_fairness_status(index))


@dataclass
class ControllerStats:
    """
    Counters for one simulation run.

    Attributes:
        cycles: Simulated cycles.
        reads_issued: Read requests dispatched to a channel.
        write_bursts_started: Write bursts whose first beat was dispatched.
        write_bursts_completed: Write bursts whose final beat was dispatched.
        write_beats: Write beats dispatched.
        write_stall_cycles: Cycles an assembled burst waited on its target unit.
        r_beats: Read beats forwarded to the consumer, per channel.
        r_bursts: Read bursts forwarded to the consumer, per channel.
        acks: Write acks forwarded to the consumer, per channel.
        channel_switches: Response-bus hand-offs.
        aging_switches: Hand-offs forced by the consecutive-burst limit.
        max_consecutive: Longest run of bursts from one channel.
    """

    cycles: int = 0
    reads_issued: int = 0
    write_bursts_started: int = 0
    write_bursts_completed: int = 0
    write_beats: int = 0
    write_stall_cycles: int = 0
    r_beats: List[int] = field(default_factory=list)
    r_bursts: List[int] = field(default_factory=list)
    acks: List[int] = field(default_factory=list)
    channel_switches: int = 0
    aging_switches: int = 0
    max_consecutive: int = 0
    data_width: int = 64

    @classmethod
    def from_controller(cls, controller: "MemoryController") -> "ControllerStats":
        req = controller.arbiter.stats
        rsp = controller.response_arbiter.stats
        return cls(
            cycles=controller.cycle,
            reads_issued=req.reads_issued,
            write_bursts_started=req.bursts_started,
            write_bursts_completed=req.bursts_completed,
            write_beats=req.write_beats,
            write_stall_cycles=req.write_stall_cycles,
            r_beats=list(rsp.beats),
            r_bursts=list(rsp.bursts),
            acks=list(rsp.acks),
            channel_switches=rsp.switches,
            aging_switches=rsp.aging_switches,
            max_consecutive=rsp.max_consecutive,
            data_width=controller.config.data_width,
        )

    @property
    def total_r_beats(self) -> int:
        return sum(self.r_beats)

    @property
    def read_throughput(self) -> float:
        """Read data returned to the consumer, bytes/cycle."""
        if self.cycles == 0:
            return 0.0
        return self.total_r_beats * (self.data_width // 8) / self.cycles

    @property
    def write_throughput(self) -> float:
        """Write data dispatched to the channels, bytes/cycle."""
        if self.cycles == 0:
            return 0.0
        return self.write_beats * (self.data_width // 8) / self.cycles

    @property
    def fairness(self) -> FairnessReport:
        return calculate_fairness(self.r_beats or [0])

    def to_dict(self) -> Dict:
        result = asdict(self)
        result["read_throughput"] = self.read_throughput
        result["write_throughput"] = self.write_throughput
        fairness = self.fairness
        result["fairness_index"] = fairness.index
        result["fairness_status"] = fairness.status.value
        return result

    def __str__(self) -> str:
        fairness = self.fairness
        lines = [
            "=" * 70,
            "Memory Controller Metrics",
            "=" * 70,
            f"Cycles:              {self.cycles}",
            f"Reads Issued:        {self.reads_issued}",
            f"Write Bursts:        {self.write_bursts_completed} "
            f"({self.write_beats} beats, {self.write_stall_cycles} stall cycles)",
            "-" * 70,
            f"Read Throughput:     {self.read_throughput:.2f} bytes/cycle",
            f"Write Throughput:    {self.write_throughput:.2f} bytes/cycle",
            "-" * 70,
            f"R Beats / Channel:   {self.r_beats}",
            f"R Bursts / Channel:  {self.r_bursts}",
            f"Acks / Channel:      {self.acks}",
            f"Channel Switches:    {self.channel_switches} ({self.aging_switches} by aging)",
            f"Max Consecutive:     {self.max_consecutive} bursts",
            f"Fairness (Jain):     {fairness.index:.3f} ({fairness.status.value.upper()})",
            "=" * 70,
        ]
        return "\n".join(lines)
