"""
Per-cycle metrics collection.

Captures a lightweight snapshot of the controller every cycle and exposes
the series as numpy arrays for analysis and plotting.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..core.request_arbiter import Grant

if TYPE_CHECKING:
    from ..core.controller import ControllerOutput, MemoryController
    from ..core.signals import ChannelResponse, ConsumerRequest


# Numeric codes used by the grant series
GRANT_CODES: Dict[Grant, int] = {
    Grant.IDLE: 0,
    Grant.READ: 1,
    Grant.WRITE: 2,
}


@dataclass(frozen=True)
class CycleSnapshot:
    """Controller state observed in one cycle."""
    cycle: int
    served: int                     # Channel owning the response bus
    grant: int                      # GRANT_CODES value
    active_channel: int             # Channel line carrying a request, -1 if none
    aw_occupancy: int
    w_occupancy: int
    channel_occupancy: Tuple[int, ...]
    r_fire: bool
    b_fire: bool


class MetricsCollector:
    """
    Collects CycleSnapshot records.

    Usage:
        collector = MetricsCollector()
        for ...:
            served = controller.response_arbiter.served
            out = controller.step(request, responses)
            collector.capture(cycle, served, controller, request, responses, out)
        occ = collector.channel_occupancy()
    """

    def __init__(self, capture_interval: int = 1):
        if capture_interval < 1:
            raise ValueError("capture_interval must be >= 1")
        self.capture_interval = capture_interval
        self.snapshots: List[CycleSnapshot] = []

    def capture(
        self,
        cycle: int,
        served: int,
        controller: "MemoryController",
        request: "ConsumerRequest",
        responses: Sequence["ChannelResponse"],
        output: "ControllerOutput",
    ) -> None:
        """
        Record one cycle.

        Args:
            cycle: Cycle number of the step.
            served: Channel that owned the response bus during the step
                (the arbiter state before the step committed).
        """
        if cycle % self.capture_interval != 0:
            return
        active = output.active_channel
        consumer = output.consumer
        self.snapshots.append(CycleSnapshot(
            cycle=cycle,
            served=served,
            grant=GRANT_CODES[output.decision.grant],
            active_channel=-1 if active is None else active,
            aw_occupancy=controller.assembler.aw_occupancy,
            w_occupancy=controller.assembler.w_occupancy,
            channel_occupancy=tuple(rsp.occupancy for rsp in responses),
            r_fire=consumer.r_valid and request.r_ready,
            b_fire=consumer.b_valid and request.b_ready,
        ))

    def reset(self) -> None:
        self.snapshots.clear()

    def __len__(self) -> int:
        return len(self.snapshots)

    # =========================================================================
    # Series accessors
    # =========================================================================

    def cycles(self) -> np.ndarray:
        return np.array([s.cycle for s in self.snapshots], dtype=int)

    def served_channels(self) -> np.ndarray:
        return np.array([s.served for s in self.snapshots], dtype=int)

    def grants(self) -> np.ndarray:
        return np.array([s.grant for s in self.snapshots], dtype=int)

    def active_channels(self) -> np.ndarray:
        return np.array([s.active_channel for s in self.snapshots], dtype=int)

    def queue_occupancy(self) -> Dict[str, np.ndarray]:
        """Write-assembler queue occupancy series ("aw", "w")."""
        return {
            "aw": np.array([s.aw_occupancy for s in self.snapshots], dtype=int),
            "w": np.array([s.w_occupancy for s in self.snapshots], dtype=int),
        }

    def channel_occupancy(self) -> np.ndarray:
        """Backend read occupancy, shape (cycles, channels)."""
        if not self.snapshots:
            return np.zeros((0, 0), dtype=int)
        return np.array([s.channel_occupancy for s in self.snapshots], dtype=int)

    def read_beats_per_channel(self, num_channels: int) -> np.ndarray:
        """Read beats delivered to the consumer, counted per serving channel."""
        counts = np.zeros(num_channels, dtype=int)
        for s in self.snapshots:
            if s.r_fire:
                counts[s.served] += 1
        return counts

    def to_dict(self) -> Dict:
        return {
            "capture_interval": self.capture_interval,
            "snapshots": [asdict(s) for s in self.snapshots],
        }
