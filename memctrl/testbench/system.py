"""
Closed-loop simulation harness.

Wires a ConsumerDriver, the MemoryController and one ChannelBackendModel per
channel, steps them together each cycle, and feeds completed transactions to
the Scoreboard and MetricsCollector.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, List, Optional, TYPE_CHECKING

from ..core.controller import ControllerOutput, MemoryController
from ..metrics import ControllerStats, MetricsCollector
from .backend import ChannelBackendModel
from .driver import ConsumerDriver, StreamOrder, WriteTransaction
from .scoreboard import Scoreboard

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


logger = logging.getLogger(__name__)


class MemoryControllerSystem:
    """
    Driver + controller + channel backends.

    Args:
        config: Shared controller configuration.
        read_latency: Backend read latency, cycles.
        write_ack_latency: Backend write-ack latency, cycles.
        read_buffer_depth: Backend pending-read limit.
        order: AW/W stream ordering of the driver.
        max_in_flight: Transactions handed to the driver but not yet
            completed. Further submissions wait in a backlog.
        collect_metrics: Attach a MetricsCollector.
    """

    def __init__(
        self,
        config: "MemCtrlConfig",
        read_latency: int = 4,
        write_ack_latency: int = 2,
        read_buffer_depth: int = 8,
        order: StreamOrder = StreamOrder.AW_FIRST,
        max_in_flight: int = 4,
        collect_metrics: bool = True,
    ):
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1")
        self.config = config
        self.max_in_flight = max_in_flight
        self.controller = MemoryController(config)
        self.backends: List[ChannelBackendModel] = [
            ChannelBackendModel(ch, config, read_latency, write_ack_latency, read_buffer_depth)
            for ch in range(config.num_channels)
        ]
        self.driver = ConsumerDriver(config, order=order)
        self.scoreboard = Scoreboard(config)
        self.metrics: Optional[MetricsCollector] = MetricsCollector() if collect_metrics else None

        self.cycle = 0
        self._backlog: Deque = deque()
        self._in_flight = 0
        self._writes_seen = 0
        self._reads_seen = 0

    # =========================================================================
    # Traffic
    # =========================================================================

    def submit(self, txn) -> None:
        self._backlog.append(txn)

    def submit_all(self, txns: Iterable) -> None:
        for txn in txns:
            self.submit(txn)

    def _feed(self) -> None:
        while self._backlog and self._in_flight < self.max_in_flight:
            txn = self._backlog.popleft()
            self.driver.submit(txn, self.cycle)
            if isinstance(txn, WriteTransaction):
                self.scoreboard.write_submitted(txn)
            self._in_flight += 1

    def _retire(self) -> None:
        writes = self.driver.completed_writes
        for txn in writes[self._writes_seen:]:
            self.scoreboard.expect_write(txn)
            self._in_flight -= 1
        self._writes_seen = len(writes)

        reads = self.driver.completed_reads
        for txn in reads[self._reads_seen:]:
            self.scoreboard.check_read(txn)
            self._in_flight -= 1
        self._reads_seen = len(reads)

    # =========================================================================
    # Simulation
    # =========================================================================

    def step(self) -> ControllerOutput:
        """Advance the whole system one cycle."""
        self._feed()
        request = self.driver.request()
        responses = [backend.outputs() for backend in self.backends]
        served = self.controller.response_arbiter.served

        output = self.controller.step(request, responses)
        for backend, line in zip(self.backends, output.channels):
            backend.tick(line)
        self.driver.observe(output.consumer, self.cycle)
        self._retire()

        if self.metrics is not None:
            self.metrics.capture(self.cycle, served, self.controller, request, responses, output)
        self.cycle += 1
        return output

    def run(self, cycles: int) -> None:
        for _ in range(cycles):
            self.step()

    @property
    def is_idle(self) -> bool:
        return not self._backlog and self.driver.is_idle

    def run_until_idle(self, max_cycles: int = 10000) -> bool:
        """
        Step until every submitted transaction has completed.

        Returns:
            True if the system drained within max_cycles.
        """
        start = self.cycle
        while not self.is_idle:
            if self.cycle - start >= max_cycles:
                logger.warning("System not idle after %d cycles: %r", max_cycles, self.driver)
                return False
            self.step()
        return True

    @property
    def stats(self) -> ControllerStats:
        return ControllerStats.from_controller(self.controller)

    def reset(self) -> None:
        self.controller.reset()
        for backend in self.backends:
            backend.reset()
        self.driver = ConsumerDriver(self.config, order=self.driver.order)
        self.scoreboard = Scoreboard(self.config)
        if self.metrics is not None:
            self.metrics.reset()
        self.cycle = 0
        self._backlog.clear()
        self._in_flight = 0
        self._writes_seen = 0
        self._reads_seen = 0
