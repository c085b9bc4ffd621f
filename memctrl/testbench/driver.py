"""
Consumer-side driver.

Plays the cache side of the controller: presents AW / W / AR beats with
valid/ready handshakes, accepts R and B responses, and tracks every
transaction from submission to completion.

Stream ordering between a write's address and its data is selectable:
- AW_FIRST: W beats of a transaction wait until its AW is accepted
- W_FIRST: AW waits until all W beats of the transaction are accepted
- INDEPENDENT: AW and W streams advance freely

W beats of different transactions are never interleaved (bursts are
contiguous on the data channel).
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional, Tuple, TYPE_CHECKING

from ..core.signals import ConsumerRequest, ConsumerResponse, Tag

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


class StreamOrder(Enum):
    """Relative order of a write's AW and W streams."""
    AW_FIRST = "aw_first"
    W_FIRST = "w_first"
    INDEPENDENT = "independent"


@dataclass
class WriteTransaction:
    """A write burst: one AW plus burst_length W beats."""
    addr: int
    id: int
    user: int
    beats: List[Tuple[int, int]]    # (data, strobe)

    # Tracking
    aw_accepted: bool = False
    w_beats_accepted: int = 0
    submit_cycle: int = 0
    complete_cycle: int = -1

    @property
    def tag(self) -> Tag:
        return Tag(self.id, self.user)

    @property
    def w_done(self) -> bool:
        return self.w_beats_accepted == len(self.beats)

    @property
    def completed(self) -> bool:
        return self.complete_cycle >= 0


@dataclass
class ReadTransaction:
    """A read burst request."""
    addr: int
    id: int
    user: int

    # Tracking
    data: List[int] = field(default_factory=list)
    submit_cycle: int = 0
    issue_cycle: int = -1
    complete_cycle: int = -1

    @property
    def tag(self) -> Tag:
        return Tag(self.id, self.user)

    @property
    def completed(self) -> bool:
        return self.complete_cycle >= 0


@dataclass
class DriverStats:
    aw_sent: int = 0
    w_sent: int = 0
    ar_sent: int = 0
    r_received: int = 0
    b_received: int = 0
    aw_stall_cycles: int = 0
    w_stall_cycles: int = 0


class ConsumerDriver:
    """
    Cache-side traffic driver.

    Args:
        config: Shared controller configuration.
        order: AW/W stream ordering policy.
        r_ready: Drive r_ready (may be toggled by tests).
        b_ready: Drive b_ready.
    """

    def __init__(
        self,
        config: "MemCtrlConfig",
        order: StreamOrder = StreamOrder.AW_FIRST,
        r_ready: bool = True,
        b_ready: bool = True,
    ):
        self.config = config
        self.order = order
        self.r_ready = r_ready
        self.b_ready = b_ready

        self._aw_queue: Deque[WriteTransaction] = deque()
        self._w_queue: Deque[WriteTransaction] = deque()
        self._ar_queue: Deque[ReadTransaction] = deque()

        # Outstanding responses, in order per tag / id
        self._awaiting_b: Dict[Tag, Deque[WriteTransaction]] = {}
        self._awaiting_r: Dict[Tag, Deque[ReadTransaction]] = {}

        self.completed_writes: List[WriteTransaction] = []
        self.completed_reads: List[ReadTransaction] = []
        self.unexpected_responses: int = 0

        self._last_request: Optional[ConsumerRequest] = None
        self.stats = DriverStats()

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, txn, cycle: int = 0) -> None:
        """Queue a WriteTransaction or ReadTransaction."""
        txn.submit_cycle = cycle
        if isinstance(txn, WriteTransaction):
            if len(txn.beats) != self.config.burst_length:
                raise ValueError(
                    f"write needs {self.config.burst_length} beats, got {len(txn.beats)}"
                )
            self._aw_queue.append(txn)
            self._w_queue.append(txn)
            self._awaiting_b.setdefault(txn.tag, deque()).append(txn)
        elif isinstance(txn, ReadTransaction):
            self._ar_queue.append(txn)
        else:
            raise TypeError(f"Unknown transaction type: {type(txn).__name__}")

    def submit_all(self, txns, cycle: int = 0) -> None:
        for txn in txns:
            self.submit(txn, cycle)

    @property
    def pending_requests(self) -> int:
        return len(self._aw_queue) + len(self._w_queue) + len(self._ar_queue)

    @property
    def outstanding(self) -> int:
        b = sum(len(q) for q in self._awaiting_b.values())
        r = sum(len(q) for q in self._awaiting_r.values())
        return b + r

    @property
    def is_idle(self) -> bool:
        return self.pending_requests == 0 and self.outstanding == 0

    # =========================================================================
    # Per-cycle interface
    # =========================================================================

    def _aw_candidate(self) -> Optional[WriteTransaction]:
        if not self._aw_queue:
            return None
        txn = self._aw_queue[0]
        if self.order == StreamOrder.W_FIRST and not txn.w_done:
            return None
        return txn

    def _w_candidate(self) -> Optional[WriteTransaction]:
        if not self._w_queue:
            return None
        txn = self._w_queue[0]
        if self.order == StreamOrder.AW_FIRST and not txn.aw_accepted:
            return None
        return txn

    def request(self) -> ConsumerRequest:
        """Signals presented to the controller this cycle."""
        aw = self._aw_candidate()
        w = self._w_candidate()
        ar = self._ar_queue[0] if self._ar_queue else None

        kwargs = dict(r_ready=self.r_ready, b_ready=self.b_ready)
        if aw is not None:
            kwargs.update(aw_valid=True, aw_id=aw.id, aw_addr=aw.addr, aw_user=aw.user)
        if w is not None:
            data, strobe = w.beats[w.w_beats_accepted]
            kwargs.update(
                w_valid=True, w_data=data, w_strb=strobe, w_id=w.id, w_user=w.user,
                w_last=w.w_beats_accepted == len(w.beats) - 1,
            )
        if ar is not None:
            kwargs.update(ar_valid=True, ar_addr=ar.addr, ar_id=ar.id, ar_user=ar.user)

        self._last_request = ConsumerRequest(**kwargs)
        return self._last_request

    def observe(self, response: ConsumerResponse, cycle: int = 0) -> None:
        """Complete this cycle's handshakes against the controller's response."""
        req = self._last_request
        if req is None:
            return
        self._last_request = None

        if req.aw_valid:
            if response.aw_ready:
                self._aw_queue.popleft().aw_accepted = True
                self.stats.aw_sent += 1
            else:
                self.stats.aw_stall_cycles += 1
        if req.w_valid:
            if response.w_ready:
                txn = self._w_queue[0]
                txn.w_beats_accepted += 1
                self.stats.w_sent += 1
                if txn.w_done:
                    self._w_queue.popleft()
            else:
                self.stats.w_stall_cycles += 1
        if req.ar_valid and response.ar_ready:
            txn = self._ar_queue.popleft()
            txn.issue_cycle = cycle
            self._awaiting_r.setdefault(txn.tag, deque()).append(txn)
            self.stats.ar_sent += 1

        if response.r_valid and req.r_ready:
            self._receive_r(response, cycle)
        if response.b_valid and req.b_ready:
            self._receive_b(response, cycle)

    def _receive_r(self, response: ConsumerResponse, cycle: int) -> None:
        self.stats.r_received += 1
        queue = self._awaiting_r.get(Tag(response.r_id, response.r_user))
        if not queue:
            self.unexpected_responses += 1
            return
        txn = queue[0]
        txn.data.append(response.r_data)
        if response.r_last:
            queue.popleft()
            txn.complete_cycle = cycle
            self.completed_reads.append(txn)

    def _receive_b(self, response: ConsumerResponse, cycle: int) -> None:
        self.stats.b_received += 1
        queue = self._awaiting_b.get(Tag(response.b_id, response.b_user))
        if not queue:
            self.unexpected_responses += 1
            return
        txn = queue.popleft()
        txn.complete_cycle = cycle
        self.completed_writes.append(txn)

    def __repr__(self) -> str:
        return (f"ConsumerDriver(pending={self.pending_requests}, "
                f"outstanding={self.outstanding})")
