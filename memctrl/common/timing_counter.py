"""
Generic timing down-counter.

Gates any timing-constrained transition: the owner loads a count with
setup(), the counter decrements once per tick and raises a one-cycle
``expired`` pulse on the 1 -> 0 transition.

    Idle (count == 0) --setup(n)--> Counting (count > 0)
    Counting --tick, count 1->0--> Expired (pulse, one cycle) --tick--> Idle

Loading a new value in the same cycle the counter naturally expires is a
caller-discipline violation; the counter does not resolve it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from ..errors import protocol_check
from .bits import fits

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


@dataclass(frozen=True)
class TimingCounterState:
    """Snapshot of a timing counter."""
    remaining: int = 0
    expired: bool = False


class TimingCounter:
    """
    Down-counter with a one-cycle expiry pulse.

    Args:
        config: Controller configuration (protocol checking).
        width: Counter width in bits; loaded values must fit.
        name: Counter name for error messages.
    """

    def __init__(self, config: "MemCtrlConfig", width: int = 8, name: str = "timer"):
        self.config = config
        self.width = width
        self.name = name
        self._remaining = 0
        self._expired = False
        self._load: Optional[int] = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def expired(self) -> bool:
        """True only during the cycle following the 1 -> 0 transition."""
        return self._expired

    @property
    def is_idle(self) -> bool:
        return self._remaining == 0

    @property
    def is_counting(self) -> bool:
        return self._remaining > 0

    @property
    def state(self) -> TimingCounterState:
        return TimingCounterState(remaining=self._remaining, expired=self._expired)

    def setup(self, value: int) -> None:
        """
        Load a new count, effective at the next tick.

        Raises:
            ProtocolViolation: If the counter expires this cycle (count == 1),
                if a load is already staged, or if value does not fit.
        """
        protocol_check(
            self.config, fits(value, self.width),
            f"{self.name}: setup value {value} does not fit {self.width} bits"
        )
        protocol_check(
            self.config, self._remaining != 1,
            f"{self.name}: setup asserted in the cycle the counter expires"
        )
        protocol_check(
            self.config, self._load is None,
            f"{self.name}: setup asserted twice in one cycle"
        )
        self._load = value

    def tick(self) -> None:
        if self._load is not None:
            self._remaining = self._load
            self._expired = False
            self._load = None
        elif self._remaining > 0:
            self._remaining -= 1
            self._expired = self._remaining == 0
        else:
            self._expired = False

    def reset(self) -> None:
        """Return to Idle immediately, clearing any expiry pulse."""
        self._remaining = 0
        self._expired = False
        self._load = None

    def __repr__(self) -> str:
        return f"TimingCounter({self.name}, remaining={self._remaining}, expired={self._expired})"
