"""
Registered dual-port buffer.

One write port and one read port with externally supplied addresses:
- Write: staged during the cycle, committed on tick() (registered).
- Read: returns committed contents, i.e. the value before this cycle's write.

Touching the same address from both ports in one cycle is a protocol
violation, as is a second write in the same cycle.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple, TYPE_CHECKING

from ..errors import protocol_check

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


class DualPortBuffer:
    """
    Fixed-depth memory with one registered write port and one read port.

    Args:
        depth: Number of entries.
        config: Controller configuration (protocol checking).
        name: Buffer name for error messages.
        fill: Value of an unwritten entry.
    """

    def __init__(
        self,
        depth: int,
        config: "MemCtrlConfig",
        name: str = "dpbuf",
        fill: Any = None,
    ):
        if depth < 1:
            raise ValueError(f"depth must be >= 1, got {depth}")
        self.depth = depth
        self.config = config
        self.name = name
        self._fill = fill
        self._mem: List[Any] = [fill] * depth

        # Per-cycle port activity
        self._staged: Optional[Tuple[int, Any]] = None
        self._read_addrs: List[int] = []

    def _check_addr(self, addr: int) -> None:
        protocol_check(
            self.config, 0 <= addr < self.depth,
            f"{self.name}: address {addr} out of range [0, {self.depth})"
        )

    def write(self, addr: int, value: Any) -> None:
        """Stage a write for this cycle (visible after tick())."""
        self._check_addr(addr)
        protocol_check(
            self.config, self._staged is None,
            f"{self.name}: second write in one cycle (addr {addr})"
        )
        protocol_check(
            self.config, addr not in self._read_addrs,
            f"{self.name}: read and write ports both touch addr {addr} in one cycle"
        )
        self._staged = (addr, value)

    def read(self, addr: int) -> Any:
        """Read committed contents at addr."""
        self._check_addr(addr)
        protocol_check(
            self.config, self._staged is None or self._staged[0] != addr,
            f"{self.name}: read and write ports both touch addr {addr} in one cycle"
        )
        self._read_addrs.append(addr)
        return self._mem[addr]

    def peek(self, addr: int) -> Any:
        """Inspect committed contents without using the read port."""
        return self._mem[addr]

    def tick(self) -> None:
        """Commit the staged write and open a new cycle."""
        if self._staged is not None:
            addr, value = self._staged
            self._mem[addr] = value
        self._staged = None
        self._read_addrs = []

    def reset(self) -> None:
        self._mem = [self._fill] * self.depth
        self._staged = None
        self._read_addrs = []

    def __repr__(self) -> str:
        return f"DualPortBuffer({self.name}, depth={self.depth})"
