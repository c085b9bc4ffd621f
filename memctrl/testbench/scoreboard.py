"""
Read-data scoreboard.

Keeps the expected memory image built from acknowledged writes and checks
every completed read burst against it.

A read is only checkable when no write to the same burst address was in
flight at any point of the read's lifetime; otherwise the returned data
legitimately depends on issue order and the read is counted as skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, TYPE_CHECKING

from .backend import apply_strobe
from .driver import ReadTransaction, WriteTransaction

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


logger = logging.getLogger(__name__)


@dataclass
class Mismatch:
    addr: int
    id: int
    beat: int
    expected: int
    actual: int


@dataclass
class ScoreboardReport:
    writes: int = 0
    reads_checked: int = 0
    reads_skipped: int = 0
    short_reads: int = 0
    mismatches: List[Mismatch] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.mismatches and self.short_reads == 0

    def __str__(self) -> str:
        lines = [
            "=" * 50,
            "Scoreboard",
            "=" * 50,
            f"Writes retired:   {self.writes}",
            f"Reads checked:    {self.reads_checked}",
            f"Reads skipped:    {self.reads_skipped}",
            f"Short reads:      {self.short_reads}",
            f"Mismatches:       {len(self.mismatches)}",
            f"Result:           {'PASS' if self.passed else 'FAIL'}",
            "=" * 50,
        ]
        return "\n".join(lines)


class Scoreboard:
    """Expected-image checker for read responses."""

    def __init__(self, config: "MemCtrlConfig"):
        self.config = config
        self.image: Dict[Tuple[int, int], int] = {}
        # Write activity windows per burst address: [submit, complete]
        self._windows: Dict[int, List[WriteTransaction]] = {}
        self.report = ScoreboardReport()

    def write_submitted(self, txn: WriteTransaction) -> None:
        self._windows.setdefault(txn.addr, []).append(txn)

    def expect_write(self, txn: WriteTransaction) -> None:
        """Fold an acknowledged write into the expected image."""
        for beat, (data, strobe) in enumerate(txn.beats):
            old = self.image.get((txn.addr, beat), 0)
            self.image[(txn.addr, beat)] = apply_strobe(old, data, strobe)
        self.report.writes += 1

    def _overlaps_write(self, txn: ReadTransaction) -> bool:
        for write in self._windows.get(txn.addr, []):
            if not write.completed:
                return True
            if write.submit_cycle <= txn.complete_cycle and write.complete_cycle >= txn.issue_cycle:
                return True
        return False

    def check_read(self, txn: ReadTransaction) -> bool:
        """
        Compare a completed read against the expected image.

        Returns:
            False if any beat mismatched, True otherwise (including skipped reads).
        """
        if self._overlaps_write(txn):
            self.report.reads_skipped += 1
            return True
        self.report.reads_checked += 1

        ok = len(txn.data) == self.config.burst_length
        if not ok:
            self.report.short_reads += 1
            logger.warning("Read id=%d addr=%#x returned %d beats", txn.id, txn.addr, len(txn.data))
        for beat, actual in enumerate(txn.data):
            expected = self.image.get((txn.addr, beat), 0)
            if actual != expected:
                ok = False
                self.report.mismatches.append(
                    Mismatch(addr=txn.addr, id=txn.id, beat=beat, expected=expected, actual=actual)
                )
                logger.warning("Read mismatch addr=%#x beat=%d expected=%#x actual=%#x",
                               txn.addr, beat, expected, actual)
        return ok

    @property
    def mismatches(self) -> List[Mismatch]:
        return self.report.mismatches
