"""
Verification infrastructure.

- ChannelBackendModel: black-box channel backend (latency, occupancy, acks)
- ConsumerDriver: cache-side AW/W/AR driver with R/B tracking
- Lfsr / LfsrTrafficGenerator: reproducible pseudo-random traffic
- Scoreboard: expected-image read checking
- MemoryControllerSystem: closed-loop harness wiring all of the above
"""

from .backend import ChannelBackendModel, BackendStats, apply_strobe
from .driver import (
    ConsumerDriver,
    DriverStats,
    ReadTransaction,
    StreamOrder,
    WriteTransaction,
)
from .lfsr import Lfsr, LfsrTrafficGenerator, TrafficMix
from .scoreboard import Mismatch, Scoreboard, ScoreboardReport
from .system import MemoryControllerSystem

__all__ = [
    "ChannelBackendModel",
    "BackendStats",
    "apply_strobe",
    "ConsumerDriver",
    "DriverStats",
    "ReadTransaction",
    "StreamOrder",
    "WriteTransaction",
    "Lfsr",
    "LfsrTrafficGenerator",
    "TrafficMix",
    "Mismatch",
    "Scoreboard",
    "ScoreboardReport",
    "MemoryControllerSystem",
]
