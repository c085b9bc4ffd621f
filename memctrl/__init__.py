"""
Memory Controller Behavior Model.

Cycle-accurate Python model of the request-handling core of a
multi-channel memory controller:

- AddressTranslationUnit: flat address -> DRAM coordinates + target unit
- WriteRequestAssembler: AW/W reassembly into complete bursts
- RequestArbiter: one request per cycle (write bursts preempt reads)
- ChannelDispatcher: route the active request to its channel backend
- ChannelResponseArbiter: fair response multiplexing across channels
"""

from .config import MemCtrlConfig
from .errors import ProtocolViolation
from .core.controller import MemoryController, ControllerOutput

__all__ = [
    "MemCtrlConfig",
    "ProtocolViolation",
    "MemoryController",
    "ControllerOutput",
]
