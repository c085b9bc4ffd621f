"""
Controller core components.

- signals: consumer- and backend-facing signal bundles
- address: MemoryAddress and AddressTranslationUnit
- write_assembler: WriteRequestAssembler (AW/W tag matching)
- request_arbiter: RequestArbiter (write preemption, read issue)
- dispatcher: ChannelDispatcher (route by channel field)
- response_arbiter: ChannelResponseArbiter (fair response multiplexing)
- controller: MemoryController (per-cycle wiring of all of the above)
"""

from .signals import (
    Tag,
    ConsumerRequest,
    ConsumerResponse,
    ChannelRequest,
    ChannelResponse,
    IDLE_CHANNEL_RESPONSE,
)
from .address import MemoryAddress, TranslationResult, AddressTranslationUnit
from .write_assembler import (
    WriteAddrEntry,
    WriteDataEntry,
    WriteBeat,
    WriteRequestAssembler,
)
from .request_arbiter import Grant, ArbiterDecision, ArbiterStats, RequestArbiter
from .dispatcher import ChannelDispatcher
from .response_arbiter import (
    ArbitrationState,
    ResponseArbiterStats,
    ChannelResponseArbiter,
)
from .controller import ControllerOutput, MemoryController

__all__ = [
    "Tag",
    "ConsumerRequest",
    "ConsumerResponse",
    "ChannelRequest",
    "ChannelResponse",
    "IDLE_CHANNEL_RESPONSE",
    "MemoryAddress",
    "TranslationResult",
    "AddressTranslationUnit",
    "WriteAddrEntry",
    "WriteDataEntry",
    "WriteBeat",
    "WriteRequestAssembler",
    "Grant",
    "ArbiterDecision",
    "ArbiterStats",
    "RequestArbiter",
    "ChannelDispatcher",
    "ArbitrationState",
    "ResponseArbiterStats",
    "ChannelResponseArbiter",
    "ControllerOutput",
    "MemoryController",
]
