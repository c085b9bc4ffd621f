"""
Memory Controller request-handling core.

Data flow per cycle:

    ConsumerRequest -> AddressTranslationUnit -> WriteRequestAssembler (writes)
                    -> RequestArbiter -> ChannelDispatcher -> channel backends
    channel backends -> ChannelResponseArbiter -> ConsumerResponse

Execution model: one synchronous tick per step(). Every decision in a step
is computed from pre-tick state; all component state commits at the end of
the step, so components never observe each other's same-cycle updates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, TYPE_CHECKING

from ..common.bits import concat_vectors
from ..errors import protocol_check
from .address import AddressTranslationUnit, TranslationResult
from .dispatcher import ChannelDispatcher
from .request_arbiter import ArbiterDecision, RequestArbiter
from .response_arbiter import ChannelResponseArbiter
from .signals import (
    ChannelRequest, ChannelResponse, ConsumerRequest, ConsumerResponse, Tag,
)
from .write_assembler import WriteRequestAssembler

if TYPE_CHECKING:
    from ..config import MemCtrlConfig


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControllerOutput:
    """Everything the controller drives in one cycle."""
    consumer: ConsumerResponse
    channels: List[ChannelRequest]
    decision: ArbiterDecision
    translation: TranslationResult

    @property
    def active_channel(self) -> Optional[int]:
        """Channel line carrying a request this cycle, if any."""
        for ch, line in enumerate(self.channels):
            if not line.is_idle:
                return ch
        return None


class MemoryController:
    """
    Cycle-accurate request-handling core.

    Args:
        config: Shared controller configuration.
    """

    def __init__(self, config: "MemCtrlConfig"):
        self.config = config
        self.atu = AddressTranslationUnit(config)
        self.assembler = WriteRequestAssembler(config)
        self.arbiter = RequestArbiter(config)
        self.dispatcher = ChannelDispatcher(config)
        self.response_arbiter = ChannelResponseArbiter(config)
        self.cycle = 0

    def reset(self) -> None:
        """Synchronous reset of every component."""
        self.assembler.reset()
        self.arbiter.reset()
        self.response_arbiter.reset()
        self.cycle = 0
        logger.debug("Controller reset")

    def _ready_vector(self, responses: Sequence[ChannelResponse], name: str) -> int:
        """Flat per-target-unit vector out of per-channel rank vectors."""
        return concat_vectors(
            (getattr(rsp, name) for rsp in responses), self.config.ranks_per_channel
        )

    def step(
        self,
        request: ConsumerRequest,
        responses: Sequence[ChannelResponse],
    ) -> ControllerOutput:
        """
        Advance one clock cycle.

        Args:
            request: Consumer-side signals for this cycle.
            responses: Per-channel backend signals for this cycle.

        Returns:
            ControllerOutput with the consumer response (including ready
            signals, which the consumer's valid/ready handshake used this
            cycle) and one request line per channel.
        """
        cfg = self.config
        protocol_check(cfg, len(responses) == cfg.num_channels,
                       f"expected {cfg.num_channels} channel responses, got {len(responses)}")
        request.validate(cfg)
        for rsp in responses:
            rsp.validate(cfg)

        ar_ready_vec = self._ready_vector(responses, "ar_ready")
        aw_ready_vec = self._ready_vector(responses, "aw_ready")
        w_ready_vec = self._ready_vector(responses, "w_ready")

        # --- Request path (pre-tick state) ---
        translation = self.atu.translate(
            read_valid=request.ar_valid,
            read_addr=request.ar_addr,
            write_valid=request.aw_valid,
            write_addr=request.aw_addr,
            ready_vector=ar_ready_vec if request.ar_valid else aw_ready_vec,
        )

        # Writes own the request path while a burst is assembled or mid-issue
        write_pending = self.arbiter.write_pending(self.assembler)
        ar_ready = not write_pending and translation.is_read and translation.target_ready
        # The translation unit serves the read address when both are valid
        aw_ready = self.assembler.aw_ready and not request.ar_valid
        w_ready = self.assembler.w_ready

        decision = self.arbiter.arbitrate(
            self.assembler,
            translation,
            aw_ready_vec,
            w_ready_vec,
            read_tag=Tag(request.ar_id, request.ar_user),
        )
        protocol_check(cfg, not decision.is_read or ar_ready,
                       "read issued without ar_ready")

        if request.aw_valid and aw_ready:
            self.assembler.push_aw(
                translation.address, request.aw_tag, translation.target_index
            )
        if request.w_valid and w_ready:
            self.assembler.push_w(request.w_data, request.w_strb, request.w_tag, request.w_last)

        # --- Response path (pre-tick state) ---
        read_ready = self.response_arbiter.read_ready_mask(request.r_ready)
        ack_ready = self.response_arbiter.ack_ready_mask(responses, request.b_ready)
        consumer = replace(
            self.response_arbiter.select(responses),
            aw_ready=aw_ready,
            ar_ready=ar_ready,
            w_ready=w_ready,
        )
        channels = self.dispatcher.dispatch(decision, read_ready, ack_ready)
        protocol_check(cfg, sum(1 for line in channels if not line.is_idle) <= 1,
                       "more than one channel line carries a request")

        # --- Commit ---
        self.arbiter.tick(decision)
        self.assembler.tick()
        self.response_arbiter.tick(responses, request.r_ready, request.b_ready)
        self.cycle += 1

        return ControllerOutput(
            consumer=consumer,
            channels=channels,
            decision=decision,
            translation=translation,
        )

    def __repr__(self) -> str:
        return (f"MemoryController(cycle={self.cycle}, {self.assembler!r}, "
                f"{self.response_arbiter!r})")
