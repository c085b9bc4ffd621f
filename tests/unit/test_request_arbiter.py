"""
RequestArbiter and ChannelDispatcher Unit Tests.

Tests for the request path covering:
- Read issue gated by target readiness
- Write-burst preemption of reads
- Burst-granular valid/last signaling
- Target-unit stall of an assembled burst
- Read/write exclusivity
- Routing onto exactly one channel line

Usage:
    pytest tests/unit/test_request_arbiter.py -v
"""

import pytest

from memctrl.config import MemCtrlConfig
from memctrl.core.address import AddressTranslationUnit, MemoryAddress
from memctrl.core.dispatcher import ChannelDispatcher
from memctrl.core.request_arbiter import ArbiterDecision, Grant, RequestArbiter
from memctrl.core.signals import Tag
from memctrl.core.write_assembler import WriteBeat, WriteRequestAssembler
from memctrl.errors import ProtocolViolation


# ==============================================================================
# Fixtures / Helpers
# ==============================================================================

ALL_READY = 0b1111
TAG_W = Tag(id=1, user=0)
TAG_R = Tag(id=5, user=1)


@pytest.fixture
def config() -> MemCtrlConfig:
    return MemCtrlConfig()


@pytest.fixture
def asm(config) -> WriteRequestAssembler:
    return WriteRequestAssembler(config)


@pytest.fixture
def arbiter(config) -> RequestArbiter:
    return RequestArbiter(config)


@pytest.fixture
def atu(config) -> AddressTranslationUnit:
    return AddressTranslationUnit(config)


@pytest.fixture
def dispatcher(config) -> ChannelDispatcher:
    return ChannelDispatcher(config)


def assemble(asm, tag=TAG_W, addr=0x1000, base=0x100):
    """Load one complete burst into the assembler."""
    cfg = asm.config
    address = MemoryAddress.from_flat(addr, cfg)
    asm.push_aw(address, tag, address.target_index(cfg))
    asm.tick()
    for beat in range(cfg.burst_length):
        asm.push_w(base + beat, 0xFF, tag, last=beat == cfg.burst_length - 1)
        asm.tick()


def cycle(arbiter, asm, read, aw_ready=ALL_READY, w_ready=ALL_READY):
    """One arbitration cycle, committed."""
    decision = arbiter.arbitrate(asm, read, aw_ready, w_ready, read_tag=TAG_R)
    arbiter.tick(decision)
    asm.tick()
    return decision


def make_beat(config, addr=0x8000_0000, first=True, last=False, beat=0):
    address = MemoryAddress.from_flat(addr, config)
    return WriteBeat(
        address=address, tag=TAG_W, target_index=address.target_index(config),
        data=0xAB, strobe=0xFF, beat=beat, first=first, last=last,
        aw_index=0, w_index=0,
    )


# ==============================================================================
# Reads
# ==============================================================================

class TestReadIssue:
    """Reads issue when no write owns the path."""

    def test_read_issued(self, arbiter, asm, atu):
        read = atu.translate(True, 0x8000_0000, False, 0, ALL_READY)
        decision = cycle(arbiter, asm, read)
        assert decision.grant == Grant.READ
        assert decision.valid
        assert decision.last
        assert decision.read_tag == TAG_R
        assert arbiter.stats.reads_issued == 1

    def test_read_blocked_by_target(self, arbiter, asm, atu):
        read = atu.translate(True, 0x8000_0000, False, 0, 0b1011)
        assert cycle(arbiter, asm, read).grant == Grant.IDLE

    def test_idle_without_requests(self, arbiter, asm, atu):
        read = atu.translate(False, 0, False, 0, ALL_READY)
        decision = cycle(arbiter, asm, read)
        assert decision.grant == Grant.IDLE
        assert not decision.valid

    def test_write_address_alone_not_issued(self, arbiter, asm, atu):
        """A translated write address is not a read."""
        write = atu.translate(False, 0, True, 0x1000, ALL_READY)
        assert cycle(arbiter, asm, write).grant == Grant.IDLE


# ==============================================================================
# Writes
# ==============================================================================

class TestWriteBurst:
    """Assembled bursts preempt reads and issue beat by beat."""

    def test_write_preempts_read(self, arbiter, asm, atu):
        assemble(asm)
        read = atu.translate(True, 0x8000_0000, False, 0, ALL_READY)
        assert arbiter.write_pending(asm)
        decision = cycle(arbiter, asm, read)
        assert decision.grant == Grant.WRITE
        assert decision.write_beat.first

    def test_valid_first_last_final(self, arbiter, asm, atu):
        """valid only on beat 1, last only on beat 8, no read in between."""
        assemble(asm, base=0x200)
        read = atu.translate(True, 0x8000_0000, False, 0, ALL_READY)
        decisions = [cycle(arbiter, asm, read) for _ in range(8)]

        assert all(d.grant == Grant.WRITE for d in decisions)
        assert [d.valid for d in decisions] == [True] + [False] * 7
        assert [d.last for d in decisions] == [False] * 7 + [True]
        assert [d.write_beat.data for d in decisions] == [0x200 + i for i in range(8)]
        assert not arbiter.write_mode

        # Path released: the waiting read goes next
        assert cycle(arbiter, asm, read).grant == Grant.READ
        assert arbiter.stats.bursts_started == 1
        assert arbiter.stats.bursts_completed == 1
        assert arbiter.stats.write_beats == 8

    def test_write_mode_mid_burst(self, arbiter, asm, atu):
        assemble(asm)
        read = atu.translate(False, 0, False, 0, ALL_READY)
        cycle(arbiter, asm, read)
        assert arbiter.write_mode
        assert arbiter.write_pending(asm)

    def test_target_not_ready_stalls(self, arbiter, asm, atu):
        """Burst to target 0 waits; reads stay blocked meanwhile."""
        assemble(asm, addr=0x1000)
        read = atu.translate(True, 0x8000_0000, False, 0, ALL_READY)

        assert cycle(arbiter, asm, read, aw_ready=0b1110).grant == Grant.IDLE
        assert cycle(arbiter, asm, read, w_ready=0b1110).grant == Grant.IDLE
        assert arbiter.stats.write_stall_cycles == 2
        assert asm.assembly_ready

        decision = cycle(arbiter, asm, read)
        assert decision.grant == Grant.WRITE
        assert decision.write_beat.first

    def test_mid_burst_ignores_readiness(self, arbiter, asm, atu):
        """Once started, a burst is not interrupted."""
        assemble(asm)
        read = atu.translate(False, 0, False, 0, ALL_READY)
        cycle(arbiter, asm, read)
        decision = cycle(arbiter, asm, read, aw_ready=0, w_ready=0)
        assert decision.grant == Grant.WRITE
        assert decision.write_beat.beat == 1


# ==============================================================================
# Exclusivity
# ==============================================================================

class TestExclusivity:
    """Read and write never issue in the same cycle."""

    def test_both_granted_is_violation(self, arbiter, atu, config):
        read = atu.translate(True, 0x8000_0000, False, 0, ALL_READY)
        decision = ArbiterDecision(grant=Grant.WRITE, write_beat=make_beat(config), read=read)
        with pytest.raises(ProtocolViolation, match="same cycle"):
            arbiter.tick(decision)

    def test_reset(self, arbiter, asm, atu):
        assemble(asm)
        cycle(arbiter, asm, atu.translate(False, 0, False, 0, ALL_READY))
        arbiter.reset()
        assert not arbiter.write_mode
        assert arbiter.stats.write_beats == 0


# ==============================================================================
# Dispatcher
# ==============================================================================

class TestDispatcher:
    """Route by the channel field; pass readiness through."""

    def test_read_routed_to_channel(self, dispatcher, atu):
        read = atu.translate(True, 0x8000_0000, False, 0, ALL_READY)
        decision = ArbiterDecision(grant=Grant.READ, read=read, read_tag=TAG_R)
        lines = dispatcher.dispatch(decision, [True, False], [False, True])

        assert lines[0].is_idle
        assert lines[1].is_read
        assert lines[1].valid == 0b01               # rank 0
        assert (lines[1].id, lines[1].user) == TAG_R
        assert lines[1].last
        assert [l.read_ready for l in lines] == [True, False]
        assert [l.ack_ready for l in lines] == [False, True]

    def test_rank_vector(self, dispatcher, atu):
        read = atu.translate(True, 0xC000_0000, False, 0, ALL_READY)
        lines = dispatcher.dispatch(
            ArbiterDecision(grant=Grant.READ, read=read), [False, False], [False, False]
        )
        assert lines[1].valid == 0b10               # rank 1

    def test_write_first_beat(self, dispatcher, config):
        beat = make_beat(config, addr=0x1000, first=True)
        lines = dispatcher.dispatch(
            ArbiterDecision(grant=Grant.WRITE, write_beat=beat), [False, False], [False, False]
        )
        assert lines[0].is_write
        assert lines[0].valid == 0b01
        assert lines[0].beat
        assert lines[0].data == 0xAB
        assert lines[1].is_idle

    def test_write_data_beat_not_valid(self, dispatcher, config):
        beat = make_beat(config, addr=0x1000, first=False, last=True, beat=7)
        lines = dispatcher.dispatch(
            ArbiterDecision(grant=Grant.WRITE, write_beat=beat), [False, False], [False, False]
        )
        assert lines[0].valid == 0
        assert lines[0].beat
        assert lines[0].last
        assert not lines[0].is_idle

    @pytest.mark.parametrize("addr,channel", [(0x0000_1000, 0), (0x8000_1000, 1)])
    def test_exactly_one_line(self, dispatcher, atu, addr, channel):
        read = atu.translate(True, addr, False, 0, ALL_READY)
        lines = dispatcher.dispatch(
            ArbiterDecision(grant=Grant.READ, read=read), [False, False], [False, False]
        )
        active = [ch for ch, line in enumerate(lines) if not line.is_idle]
        assert active == [channel]

    def test_idle_decision(self, dispatcher):
        lines = dispatcher.dispatch(ArbiterDecision(), [True, True], [True, False])
        assert all(line.is_idle for line in lines)
        assert [l.read_ready for l in lines] == [True, True]

    def test_readiness_length_checked(self, dispatcher):
        with pytest.raises(ProtocolViolation):
            dispatcher.dispatch(ArbiterDecision(), [True], [True])

    def test_four_channels(self):
        cfg = MemCtrlConfig(channel_bits=2)
        atu = AddressTranslationUnit(cfg)
        dispatcher = ChannelDispatcher(cfg)
        addr = MemoryAddress(channel=2, rank=1).to_flat(cfg)
        read = atu.translate(True, addr, False, 0, (1 << cfg.num_target_units) - 1)
        lines = dispatcher.dispatch(
            ArbiterDecision(grant=Grant.READ, read=read), [False] * 4, [False] * 4
        )
        assert [line.is_idle for line in lines] == [True, True, False, True]
        assert lines[2].valid == 0b10
