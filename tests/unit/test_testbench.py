"""
Verification Infrastructure Unit Tests.

Tests for the testbench helpers covering:
- Lfsr period and reproducibility
- LfsrTrafficGenerator transaction shape
- ChannelBackendModel latency, occupancy, strobes and acks
- ConsumerDriver stream ordering
- Scoreboard checking and overlap skipping

Usage:
    pytest tests/unit/test_testbench.py -v
"""

import pytest

from memctrl.config import MemCtrlConfig
from memctrl.core.address import MemoryAddress
from memctrl.core.signals import ChannelRequest, ConsumerResponse
from memctrl.errors import ProtocolViolation
from memctrl.testbench import (
    ChannelBackendModel,
    ConsumerDriver,
    Lfsr,
    LfsrTrafficGenerator,
    ReadTransaction,
    Scoreboard,
    StreamOrder,
    WriteTransaction,
    apply_strobe,
)


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def config() -> MemCtrlConfig:
    return MemCtrlConfig(burst_length=4)


@pytest.fixture
def backend(config) -> ChannelBackendModel:
    return ChannelBackendModel(0, config, read_latency=3, write_ack_latency=2, read_buffer_depth=2)


def read_line(config, addr, tag_id=1):
    address = MemoryAddress.from_flat(addr, config)
    return ChannelRequest(address=address, id=tag_id, valid=1 << address.rank, last=True)


def write_lines(config, addr, beats, tag_id=1):
    address = MemoryAddress.from_flat(addr, config)
    lines = []
    for i, (data, strobe) in enumerate(beats):
        lines.append(ChannelRequest(
            address=address, id=tag_id, write=True,
            valid=(1 << address.rank) if i == 0 else 0,
            data=data, strobe=strobe, last=i == len(beats) - 1, beat=True,
        ))
    return lines


# ==============================================================================
# LFSR
# ==============================================================================

class TestLfsr:

    def test_maximal_period_8bit(self):
        lfsr = Lfsr(width=8, seed=1)
        states = [lfsr.step() for _ in range(255)]
        assert len(set(states)) == 255
        assert states[-1] == 1

    def test_reproducible(self):
        a = Lfsr(seed=0x1234)
        b = Lfsr(seed=0x1234)
        assert [a.next_bits(16) for _ in range(10)] == [b.next_bits(16) for _ in range(10)]

    def test_zero_seed_rejected(self):
        with pytest.raises(ValueError):
            Lfsr(width=8, seed=0x100)

    def test_unknown_width_needs_taps(self):
        with pytest.raises(ValueError):
            Lfsr(width=12)
        assert Lfsr(width=4, taps=0b1100).step() != 0


class TestTrafficGenerator:

    def test_transaction_shape(self, config):
        txns = LfsrTrafficGenerator(config, seed=5).generate(50)
        assert any(isinstance(t, WriteTransaction) for t in txns)
        assert any(isinstance(t, ReadTransaction) for t in txns)
        for txn in txns:
            assert txn.addr & ((1 << config.column_bits) - 1) == 0
            assert 0 <= txn.id < 1 << config.id_width
            assert 0 <= txn.user < 1 << config.user_width
            if isinstance(txn, WriteTransaction):
                assert len(txn.beats) == config.burst_length
                assert all(0 <= s < 1 << config.strobe_width for _, s in txn.beats)

    def test_ids_cycle(self, config):
        txns = LfsrTrafficGenerator(config).generate(20)
        assert [t.id for t in txns] == [i % 16 for i in range(20)]

    def test_same_seed_same_traffic(self, config):
        a = LfsrTrafficGenerator(config, seed=9).generate(10)
        b = LfsrTrafficGenerator(config, seed=9).generate(10)
        assert a == b


# ==============================================================================
# Backend Model
# ==============================================================================

class TestBackend:

    def test_apply_strobe(self):
        assert apply_strobe(0x1111, 0xABCD, 0b01) == 0x11CD
        assert apply_strobe(0x1111, 0xABCD, 0b10) == 0xAB11
        assert apply_strobe(0x1111, 0xABCD, 0) == 0x1111

    def test_read_latency_and_burst(self, backend, config):
        backend.memory[(0x1000, 2)] = 0x77
        backend.tick(read_line(config, 0x1000, tag_id=5))
        assert backend.occupancy == 1

        idle = ChannelRequest(read_ready=True)
        waited = 0
        while not backend.outputs().r_valid:
            backend.tick(idle)
            waited += 1
        assert waited == 3

        beats = []
        while True:
            out = backend.outputs()
            beats.append(out.r_data)
            assert out.r_id == 5
            backend.tick(idle)
            if out.r_last:
                break
        assert beats == [0, 0, 0x77, 0]
        assert backend.occupancy == 0

    def test_read_buffer_full(self, backend, config):
        backend.tick(read_line(config, 0x1000))
        backend.tick(read_line(config, 0x2000))
        assert backend.outputs().ar_ready == 0

    def test_write_commit_and_ack(self, backend, config):
        beats = [(0x10 + i, 0xFF) for i in range(4)]
        for line in write_lines(config, 0x3000, beats, tag_id=7):
            assert not backend.outputs().b_valid
            backend.tick(line)
        assert backend.memory[(0x3000, 3)] == 0x13

        idle = ChannelRequest()
        backend.tick(idle)
        backend.tick(idle)
        out = backend.outputs()
        assert out.b_valid
        assert out.b_id == 7

        backend.tick(ChannelRequest(ack_ready=True))
        assert not backend.outputs().b_valid
        assert backend.stats.acks_sent == 1

    def test_aw_ready_low_mid_burst(self, backend, config):
        lines = write_lines(config, 0x3000, [(0, 0xFF)] * 4)
        backend.tick(lines[0])
        assert backend.outputs().aw_ready == 0

    def test_read_to_unready_rank(self, backend, config):
        backend.set_ready(ar=0b10)
        with pytest.raises(ProtocolViolation, match="not ready"):
            backend.tick(read_line(config, 0x1000))

    def test_latency_validated(self, config):
        with pytest.raises(ValueError):
            ChannelBackendModel(0, config, read_latency=0)


# ==============================================================================
# Driver
# ==============================================================================

class TestDriver:

    def _write(self, config, tag_id=1):
        return WriteTransaction(addr=0x1000, id=tag_id, user=0,
                                beats=[(i, 0xFF) for i in range(config.burst_length)])

    def test_aw_first_holds_data(self, config):
        driver = ConsumerDriver(config, order=StreamOrder.AW_FIRST)
        driver.submit(self._write(config))
        req = driver.request()
        assert req.aw_valid
        assert not req.w_valid
        driver.observe(ConsumerResponse(aw_ready=True))
        assert driver.request().w_valid

    def test_w_first_holds_address(self, config):
        driver = ConsumerDriver(config, order=StreamOrder.W_FIRST)
        driver.submit(self._write(config))
        for beat in range(config.burst_length):
            req = driver.request()
            assert not req.aw_valid
            assert req.w_valid
            assert req.w_last == (beat == config.burst_length - 1)
            driver.observe(ConsumerResponse(w_ready=True))
        assert driver.request().aw_valid

    def test_independent_streams(self, config):
        driver = ConsumerDriver(config, order=StreamOrder.INDEPENDENT)
        driver.submit(self._write(config))
        req = driver.request()
        assert req.aw_valid and req.w_valid

    def test_stall_keeps_beat(self, config):
        driver = ConsumerDriver(config, order=StreamOrder.W_FIRST)
        driver.submit(self._write(config))
        driver.request()
        driver.observe(ConsumerResponse(w_ready=False))
        assert driver.request().w_data == 0
        assert driver.stats.w_stall_cycles == 1

    def test_write_completes_on_ack(self, config):
        driver = ConsumerDriver(config, order=StreamOrder.INDEPENDENT)
        txn = self._write(config, tag_id=3)
        driver.submit(txn)
        driver.request()
        driver.observe(ConsumerResponse(aw_ready=True, w_ready=True))
        for _ in range(config.burst_length - 1):
            driver.request()
            driver.observe(ConsumerResponse(w_ready=True))
        assert driver.pending_requests == 0
        assert not driver.is_idle

        driver.request()
        driver.observe(ConsumerResponse(b_valid=True, b_id=3), cycle=12)
        assert txn.completed
        assert txn.complete_cycle == 12
        assert driver.is_idle

    def test_read_collects_beats(self, config):
        driver = ConsumerDriver(config)
        txn = ReadTransaction(addr=0x2000, id=4, user=1)
        driver.submit(txn)
        driver.request()
        driver.observe(ConsumerResponse(ar_ready=True), cycle=0)
        for beat in range(config.burst_length):
            driver.request()
            driver.observe(ConsumerResponse(
                r_valid=True, r_id=4, r_user=1, r_data=beat,
                r_last=beat == config.burst_length - 1,
            ), cycle=beat + 1)
        assert txn.data == list(range(config.burst_length))
        assert driver.completed_reads == [txn]

    def test_unexpected_response(self, config):
        driver = ConsumerDriver(config)
        driver.request()
        driver.observe(ConsumerResponse(b_valid=True, b_id=2))
        assert driver.unexpected_responses == 1

    def test_wrong_beat_count(self, config):
        driver = ConsumerDriver(config)
        with pytest.raises(ValueError):
            driver.submit(WriteTransaction(addr=0, id=0, user=0, beats=[(0, 0xFF)]))


# ==============================================================================
# Scoreboard
# ==============================================================================

class TestScoreboard:

    def _done_write(self, config, addr, data, strobe=0xFF, submit=0, complete=5):
        txn = WriteTransaction(addr=addr, id=1, user=0,
                               beats=[(data, strobe)] * config.burst_length,
                               submit_cycle=submit, complete_cycle=complete)
        return txn

    def _done_read(self, addr, data, issue=10, complete=20):
        return ReadTransaction(addr=addr, id=2, user=0, data=list(data),
                               issue_cycle=issue, complete_cycle=complete)

    def test_matching_read(self, config):
        sb = Scoreboard(config)
        txn = self._done_write(config, 0x1000, 0xAB)
        sb.write_submitted(txn)
        sb.expect_write(txn)
        assert sb.check_read(self._done_read(0x1000, [0xAB] * 4))
        assert sb.report.reads_checked == 1
        assert sb.report.passed

    def test_mismatch_recorded(self, config):
        sb = Scoreboard(config)
        txn = self._done_write(config, 0x1000, 0xAB)
        sb.write_submitted(txn)
        sb.expect_write(txn)
        assert not sb.check_read(self._done_read(0x1000, [0xAB, 0xAB, 0x00, 0xAB]))
        assert len(sb.mismatches) == 1
        assert sb.mismatches[0].beat == 2
        assert not sb.report.passed

    def test_overlapping_write_skipped(self, config):
        sb = Scoreboard(config)
        txn = self._done_write(config, 0x1000, 0xAB, submit=12, complete=30)
        sb.write_submitted(txn)
        sb.expect_write(txn)
        assert sb.check_read(self._done_read(0x1000, [0] * 4))
        assert sb.report.reads_skipped == 1
        assert sb.report.reads_checked == 0

    def test_strobe_merge(self, config):
        sb = Scoreboard(config)
        first = self._done_write(config, 0x1000, 0x1122)
        second = self._done_write(config, 0x1000, 0xFFFF, strobe=0b01)
        for txn in (first, second):
            sb.write_submitted(txn)
            sb.expect_write(txn)
        assert sb.check_read(self._done_read(0x1000, [0x11FF] * 4))

    def test_short_read_fails(self, config):
        sb = Scoreboard(config)
        assert not sb.check_read(self._done_read(0x1000, [0, 0]))
        assert not sb.report.passed
