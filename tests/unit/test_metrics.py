"""
Metrics Unit Tests.

Tests for controller metrics covering:
- Jain's fairness index and status thresholds
- ControllerStats aggregation from a finished run
- MetricsCollector series accessors

Usage:
    pytest tests/unit/test_metrics.py -v
"""

import numpy as np
import pytest

from memctrl.config import MemCtrlConfig
from memctrl.metrics import (
    ControllerStats,
    FairnessStatus,
    MetricsCollector,
    calculate_fairness,
    calculate_fairness_status,
)
from memctrl.testbench import LfsrTrafficGenerator, MemoryControllerSystem


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture(scope="module")
def finished_system() -> MemoryControllerSystem:
    """A short random run, drained."""
    config = MemCtrlConfig()
    system = MemoryControllerSystem(config)
    system.submit_all(LfsrTrafficGenerator(config, seed=11).generate(40))
    assert system.run_until_idle(10000)
    return system


# ==============================================================================
# Fairness
# ==============================================================================

class TestFairness:
    """Jain's index over per-channel grants."""

    def test_even_split(self):
        report = calculate_fairness([10, 10])
        assert report.index == pytest.approx(1.0)
        assert report.status == FairnessStatus.FAIR
        assert report.is_fair
        assert report.shares == [0.5, 0.5]

    def test_single_channel_hog(self):
        report = calculate_fairness([10, 0])
        assert report.index == pytest.approx(0.5)
        assert report.status == FairnessStatus.STARVING

    def test_skewed(self):
        report = calculate_fairness([3, 1])
        assert report.index == pytest.approx(0.8)
        assert report.status == FairnessStatus.SKEWED

    def test_no_grants(self):
        report = calculate_fairness([0, 0, 0])
        assert report.index == 1.0
        assert report.shares == [0.0, 0.0, 0.0]

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            calculate_fairness([])

    @pytest.mark.parametrize("index,status", [
        (0.95, FairnessStatus.FAIR),
        (0.9, FairnessStatus.FAIR),
        (0.7, FairnessStatus.SKEWED),
        (0.5, FairnessStatus.STARVING),
    ])
    def test_status_thresholds(self, index, status):
        assert calculate_fairness_status(index) == status


# ==============================================================================
# Controller Stats
# ==============================================================================

class TestControllerStats:
    """Run-level aggregation."""

    def test_counts_match_backends(self, finished_system):
        stats = ControllerStats.from_controller(finished_system.controller)
        assert stats.cycles == finished_system.cycle
        assert stats.reads_issued == sum(b.stats.reads_accepted for b in finished_system.backends)
        assert stats.write_bursts_completed == sum(
            b.stats.writes_accepted for b in finished_system.backends
        )
        assert stats.write_beats == stats.write_bursts_completed * 8
        assert sum(stats.r_bursts) == stats.reads_issued
        assert sum(stats.acks) == stats.write_bursts_completed

    def test_throughput(self, finished_system):
        stats = finished_system.stats
        expected = stats.total_r_beats * 8 / stats.cycles
        assert stats.read_throughput == pytest.approx(expected)

    def test_zero_cycles(self):
        stats = ControllerStats()
        assert stats.read_throughput == 0.0
        assert stats.write_throughput == 0.0

    def test_to_dict(self, finished_system):
        data = finished_system.stats.to_dict()
        for key in ("cycles", "reads_issued", "r_beats", "fairness_index", "fairness_status"):
            assert key in data

    def test_str(self, finished_system):
        text = str(finished_system.stats)
        assert "Memory Controller Metrics" in text
        assert "Fairness" in text


# ==============================================================================
# Collector
# ==============================================================================

class TestCollector:
    """Per-cycle snapshots."""

    def test_one_snapshot_per_cycle(self, finished_system):
        collector = finished_system.metrics
        assert len(collector) == finished_system.cycle
        assert np.array_equal(collector.cycles(), np.arange(finished_system.cycle))

    def test_series_shapes(self, finished_system):
        collector = finished_system.metrics
        n = len(collector)
        assert collector.grants().shape == (n,)
        assert collector.served_channels().shape == (n,)
        assert collector.channel_occupancy().shape == (n, 2)
        queues = collector.queue_occupancy()
        assert queues["aw"].shape == (n,)
        assert queues["w"].max() <= 4

    def test_beats_match_arbiter_stats(self, finished_system):
        beats = finished_system.metrics.read_beats_per_channel(2)
        assert beats.tolist() == finished_system.stats.r_beats

    def test_grant_counts(self, finished_system):
        grants = finished_system.metrics.grants()
        stats = finished_system.stats
        assert int(np.sum(grants == 1)) == stats.reads_issued
        assert int(np.sum(grants == 2)) == stats.write_beats

    def test_capture_interval(self):
        with pytest.raises(ValueError):
            MetricsCollector(capture_interval=0)

    def test_empty_collector(self):
        collector = MetricsCollector()
        assert collector.channel_occupancy().shape == (0, 0)
        assert collector.read_beats_per_channel(2).tolist() == [0, 0]
