"""
Memory controller metrics.

- ControllerStats: run-level counters from the arbiters
- calculate_fairness: Jain's fairness index over per-channel grants
- MetricsCollector: per-cycle snapshots with numpy series accessors
"""

from .controller_stats import (
    ControllerStats,
    FairnessReport,
    FairnessStatus,
    calculate_fairness,
    calculate_fairness_status,
)
from .collector import CycleSnapshot, GRANT_CODES, MetricsCollector

__all__ = [
    "ControllerStats",
    "FairnessReport",
    "FairnessStatus",
    "calculate_fairness",
    "calculate_fairness_status",
    "CycleSnapshot",
    "GRANT_CODES",
    "MetricsCollector",
]
