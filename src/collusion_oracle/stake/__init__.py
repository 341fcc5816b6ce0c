"""Aggregation of the stake controlled by registered colluders."""

from .aggregator import StakeAggregator, StakeSnapshot, compute_snapshot, percentage_controlled

__all__ = [
    "StakeAggregator",
    "StakeSnapshot",
    "compute_snapshot",
    "percentage_controlled",
]
