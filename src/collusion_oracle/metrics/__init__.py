"""
Metrics module for observability.

Provides counters, gauges, and histograms for tracking the oracle's progress.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    attack_phase,
    blocks_scanned,
    controlled_stake_gwei,
    controlled_stake_percent,
    declaration_processing_time,
    declarations_processed,
    epochs_scanned,
    generate_metrics,
    misbehaving_validators,
    network_stake_gwei,
)

__all__ = [
    "REGISTRY",
    "attack_phase",
    "blocks_scanned",
    "controlled_stake_gwei",
    "controlled_stake_percent",
    "declaration_processing_time",
    "declarations_processed",
    "epochs_scanned",
    "generate_metrics",
    "misbehaving_validators",
    "network_stake_gwei",
]
