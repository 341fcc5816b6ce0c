"""
Metric registry using prometheus_client.

Tracks declaration handling, stake control, and the attack window lifecycle.
Exposed in Prometheus text format via the /metrics endpoint.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Dedicated registry, without the default Python process collectors.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Declarations
# -----------------------------------------------------------------------------

declarations_processed = Counter(
    "oracle_declarations_processed_total",
    "Declarations processed, by terminal outcome",
    ["outcome"],
    registry=REGISTRY,
)

declaration_processing_time = Histogram(
    "oracle_declaration_processing_seconds",
    "Declaration processing duration",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Stake
# -----------------------------------------------------------------------------

controlled_stake_gwei = Gauge(
    "oracle_controlled_stake_gwei",
    "Effective balance controlled by registered colluders",
    registry=REGISTRY,
)

network_stake_gwei = Gauge(
    "oracle_network_stake_gwei",
    "Total validator balance of the finalized epoch",
    registry=REGISTRY,
)

controlled_stake_percent = Gauge(
    "oracle_controlled_stake_percent",
    "Percentage of staked ether controlled by colluders",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Attack Window
# -----------------------------------------------------------------------------

attack_phase = Gauge(
    "oracle_attack_phase",
    "Local mirror of the attack phase (0 idle, 1 ready, 2 begun, 3 succeeded, 4 failed)",
    registry=REGISTRY,
)

epochs_scanned = Counter(
    "oracle_epochs_scanned_total",
    "Epochs scanned for censorship violations",
    registry=REGISTRY,
)

blocks_scanned = Counter(
    "oracle_blocks_scanned_total",
    "Execution blocks scanned for censorship violations",
    registry=REGISTRY,
)

misbehaving_validators = Gauge(
    "oracle_misbehaving_validators",
    "Colluding validators found voting for blocks that include the target",
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
