"""
Beacon-chain and execution-layer data access.

Two interchangeable implementations of the BeaconDataClient protocol:

- LiveBeaconClient: beaconcha.in REST API plus an execution JSON-RPC node
- FixtureBeaconClient: recorded data held in memory
"""

from .client import (
    DEFAULT_BEACON_URL,
    BeaconDataClient,
    EpochQuery,
    LiveBeaconClient,
)
from .fixture import BeaconFixture, FixtureBeaconClient
from .models import (
    AttestationRecord,
    EpochInfo,
    ExecutionBlock,
    SlotRef,
    Transaction,
    ValidatorRecord,
)

__all__ = [
    "DEFAULT_BEACON_URL",
    "AttestationRecord",
    "BeaconDataClient",
    "BeaconFixture",
    "EpochInfo",
    "EpochQuery",
    "ExecutionBlock",
    "FixtureBeaconClient",
    "LiveBeaconClient",
    "SlotRef",
    "Transaction",
    "ValidatorRecord",
]
