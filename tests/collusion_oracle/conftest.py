"""
Shared pytest fixtures for all collusion oracle tests.

Provides core fixtures used across multiple test modules.
"""

from __future__ import annotations

import pytest

from collusion_oracle.beacon import FixtureBeaconClient
from collusion_oracle.ledger import InMemoryLedger


@pytest.fixture
def client() -> FixtureBeaconClient:
    """Empty fixture-backed beacon client."""
    return FixtureBeaconClient()


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Fresh in-memory ledger with the default quorum threshold."""
    return InMemoryLedger()
