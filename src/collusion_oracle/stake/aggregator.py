"""
Stake aggregation.

Sums the effective balance of every validator committed by a registered
colluder and compares it against the network's total staked balance.

Beacon balances are in gwei. The ledger accounts in wei, so every amount is
converted exactly on the way out.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from fractions import Fraction
from typing import TYPE_CHECKING

from collusion_oracle.types import DataUnavailableError, gwei_to_wei

if TYPE_CHECKING:
    from collusion_oracle.beacon import BeaconDataClient, ValidatorRecord
    from collusion_oracle.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StakeSnapshot:
    """Controlled and total stake at one point in time, in gwei."""

    total_controlled_balance: int
    """Effective balance of validators committed by registered colluders."""

    total_network_balance: int
    """Total validator balance of the finalized epoch."""


def compute_snapshot(
    colluder_ids: Iterable[int],
    records: Mapping[int, ValidatorRecord],
    total_network_balance: int,
) -> StakeSnapshot:
    """
    Sum the effective balances of committed validators.

    Records whose id is not committed by any colluder are ignored, so a stray
    record can never inflate the controlled stake.
    """
    committed = set(colluder_ids)
    controlled = sum(
        record.effective_balance for vid, record in records.items() if vid in committed
    )
    return StakeSnapshot(
        total_controlled_balance=controlled,
        total_network_balance=total_network_balance,
    )


def percentage_controlled(snapshot: StakeSnapshot) -> Fraction:
    """
    Controlled stake as an exact percentage of the network's stake.

    A network with no stake is reported as 0% controlled.
    """
    if snapshot.total_network_balance == 0:
        return Fraction(0)
    return Fraction(snapshot.total_controlled_balance * 100, snapshot.total_network_balance)


@dataclass(slots=True)
class StakeAggregator:
    """Collects stake figures from the ledger and the beacon chain."""

    ledger: Ledger
    """Source of the registered colluders' validator ids."""

    client: BeaconDataClient
    """Source of validator records and the network balance."""

    async def collect(self) -> tuple[StakeSnapshot, dict[int, ValidatorRecord]]:
        """
        Read current colluder ids and their records, and compute a snapshot.

        Returns:
            The snapshot and the validator records it was computed from.

        Raises:
            DataUnavailableError: If any record or the finalized epoch is absent.
        """
        colluder_ids = await self.ledger.get_colluding_validator_ids()

        records: dict[int, ValidatorRecord] = {}
        for vid in colluder_ids:
            record = await self.client.fetch_validator(vid)
            if record is None:
                raise DataUnavailableError("validator", vid)
            records[vid] = record

        epoch = await self.client.fetch_epoch("finalized")
        if epoch is None:
            raise DataUnavailableError("epoch", "finalized")

        snapshot = compute_snapshot(colluder_ids, records, epoch.total_validator_balance)
        logger.debug(
            "Stake snapshot: %d of %d gwei across %d validators",
            snapshot.total_controlled_balance,
            snapshot.total_network_balance,
            len(records),
        )
        return snapshot, records

    async def report_total_stake(self, snapshot: StakeSnapshot) -> None:
        """Post the network's total stake to the ledger, in wei."""
        await self.ledger.update_total_stake(gwei_to_wei(snapshot.total_network_balance))
