"""
Declaration processing.

Each declaration emitted by the ledger is taken to exactly one terminal
outcome:

- accepted: the signature verified and the validator's info was posted
- rejected: the signature did not verify under the validator's key
- aborted: a data source or the ledger failed; nothing is retried

An accepted declaration changes the controlled stake, so the snapshot is
recomputed, the network total is reported, and readiness is re-evaluated.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from collusion_oracle import metrics
from collusion_oracle.stake import StakeSnapshot, percentage_controlled
from collusion_oracle.types import DataUnavailableError, LedgerError

if TYPE_CHECKING:
    from collusion_oracle.beacon import BeaconDataClient
    from collusion_oracle.coordinator import AttackCoordinator, AttackWindow
    from collusion_oracle.crypto import SignatureVerifier
    from collusion_oracle.ledger import Declaration, Ledger
    from collusion_oracle.stake import StakeAggregator

logger = logging.getLogger(__name__)


class DeclarationOutcome(str, Enum):
    """Terminal outcome of a declaration."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ABORTED = "aborted"


@dataclass(slots=True)
class DeclarationPipeline:
    """Verifies declarations and keeps the ledger's stake figures current."""

    client: BeaconDataClient
    ledger: Ledger
    verifier: SignatureVerifier
    aggregator: StakeAggregator
    coordinator: AttackCoordinator

    last_snapshot: StakeSnapshot | None = field(default=None)
    """Most recent snapshot, for status reporting."""

    async def process(self, declaration: Declaration) -> DeclarationOutcome:
        """Take `declaration` to its terminal outcome."""
        started = time.perf_counter()
        outcome = await self._process(declaration)
        metrics.declaration_processing_time.observe(time.perf_counter() - started)
        metrics.declarations_processed.labels(outcome=outcome.value).inc()
        logger.info(
            "Declaration of validator %d by %s %s",
            declaration.validator_id,
            declaration.identity,
            outcome.value,
        )
        return outcome

    async def _process(self, declaration: Declaration) -> DeclarationOutcome:
        # The beacon record supplies the public key the signature must verify under.
        record = await self.client.fetch_validator(declaration.validator_id)
        if record is None:
            logger.warning("Validator %d unavailable", declaration.validator_id)
            return DeclarationOutcome.ABORTED

        if not self.verifier.verify(declaration.signature, declaration.message, record.public_key):
            return DeclarationOutcome.REJECTED

        try:
            await self.ledger.post_validator_info(
                record.validator_id, record.effective_balance, record.status
            )
            await self.refresh()
        except (DataUnavailableError, LedgerError) as e:
            logger.warning("Processing validator %d stopped: %s", declaration.validator_id, e)
            return DeclarationOutcome.ABORTED

        return DeclarationOutcome.ACCEPTED

    async def refresh(self) -> AttackWindow | None:
        """
        Recompute stake, report the network total, and begin the attack if ready.

        Returns:
            The window if this refresh began the attack.

        Raises:
            DataUnavailableError: If a validator record or the finalized epoch is absent.
            LedgerError: If the ledger fails.
        """
        snapshot, _ = await self.aggregator.collect()
        await self.aggregator.report_total_stake(snapshot)
        self.last_snapshot = snapshot

        metrics.controlled_stake_gwei.set(snapshot.total_controlled_balance)
        metrics.network_stake_gwei.set(snapshot.total_network_balance)
        metrics.controlled_stake_percent.set(float(percentage_controlled(snapshot)))

        return await self.coordinator.evaluate_and_begin(snapshot)
