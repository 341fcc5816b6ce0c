"""
Attack coordination.

Decides when colluders control enough stake, fixes the attack window, and
records the window's outcome. The ledger is authoritative for every phase
transition; the coordinator keeps a local mirror so the node can report
progress and refuse to start a second window.

Phases
------
IDLE → READY_TO_BEGIN → BEGUN → {SUCCEEDED, FAILED}

The window is fixed when the attack begins and never changes afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

from pydantic import Field

from collusion_oracle import metrics
from collusion_oracle.stake import StakeSnapshot, percentage_controlled
from collusion_oracle.types import (
    DataUnavailableError,
    LedgerRejectedError,
    StrictBaseModel,
    WindowImmutableError,
)

if TYPE_CHECKING:
    from collusion_oracle.beacon import BeaconDataClient
    from collusion_oracle.ledger import Ledger
    from collusion_oracle.monitor import ScanResult

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_EPOCHS = 1
"""Epochs covered by the attack window."""

DEFAULT_LEAD_TIME_EPOCHS = 1
"""Epochs between the finalized epoch and the first epoch of the window."""


class AttackPhase(IntEnum):
    """Local mirror of the ledger's attack phase."""

    IDLE = 0
    READY_TO_BEGIN = 1
    BEGUN = 2
    SUCCEEDED = 3
    FAILED = 4


class AttackWindow(StrictBaseModel):
    """The epochs during which the target must be censored."""

    target_address: str
    """Address whose transactions must not appear in any block."""

    start_epoch: int = Field(ge=0)
    """First epoch of the window."""

    duration_in_epochs: int = Field(ge=1)
    """Number of epochs in the window."""

    @property
    def end_epoch(self) -> int:
        """First epoch after the window (exclusive bound)."""
        return self.start_epoch + self.duration_in_epochs

    def contains_epoch(self, epoch: int) -> bool:
        """Whether `epoch` lies in `[start_epoch, end_epoch)`."""
        return self.start_epoch <= epoch < self.end_epoch


@dataclass(slots=True)
class AttackCoordinator:
    """Evaluates readiness, begins the window, and records its outcome."""

    ledger: Ledger
    client: BeaconDataClient

    target_address: str
    """Address to censor once the attack begins."""

    quorum_threshold: int
    """Percentage of staked ether colluders must control."""

    window_epochs: int = DEFAULT_WINDOW_EPOCHS
    lead_time_epochs: int = DEFAULT_LEAD_TIME_EPOCHS

    phase: AttackPhase = AttackPhase.IDLE
    """Current phase as last observed or caused by this coordinator."""

    window: AttackWindow | None = None
    """The window fixed when the attack began. None before that."""

    posted_window: AttackWindow | None = None
    """Parameters of the last window the ledger accepted, whether or not it began."""

    def _set_phase(self, phase: AttackPhase) -> None:
        if phase != self.phase:
            logger.info("Attack phase %s -> %s", self.phase.name, phase.name)
        self.phase = phase
        metrics.attack_phase.set(int(phase))

    async def evaluate_readiness(self, snapshot: StakeSnapshot) -> bool:
        """
        Decide whether the attack can begin.

        Ready only if the local computation crosses the threshold, the ledger
        agrees on the percentage, and the ledger reports it would accept a
        begin request (the registration period has not expired).
        """
        if self.window is not None or self.phase > AttackPhase.BEGUN:
            return False

        if await self.ledger.has_begun():
            self._set_phase(AttackPhase.BEGUN)
            self._resume_posted_window()
            return False

        local = percentage_controlled(snapshot)
        if local < self.quorum_threshold:
            logger.debug(
                "Controlled %.2f%% below threshold %d%%", float(local), self.quorum_threshold
            )
            self._set_phase(AttackPhase.IDLE)
            return False

        ready = await self.ledger.percentage_controlled(
            self.quorum_threshold
        ) and await self.ledger.is_ready_to_begin()
        if not ready:
            logger.info(
                "Controlled %.2f%% locally but the ledger is not ready to begin", float(local)
            )
        self._set_phase(AttackPhase.READY_TO_BEGIN if ready else AttackPhase.IDLE)
        return ready

    async def begin_attack(self) -> AttackWindow | None:
        """
        Fix the window and ask the ledger to begin the attack.

        Returns:
            The window, or None if the ledger refused. Refusals are not retried.

        Raises:
            WindowImmutableError: If a window has already begun.
            DataUnavailableError: If the finalized epoch cannot be read.
            LedgerUnavailableError: If a write was not confirmed.
        """
        if self.window is not None:
            raise WindowImmutableError(
                f"Attack window already begun at epoch {self.window.start_epoch}"
            )

        finalized = await self.client.fetch_epoch("finalized")
        if finalized is None:
            raise DataUnavailableError("epoch", "finalized")

        window = AttackWindow(
            target_address=self.target_address,
            start_epoch=finalized.epoch + self.lead_time_epochs,
            duration_in_epochs=self.window_epochs,
        )

        # An unconfirmed begin propagates; the next readiness check finds it
        # on the ledger and resumes the posted window.
        try:
            await self.ledger.post_attack_parameters(window.target_address, window.start_epoch)
            self.posted_window = window
            await self.ledger.begin_attack_if_ready()
        except LedgerRejectedError as e:
            logger.warning("Attack not begun: %s", e.reason)
            self._set_phase(AttackPhase.IDLE)
            return None

        self.window = window
        self._set_phase(AttackPhase.BEGUN)
        logger.info(
            "Attack begun against %s for epochs [%d, %d)",
            window.target_address,
            window.start_epoch,
            window.end_epoch,
        )
        return window

    def _resume_posted_window(self) -> None:
        """Adopt the posted window for an attack the ledger began without confirming."""
        if self.posted_window is None:
            # Begun before a restart. The contract does not expose its parameters.
            logger.error("Attack began on the ledger but its window is unknown")
            return

        self.window = self.posted_window
        logger.warning(
            "Attack begun on the ledger without confirmation, resuming epochs [%d, %d)",
            self.window.start_epoch,
            self.window.end_epoch,
        )

    async def evaluate_and_begin(self, snapshot: StakeSnapshot) -> AttackWindow | None:
        """Begin the attack if `snapshot` shows the quorum is reached."""
        if not await self.evaluate_readiness(snapshot):
            return None
        return await self.begin_attack()

    async def record_outcome(self, result: ScanResult) -> None:
        """Post the scan outcome to the ledger and move to a terminal phase."""
        await self.ledger.post_attack_outcome(result.success)
        self._set_phase(AttackPhase.SUCCEEDED if result.success else AttackPhase.FAILED)
