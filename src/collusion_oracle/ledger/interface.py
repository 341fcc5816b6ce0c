"""
Ledger contract interface.

The ledger (the collusion contract) owns all durable state: who committed,
posted validator balances, the attack parameters and phase, and the slashing
flags. The oracle reads that state and submits reports; it never keeps its
own authoritative copy.

Writes are serialized by each implementation. A write returns only after
the ledger has accepted or rejected it, so the next write never races it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Protocol, runtime_checkable

from pydantic import Field

from collusion_oracle.types import StrictBaseModel


class Declaration(StrictBaseModel):
    """
    A colluder's signed commitment for one validator.

    Emitted by the ledger when a colluder commits. Immutable.
    """

    identity: str
    """Ledger address of the committing colluder."""

    validator_id: int = Field(ge=0)
    """Validator the colluder claims to control."""

    signature: str
    """BLS signature over `message`, hex with `0x` prefix."""

    message: str
    """Commitment hash the colluder signed, hex with `0x` prefix."""


@runtime_checkable
class Ledger(Protocol):
    """Reads, writes and events the oracle uses on the collusion contract."""

    # -- Reads --

    async def is_ready_to_begin(self) -> bool:
        """Whether the contract would accept a begin request now."""
        ...

    async def has_begun(self) -> bool:
        """Whether the attack window has begun."""
        ...

    async def get_colluding_validator_ids(self) -> list[int]:
        """Validators committed by registered colluders, in commit order."""
        ...

    async def percentage_controlled(self, threshold: int) -> bool:
        """Whether colluders control at least `threshold` percent of staked ether."""
        ...

    # -- Writes --

    async def post_validator_info(self, validator_id: int, balance_gwei: int, status: str) -> None:
        """Report a validator's effective balance (gwei) and status."""
        ...

    async def update_total_stake(self, amount_wei: int) -> None:
        """Report the total staked ether of the network (wei)."""
        ...

    async def post_attack_parameters(self, target_address: str, start_epoch: int) -> None:
        """Set the address to censor and the first epoch of the window."""
        ...

    async def begin_attack_if_ready(self) -> None:
        """Flip the contract into the begun phase."""
        ...

    async def post_attack_outcome(self, success: bool) -> None:
        """Report whether the target was censored for the whole window."""
        ...

    async def post_misbehaving_validators(self, validator_ids: Sequence[int]) -> None:
        """Report validators that attested to blocks containing the target."""
        ...

    # -- Events --

    def declarations(self) -> AsyncIterator[Declaration]:
        """Stream of new colluder declarations, in emission order."""
        ...
