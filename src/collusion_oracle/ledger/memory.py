"""
In-memory simulation of the collusion contract.

Mirrors the contract's bookkeeping and the preconditions it enforces, so the
oracle's handling of accepted and rejected writes can run offline. Reward
accounting is not simulated.

Rejection reasons use the contract's revert strings.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import TypeAdapter
from typing_extensions import Final

from collusion_oracle.types import LedgerRejectedError
from collusion_oracle.types.units import gwei_to_wei

from .interface import Declaration

logger = logging.getLogger(__name__)

DEFAULT_REGISTRATION_PERIOD: Final = 42 * 24 * 60 * 60
"""Seconds after deployment during which colluders may commit (42 days)."""

DEFAULT_QUORUM_THRESHOLD: Final = 66
"""Percentage of staked ether colluders must control before the attack may begin."""


@dataclass(slots=True)
class LedgerValidator:
    """Per-validator state held by the contract."""

    balance_wei: int
    status: str
    slashed: bool = False


@dataclass(slots=True)
class InMemoryLedger:
    """Ledger implementation holding contract state in memory."""

    quorum_threshold: int = DEFAULT_QUORUM_THRESHOLD
    """Threshold used by `is_ready_to_begin` and `begin_attack_if_ready`."""

    registration_period: float = DEFAULT_REGISTRATION_PERIOD
    """Seconds after creation before the contract expires."""

    time_fn: Callable[[], float] = field(default=time.time)
    """Time source (injectable for deterministic testing)."""

    created_at: float = field(default=-1.0)
    """Creation timestamp. Negative means "now" at construction."""

    total_stake_wei: int = 0
    target_address: str | None = None
    start_epoch: int = 0
    attack_begun: bool = False
    attack_success: bool | None = None
    misbehaving: list[int] = field(default_factory=list)

    writes: list[str] = field(default_factory=list)
    """Names of accepted writes, in the order the ledger applied them."""

    _colluders: dict[str, list[int]] = field(default_factory=dict, repr=False)
    _validators: dict[int, LedgerValidator] = field(default_factory=dict, repr=False)
    _events: asyncio.Queue[Declaration] = field(default_factory=asyncio.Queue, repr=False)
    _write_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.created_at < 0:
            self.created_at = self.time_fn()

    @property
    def is_expired(self) -> bool:
        """Whether the registration period has elapsed."""
        return self.time_fn() >= self.created_at + self.registration_period

    def validator(self, validator_id: int) -> LedgerValidator | None:
        """State held for a validator, if any has been posted."""
        return self._validators.get(validator_id)

    def commit(self, declaration: Declaration) -> None:
        """
        Register a colluder's declaration and emit it.

        Raises:
            LedgerRejectedError: If the contract expired, the attack began,
                or the validator is already committed.
        """
        if self.is_expired:
            raise LedgerRejectedError("commit", "Contract has expired.")
        if self.attack_begun:
            raise LedgerRejectedError("commit", "Attack has already begun.")
        if declaration.validator_id in self._committed_ids():
            raise LedgerRejectedError("commit", "Validator already committed.")

        self._colluders.setdefault(declaration.identity, []).append(declaration.validator_id)
        self._events.put_nowait(declaration)
        logger.debug(
            "Committed validator %d for %s", declaration.validator_id, declaration.identity
        )

    def _committed_ids(self) -> list[int]:
        return [vid for ids in self._colluders.values() for vid in ids]

    def _controls(self, threshold: int) -> bool:
        # Only validators committed by a colluder count toward the numerator.
        controlled = sum(
            self._validators[vid].balance_wei
            for vid in self._committed_ids()
            if vid in self._validators
        )
        if self.total_stake_wei == 0:
            return False
        return controlled * 100 >= threshold * self.total_stake_wei

    # -- Reads --

    async def is_ready_to_begin(self) -> bool:
        return (
            not self.is_expired
            and not self.attack_begun
            and self._controls(self.quorum_threshold)
        )

    async def has_begun(self) -> bool:
        return self.attack_begun

    async def get_colluding_validator_ids(self) -> list[int]:
        return self._committed_ids()

    async def percentage_controlled(self, threshold: int) -> bool:
        return self._controls(threshold)

    # -- Writes --

    async def post_validator_info(self, validator_id: int, balance_gwei: int, status: str) -> None:
        async with self._write_lock:
            entry = self._validators.get(validator_id)
            if entry is None:
                self._validators[validator_id] = LedgerValidator(gwei_to_wei(balance_gwei), status)
            else:
                entry.balance_wei = gwei_to_wei(balance_gwei)
                entry.status = status
            self.writes.append("post_validator_info")

    async def update_total_stake(self, amount_wei: int) -> None:
        async with self._write_lock:
            self.total_stake_wei = amount_wei
            self.writes.append("update_total_stake")

    async def post_attack_parameters(self, target_address: str, start_epoch: int) -> None:
        async with self._write_lock:
            if self.attack_begun:
                raise LedgerRejectedError("post_attack_parameters", "Attack has already begun.")
            self.target_address = target_address
            self.start_epoch = start_epoch
            self.writes.append("post_attack_parameters")

    async def begin_attack_if_ready(self) -> None:
        async with self._write_lock:
            if self.attack_begun:
                raise LedgerRejectedError("begin_attack_if_ready", "Attack has already begun.")
            if self.is_expired:
                raise LedgerRejectedError("begin_attack_if_ready", "Contract has expired.")
            if not self.target_address:
                raise LedgerRejectedError("begin_attack_if_ready", "No address to censor.")
            if self.start_epoch == 0:
                raise LedgerRejectedError("begin_attack_if_ready", "No epoch to censor.")
            if not self._controls(self.quorum_threshold):
                raise LedgerRejectedError("begin_attack_if_ready", "Not enough stake controlled.")
            self.attack_begun = True
            self.writes.append("begin_attack_if_ready")

    async def post_attack_outcome(self, success: bool) -> None:
        async with self._write_lock:
            if not self.attack_begun:
                raise LedgerRejectedError("post_attack_outcome", "Attack has not begun.")
            self.attack_success = success
            self.writes.append("post_attack_outcome")

    async def post_misbehaving_validators(self, validator_ids: Sequence[int]) -> None:
        async with self._write_lock:
            if self.attack_success is not True:
                raise LedgerRejectedError(
                    "post_misbehaving_validators", "Attack was not successful."
                )
            self.misbehaving = list(validator_ids)
            for vid in validator_ids:
                entry = self._validators.get(vid)
                if entry is not None:
                    entry.slashed = True
            self.writes.append("post_misbehaving_validators")

    # -- Events --

    async def declarations(self) -> AsyncIterator[Declaration]:
        while True:
            yield await self._events.get()


def load_declarations(path: Path | str) -> list[Declaration]:
    """
    Read the `declarations` list from a fixture file.

    Used to seed an in-memory ledger for offline runs. Missing key means none.
    """
    with Path(path).open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return TypeAdapter(list[Declaration]).validate_python(data.get("declarations", []))
