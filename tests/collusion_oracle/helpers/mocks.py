"""Mock classes for testing."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from collusion_oracle.ledger import InMemoryLedger
from collusion_oracle.types import LedgerUnavailableError


@dataclass
class RecordingSleep:
    """
    Fake sleep driving a fake monotonic clock.

    Each call advances `now` by the requested duration. `on_sleep` runs after
    every call with the number of calls so far, which lets a test change the
    world (e.g., finalize an epoch) between polls.
    """

    now: float = 0.0
    calls: list[float] = field(default_factory=list)
    on_sleep: Callable[[int], None] | None = None

    def clock(self) -> float:
        return self.now

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(len(self.calls))
        await asyncio.sleep(0)


@dataclass
class FailingLedger(InMemoryLedger):
    """In-memory ledger whose named operations fail as if the node were unreachable."""

    fail_on: frozenset[str] = frozenset()
    """Operations that fail before reaching the ledger."""

    lose_receipt_on: frozenset[str] = frozenset()
    """Operations the ledger applies but whose confirmation never arrives."""

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise LedgerUnavailableError(operation, "connection refused")

    def _check_receipt(self, operation: str) -> None:
        if operation in self.lose_receipt_on:
            raise LedgerUnavailableError(operation, "timed out waiting for receipt")

    async def get_colluding_validator_ids(self) -> list[int]:
        self._check("get_colluding_validator_ids")
        return await InMemoryLedger.get_colluding_validator_ids(self)

    async def post_validator_info(self, validator_id: int, balance_gwei: int, status: str) -> None:
        self._check("post_validator_info")
        await InMemoryLedger.post_validator_info(self, validator_id, balance_gwei, status)

    async def update_total_stake(self, amount_wei: int) -> None:
        self._check("update_total_stake")
        await InMemoryLedger.update_total_stake(self, amount_wei)

    async def post_attack_parameters(self, target_address: str, start_epoch: int) -> None:
        self._check("post_attack_parameters")
        await InMemoryLedger.post_attack_parameters(self, target_address, start_epoch)

    async def begin_attack_if_ready(self) -> None:
        self._check("begin_attack_if_ready")
        await InMemoryLedger.begin_attack_if_ready(self)
        self._check_receipt("begin_attack_if_ready")

    async def post_attack_outcome(self, success: bool) -> None:
        self._check("post_attack_outcome")
        await InMemoryLedger.post_attack_outcome(self, success)

    async def post_misbehaving_validators(self, validator_ids: Sequence[int]) -> None:
        self._check("post_misbehaving_validators")
        await InMemoryLedger.post_misbehaving_validators(self, validator_ids)
