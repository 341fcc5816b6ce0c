"""
Compliance audit of colluding validators.

After a successful attack, each colluding validator's attestations are
checked. A validator that voted for a block in the window containing a
transaction sent by or to the target is non-compliant and is reported for
slashing.

Abstention is not misbehavior: a validator with no attestations in the window
is compliant.

The audit is all or nothing. If any piece of data cannot be read, the run
fails and no list is produced, so a validator is never reported (or cleared)
on partial evidence.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from collusion_oracle import metrics
from collusion_oracle.types import AuditIncompleteError, OperationCancelledError

if TYPE_CHECKING:
    from collusion_oracle.beacon import (
        AttestationRecord,
        BeaconDataClient,
        ExecutionBlock,
        SlotRef,
    )
    from collusion_oracle.coordinator import AttackWindow

logger = logging.getLogger(__name__)

AttestationIndex = dict[int, list[str]]
"""Validator id to the block roots it voted for, in the order seen."""


def build_attestation_index(
    attestations: Iterable[AttestationRecord],
    validator_ids: Collection[int] | None = None,
) -> AttestationIndex:
    """
    Group voted block roots by validator.

    Args:
        attestations: Aggregate attestations in inclusion order.
        validator_ids: Restrict the index to these validators. None keeps all.

    Returns:
        Each validator's distinct voted roots, in first-seen order.
    """
    index: AttestationIndex = {}
    for attestation in attestations:
        for vid in attestation.validators:
            if validator_ids is not None and vid not in validator_ids:
                continue
            roots = index.setdefault(vid, [])
            if attestation.beacon_block_root not in roots:
                roots.append(attestation.beacon_block_root)
    return index


@dataclass(slots=True)
class _AuditRun:
    """State that lives for exactly one audit."""

    client: BeaconDataClient
    slots_by_root: dict[str, SlotRef]
    blocks: dict[int, ExecutionBlock]

    async def resolve(self, root: str) -> SlotRef:
        slot = self.slots_by_root.get(root)
        if slot is None:
            slot = await self.client.fetch_slot(root)
            if slot is None:
                raise AuditIncompleteError(f"slot for block root {root} unavailable")
            self.slots_by_root[root] = slot
        return slot

    async def block(self, number: int) -> ExecutionBlock:
        block = self.blocks.get(number)
        if block is None:
            block = await self.client.fetch_execution_block(number)
            if block is None:
                raise AuditIncompleteError(f"execution block {number} unavailable")
            self.blocks[number] = block
        return block


@dataclass(slots=True)
class ComplianceAuditor:
    """Finds colluding validators that attested to blocks including the target."""

    client: BeaconDataClient

    async def audit(
        self,
        validator_ids: Iterable[int],
        window: AttackWindow,
        cancel: asyncio.Event | None = None,
    ) -> frozenset[int]:
        """
        Return the non-compliant subset of `validator_ids`.

        Attestations are gathered over epochs `[start, end]`, since votes for
        the window's last epoch are included in the following one. Only votes
        for blocks whose epoch lies in the window count.

        Raises:
            AuditIncompleteError: If any slot, attestation list, or block is absent.
            OperationCancelledError: If `cancel` is set.
        """
        wanted = frozenset(validator_ids)
        run = _AuditRun(client=self.client, slots_by_root={}, blocks={})

        attestations: list[AttestationRecord] = []
        for epoch in range(window.start_epoch, window.end_epoch + 1):
            _check_cancel(cancel)

            slots = await self.client.fetch_slots_for_epoch(epoch)
            if slots is None:
                raise AuditIncompleteError(f"slots of epoch {epoch} unavailable")

            for slot in slots:
                run.slots_by_root[slot.block_root] = slot
                if not slot.is_proposed:
                    continue

                records = await self.client.fetch_attestations(slot.slot)
                if records is None:
                    raise AuditIncompleteError(f"attestations of slot {slot.slot} unavailable")
                attestations.extend(records)

        index = build_attestation_index(attestations, wanted)

        misbehaving: set[int] = set()
        for vid in sorted(wanted):
            _check_cancel(cancel)

            for root in index.get(vid, []):
                slot = await run.resolve(root)
                if not window.contains_epoch(slot.epoch) or not slot.has_execution_block:
                    continue

                assert slot.exec_block_number is not None
                block = await run.block(slot.exec_block_number)
                if block.involves(window.target_address):
                    logger.warning(
                        "Validator %d voted for block %d containing the target", vid, block.number
                    )
                    misbehaving.add(vid)
                    break

        metrics.misbehaving_validators.set(len(misbehaving))
        logger.info("Audit found %d of %d validators non-compliant", len(misbehaving), len(wanted))
        return frozenset(misbehaving)


def _check_cancel(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError("compliance audit")
