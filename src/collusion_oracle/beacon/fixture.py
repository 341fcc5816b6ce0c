"""
Fixture-backed beacon data.

Serves recorded chain data from memory so the oracle can run offline and be
tested without network access. Absent records are reported as None exactly
like the live client reports unreachable ones.

The YAML format mirrors the models (either field spelling works)::

    finalized_epoch: 12
    validators:
    - validatorindex: 11344
      pubkey: "0xa99a..."
      effectivebalance: 32000000000
      status: active_online
    epochs:
    - {epoch: 12, totalvalidatorbalance: 96000000000, finalized: true}
    slots:
    - {slot: 384, epoch: 12, blockroot: "0xab..", exec_block_number: 17000000}
    attestations:
      384:
      - {validators: [11344], beaconblockroot: "0xab.."}
    execution_blocks:
    - number: 17000000
      transactions:
      - {from: "0x11..", to: "0x22.."}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .client import EpochQuery
from .models import AttestationRecord, EpochInfo, ExecutionBlock, SlotRef, ValidatorRecord


class BeaconFixture(BaseModel):
    """Recorded beacon and execution data."""

    model_config = ConfigDict(extra="ignore")

    finalized_epoch: int | None = None
    """Epoch served for the `finalized` alias. Defaults to the highest finalized epoch."""

    validators: list[ValidatorRecord] = Field(default_factory=list)
    epochs: list[EpochInfo] = Field(default_factory=list)
    slots: list[SlotRef] = Field(default_factory=list)
    attestations: dict[int, list[AttestationRecord]] = Field(default_factory=dict)
    execution_blocks: list[ExecutionBlock] = Field(default_factory=list)

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> BeaconFixture:
        """
        Load a fixture from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            pydantic.ValidationError: If the data fails validation.
        """
        path = Path(path)
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})


@dataclass(slots=True)
class FixtureBeaconClient:
    """BeaconDataClient serving a BeaconFixture from memory."""

    fixture: BeaconFixture = field(default_factory=BeaconFixture)

    _validators: dict[int, ValidatorRecord] = field(default_factory=dict, init=False)
    _epochs: dict[int, EpochInfo] = field(default_factory=dict, init=False)
    _slots: dict[int, SlotRef] = field(default_factory=dict, init=False)
    _roots: dict[str, SlotRef] = field(default_factory=dict, init=False)
    _blocks: dict[int, ExecutionBlock] = field(default_factory=dict, init=False)

    def __post_init__(self) -> None:
        for record in self.fixture.validators:
            self.set_validator(record)
        for info in self.fixture.epochs:
            self.set_epoch(info)
        for slot in self.fixture.slots:
            self.add_slot(slot)
        for block in self.fixture.execution_blocks:
            self.add_execution_block(block)

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> FixtureBeaconClient:
        """Create a client serving the fixture stored at `path`."""
        return cls(fixture=BeaconFixture.from_yaml_file(path))

    # -- Mutation (simulating chain progress) --

    def set_validator(self, record: ValidatorRecord) -> None:
        """Insert or replace a validator record."""
        self._validators[record.validator_id] = record

    def set_epoch(self, info: EpochInfo) -> None:
        """Insert or replace an epoch summary (e.g., to mark it finalized)."""
        self._epochs[info.epoch] = info

    def add_slot(self, slot: SlotRef) -> None:
        """Insert or replace a slot."""
        self._slots[slot.slot] = slot
        self._roots[slot.block_root] = slot

    def add_execution_block(self, block: ExecutionBlock) -> None:
        """Insert or replace an execution block."""
        self._blocks[block.number] = block

    def add_attestations(self, slot: int, records: list[AttestationRecord]) -> None:
        """Append attestations included in `slot`'s block."""
        self.fixture.attestations.setdefault(slot, []).extend(records)

    # -- BeaconDataClient --

    async def fetch_validator(self, validator_id: int) -> ValidatorRecord | None:
        return self._validators.get(validator_id)

    async def fetch_epoch(self, epoch: EpochQuery) -> EpochInfo | None:
        if epoch == "latest":
            return self._epochs[max(self._epochs)] if self._epochs else None

        if epoch == "finalized":
            if self.fixture.finalized_epoch is not None:
                return self._epochs.get(self.fixture.finalized_epoch)
            finalized = [n for n, info in self._epochs.items() if info.finalized]
            return self._epochs[max(finalized)] if finalized else None

        return self._epochs.get(epoch)

    async def fetch_slots_for_epoch(self, epoch: int) -> list[SlotRef] | None:
        slots = sorted(
            (s for s in self._slots.values() if s.epoch == epoch),
            key=lambda s: s.slot,
        )

        # An epoch the fixture knows nothing about is absent, not empty.
        if not slots and epoch not in self._epochs:
            return None
        return slots

    async def fetch_attestations(self, slot: int) -> list[AttestationRecord] | None:
        if slot not in self._slots:
            return None
        return list(self.fixture.attestations.get(slot, []))

    async def fetch_slot(self, slot_or_root: int | str) -> SlotRef | None:
        if isinstance(slot_or_root, str):
            return self._roots.get(slot_or_root.lower())
        return self._slots.get(slot_or_root)

    async def fetch_execution_block(self, block_number: int) -> ExecutionBlock | None:
        return self._blocks.get(block_number)
