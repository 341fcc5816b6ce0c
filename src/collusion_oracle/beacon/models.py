"""
Records returned by the beacon-chain and execution-layer data sources.

Field aliases follow the beaconcha.in v1 API and the execution JSON-RPC
spelling, so upstream payloads validate directly. Python names work too.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from collusion_oracle.types import WireModel, addresses_equal, is_hex_value

SLOT_STATUS_PROPOSED = "1"
"""beaconcha.in slot status for a canonical, proposed block."""


def _parse_quantity(value: Any) -> Any:
    """Accept JSON-RPC hex quantities (`"0x1b4"`) as well as plain integers."""
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16)
    return value


class ValidatorRecord(WireModel):
    """A validator's registry entry on the beacon chain."""

    validator_id: int = Field(alias="validatorindex")
    """Index in the validator registry."""

    public_key: str = Field(alias="pubkey")
    """BLS public key, `0x`-prefixed hex."""

    effective_balance: int = Field(alias="effectivebalance")
    """Effective balance in gwei."""

    status: str
    """Lifecycle status (e.g., active_online, active_offline, exited)."""

    slashed: bool = False
    """Whether the consensus layer has slashed this validator."""


class EpochInfo(WireModel):
    """Summary of a single epoch."""

    epoch: int
    """Epoch number."""

    total_validator_balance: int = Field(alias="totalvalidatorbalance")
    """Sum of all validator balances in gwei."""

    finalized: bool
    """Whether the epoch is finalized."""


class SlotRef(WireModel):
    """A slot within an epoch and the block it produced, if any."""

    slot: int
    epoch: int

    block_root: str = Field(alias="blockroot")
    """Beacon block root, normalized to lowercase hex."""

    exec_block_number: int | None = None
    """Execution payload block number. Absent or zero when no block was produced."""

    status: str = SLOT_STATUS_PROPOSED
    """beaconcha.in status code: 0 scheduled, 1 proposed, 2 missed, 3 orphaned."""

    @field_validator("block_root", mode="after")
    @classmethod
    def _lower_root(cls, v: str) -> str:
        return v.lower()

    @field_validator("status", mode="before")
    @classmethod
    def _status_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @property
    def is_proposed(self) -> bool:
        """Whether the slot produced a canonical beacon block."""
        return self.status == SLOT_STATUS_PROPOSED

    @property
    def has_execution_block(self) -> bool:
        """Whether a canonical execution block belongs to this slot."""
        return (
            self.is_proposed
            and self.exec_block_number is not None
            and self.exec_block_number > 0
        )


class AttestationRecord(WireModel):
    """An aggregate attestation included in a slot's block."""

    validators: list[int]
    """Validator indices that took part in this vote."""

    beacon_block_root: str = Field(alias="beaconblockroot")
    """Block root the validators voted for, normalized to lowercase hex."""

    slot: int | None = None
    """Slot being attested to, when the source reports it."""

    @field_validator("beacon_block_root", mode="after")
    @classmethod
    def _lower_root(cls, v: str) -> str:
        return v.lower()


class Transaction(WireModel):
    """The sender and recipient of an execution-layer transaction."""

    from_address: str = Field(alias="from")
    to_address: str | None = Field(default=None, alias="to")
    """Recipient. None for contract creation."""

    @field_validator("from_address", "to_address", mode="after")
    @classmethod
    def _hex_address(cls, v: str | None) -> str | None:
        if v is not None and not is_hex_value(v):
            raise ValueError(f"address {v!r} is not 0x-prefixed hex")
        return v

    def involves(self, address: str) -> bool:
        """Whether `address` is the sender or the recipient."""
        return addresses_equal(self.from_address, address) or addresses_equal(
            self.to_address, address
        )


class ExecutionBlock(WireModel):
    """An execution-layer block with full transaction objects."""

    number: int
    transactions: list[Transaction] = Field(default_factory=list)

    @field_validator("number", mode="before")
    @classmethod
    def _number_quantity(cls, v: Any) -> Any:
        return _parse_quantity(v)

    def involves(self, address: str) -> bool:
        """Whether any transaction in the block has `address` as sender or recipient."""
        return any(tx.involves(address) for tx in self.transactions)
