"""Tests for the compliance audit."""

from __future__ import annotations

import asyncio

import pytest

from collusion_oracle import metrics
from collusion_oracle.audit import ComplianceAuditor, build_attestation_index
from collusion_oracle.beacon import AttestationRecord, FixtureBeaconClient
from collusion_oracle.coordinator import AttackWindow
from collusion_oracle.types import AuditIncompleteError, OperationCancelledError
from tests.collusion_oracle.helpers import (
    SLOTS_PER_EPOCH,
    TARGET_ADDRESS,
    add_epochs,
    attest,
    block_number_for,
    make_root,
    run_async,
)

WINDOW = AttackWindow(target_address=TARGET_ADDRESS, start_epoch=12, duration_in_epochs=2)

COLLUDERS = [1, 2, 3]

# Slots of the window's epochs.
S12 = 12 * SLOTS_PER_EPOCH
S13 = 13 * SLOTS_PER_EPOCH
S14 = 14 * SLOTS_PER_EPOCH


class _NoAttestationsAt(FixtureBeaconClient):
    """Fixture client that cannot serve the attestations of one slot."""

    unavailable_slot: int = -1

    async def fetch_attestations(self, slot: int) -> list[AttestationRecord] | None:
        if slot == self.unavailable_slot:
            return None
        return await FixtureBeaconClient.fetch_attestations(self, slot)


def _audit(client: FixtureBeaconClient, validator_ids: list[int] = COLLUDERS) -> frozenset[int]:
    return run_async(ComplianceAuditor(client=client).audit(validator_ids, WINDOW))


class TestBuildAttestationIndex:
    """Tests for grouping votes by validator."""

    def test_groups_distinct_roots_in_order(self) -> None:
        """Each validator's roots are distinct and in first-seen order."""
        attestations = [
            AttestationRecord(validators=[1, 2], beacon_block_root=make_root(5)),
            AttestationRecord(validators=[1], beacon_block_root=make_root(6)),
            AttestationRecord(validators=[1, 3], beacon_block_root=make_root(5)),
        ]

        index = build_attestation_index(attestations)

        assert index == {
            1: [make_root(5), make_root(6)],
            2: [make_root(5)],
            3: [make_root(5)],
        }

    def test_restricts_to_validator_ids(self) -> None:
        """Validators outside the requested set are dropped."""
        attestations = [AttestationRecord(validators=[1, 2, 3], beacon_block_root=make_root(5))]

        assert build_attestation_index(attestations, {2}) == {2: [make_root(5)]}


class TestAudit:
    """Tests for auditing colluders' votes."""

    def test_no_votes_is_compliant(self, client: FixtureBeaconClient) -> None:
        """Abstaining is not misbehavior."""
        add_epochs(client, range(10, 15), target_slots=[S12 + 1])

        assert _audit(client) == frozenset()
        assert metrics.misbehaving_validators._value.get() == 0

    def test_votes_for_clean_blocks_are_compliant(self, client: FixtureBeaconClient) -> None:
        """Voting for blocks without the target is what colluders should do."""
        add_epochs(client, range(10, 15))
        attest(client, S12 + 1, S12, COLLUDERS)
        attest(client, S13 + 1, S13, COLLUDERS)

        assert _audit(client) == frozenset()

    def test_vote_for_target_block_is_misbehavior(self, client: FixtureBeaconClient) -> None:
        """Validators that voted for a block including the target are reported."""
        add_epochs(client, range(10, 15), target_slots=[S12 + 1])
        attest(client, S12 + 2, S12 + 1, [1, 3])
        attest(client, S12 + 2, S12, [2])

        assert _audit(client) == frozenset({1, 3})
        assert metrics.misbehaving_validators._value.get() == 2

    def test_last_epoch_votes_included_after_window(self, client: FixtureBeaconClient) -> None:
        """A vote for the window's last slot is found in the following epoch."""
        add_epochs(client, range(10, 15), target_slots=[S14 - 1])
        attest(client, S14, S14 - 1, [2])

        assert _audit(client) == frozenset({2})

    def test_votes_outside_window_do_not_count(self, client: FixtureBeaconClient) -> None:
        """A target block before or after the window is not a violation."""
        add_epochs(client, range(10, 15), target_slots=[S12 - 1, S14 + 1])
        # Vote for epoch 11's block, included in the window.
        attest(client, S12, S12 - 1, [1])
        # Vote for epoch 14's block, included in epoch 14.
        attest(client, S14 + 2, S14 + 1, [2])

        assert _audit(client) == frozenset()

    def test_non_colluders_are_not_audited(self, client: FixtureBeaconClient) -> None:
        """Only the requested validators can be reported."""
        add_epochs(client, range(10, 15), target_slots=[S12 + 1])
        attest(client, S12 + 2, S12 + 1, [7])

        assert _audit(client) == frozenset()

    def test_audit_is_repeatable(self, client: FixtureBeaconClient) -> None:
        """Unchanged chain data gives the same result on every run."""
        add_epochs(client, range(10, 15), target_slots=[S13 + 2])
        attest(client, S13 + 3, S13 + 2, [1, 2])

        assert _audit(client) == _audit(client) == frozenset({1, 2})

    def test_unknown_root_is_incomplete(self, client: FixtureBeaconClient) -> None:
        """A voted root that cannot be resolved voids the audit."""
        add_epochs(client, range(10, 15))
        client.add_attestations(
            S12 + 1,
            [AttestationRecord(validators=[1], beacon_block_root="0x" + "ff" * 32)],
        )

        with pytest.raises(AuditIncompleteError):
            _audit(client)

    def test_missing_block_is_incomplete(self, client: FixtureBeaconClient) -> None:
        """A voted block in the window that cannot be read voids the audit."""
        add_epochs(client, range(10, 15))
        attest(client, S12 + 2, S12 + 1, [1])
        del client._blocks[block_number_for(S12 + 1)]

        with pytest.raises(AuditIncompleteError, match="execution block"):
            _audit(client)

    def test_missing_attestations_are_incomplete(self) -> None:
        """A slot whose attestations cannot be read voids the audit."""
        client = _NoAttestationsAt()
        client.unavailable_slot = S13 + 1
        add_epochs(client, range(10, 15))

        with pytest.raises(AuditIncompleteError, match="attestations"):
            _audit(client)

    def test_cancel(self, client: FixtureBeaconClient) -> None:
        """A set cancel event stops the audit."""
        add_epochs(client, range(10, 15))
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(OperationCancelledError):
            run_async(ComplianceAuditor(client=client).audit(COLLUDERS, WINDOW, cancel))
