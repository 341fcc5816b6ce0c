"""Tests for declaration processing."""

from __future__ import annotations

import pytest

from collusion_oracle import metrics
from collusion_oracle.beacon import FixtureBeaconClient
from collusion_oracle.coordinator import AttackCoordinator, AttackPhase
from collusion_oracle.crypto import SignatureVerifier
from collusion_oracle.ledger import Declaration, InMemoryLedger
from collusion_oracle.node import DeclarationOutcome, DeclarationPipeline
from collusion_oracle.stake import StakeAggregator
from tests.collusion_oracle.helpers import (
    GWEI_PER_VALIDATOR,
    TARGET_ADDRESS,
    FailingLedger,
    add_epochs,
    make_declaration,
    make_validator,
    run_async,
)


def _pipeline(client: FixtureBeaconClient, ledger: InMemoryLedger) -> DeclarationPipeline:
    return DeclarationPipeline(
        client=client,
        ledger=ledger,
        verifier=SignatureVerifier(),
        aggregator=StakeAggregator(ledger=ledger, client=client),
        coordinator=AttackCoordinator(
            ledger=ledger,
            client=client,
            target_address=TARGET_ADDRESS,
            quorum_threshold=66,
        ),
    )


def _process(pipeline: DeclarationPipeline, declaration: Declaration) -> DeclarationOutcome:
    """Commit on the ledger, then process the emitted declaration."""
    assert isinstance(pipeline.ledger, InMemoryLedger)
    pipeline.ledger.commit(declaration)
    return run_async(pipeline.process(declaration))


@pytest.fixture
def chain(client: FixtureBeaconClient) -> FixtureBeaconClient:
    """Three equal validators and a finalized epoch 10."""
    add_epochs(client, range(11))
    for vid in range(3):
        client.set_validator(make_validator(vid))
    return client


class TestProcess:
    """Tests for taking a declaration to its outcome."""

    def test_valid_declaration_is_accepted(
        self, chain: FixtureBeaconClient, ledger: InMemoryLedger
    ) -> None:
        """A verified declaration posts the validator and refreshes the stake."""
        pipeline = _pipeline(chain, ledger)
        accepted_before = metrics.declarations_processed.labels(outcome="accepted")._value.get()

        assert _process(pipeline, make_declaration(0)) == DeclarationOutcome.ACCEPTED

        entry = ledger.validator(0)
        assert entry is not None
        assert entry.balance_wei == GWEI_PER_VALIDATOR * 10**9
        assert entry.status == "active_online"
        assert ledger.total_stake_wei == 3 * GWEI_PER_VALIDATOR * 10**9
        assert ledger.writes == ["post_validator_info", "update_total_stake"]

        assert pipeline.last_snapshot is not None
        assert pipeline.last_snapshot.total_controlled_balance == GWEI_PER_VALIDATOR
        assert metrics.controlled_stake_gwei._value.get() == GWEI_PER_VALIDATOR
        assert (
            metrics.declarations_processed.labels(outcome="accepted")._value.get()
            == accepted_before + 1
        )

    def test_wrong_key_is_rejected(
        self, chain: FixtureBeaconClient, ledger: InMemoryLedger
    ) -> None:
        """A signature by a key other than the validator's is rejected; nothing is posted."""
        pipeline = _pipeline(chain, ledger)

        outcome = _process(pipeline, make_declaration(0, secret=99))

        assert outcome == DeclarationOutcome.REJECTED
        assert ledger.writes == []
        assert pipeline.last_snapshot is None

    def test_malformed_signature_is_rejected(
        self, chain: FixtureBeaconClient, ledger: InMemoryLedger
    ) -> None:
        """A signature that is not hex is a rejection, not an error."""
        pipeline = _pipeline(chain, ledger)

        assert _process(pipeline, make_declaration(0, signature="0xzz")) == (
            DeclarationOutcome.REJECTED
        )

    def test_missing_record_aborts(
        self, chain: FixtureBeaconClient, ledger: InMemoryLedger
    ) -> None:
        """Without the validator's record there is no key to verify against."""
        pipeline = _pipeline(chain, ledger)

        assert _process(pipeline, make_declaration(5)) == DeclarationOutcome.ABORTED
        assert ledger.writes == []

    def test_ledger_failure_aborts(self, chain: FixtureBeaconClient) -> None:
        """A ledger that cannot be reached aborts the declaration without retrying."""
        ledger = FailingLedger(fail_on=frozenset({"post_validator_info"}))
        pipeline = _pipeline(chain, ledger)

        assert _process(pipeline, make_declaration(0)) == DeclarationOutcome.ABORTED
        assert ledger.writes == []

    def test_unavailable_colluder_record_aborts(
        self, chain: FixtureBeaconClient, ledger: InMemoryLedger
    ) -> None:
        """A refresh that cannot read another colluder's record aborts."""
        ledger.commit(make_declaration(8, signature="0x00"))
        pipeline = _pipeline(chain, ledger)

        assert _process(pipeline, make_declaration(0)) == DeclarationOutcome.ABORTED
        # The validator's own info was already accepted by the ledger.
        assert ledger.writes == ["post_validator_info"]


class TestQuorum:
    """Tests for beginning the attack from the pipeline."""

    def test_crossing_quorum_begins_attack(
        self, chain: FixtureBeaconClient, ledger: InMemoryLedger
    ) -> None:
        """The declaration that crosses the threshold begins the attack."""
        pipeline = _pipeline(chain, ledger)

        _process(pipeline, make_declaration(0))
        assert pipeline.coordinator.window is None

        _process(pipeline, make_declaration(1))

        window = pipeline.coordinator.window
        assert window is not None
        assert window.start_epoch == 11
        assert pipeline.coordinator.phase == AttackPhase.BEGUN
        assert ledger.attack_begun

    def test_refresh_without_declaration(
        self, chain: FixtureBeaconClient, ledger: InMemoryLedger
    ) -> None:
        """A refresh with no colluders reports the network total only."""
        pipeline = _pipeline(chain, ledger)

        assert run_async(pipeline.refresh()) is None
        assert ledger.writes == ["update_total_stake"]
        assert pipeline.last_snapshot is not None
        assert pipeline.last_snapshot.total_controlled_balance == 0
