"""
Oracle node orchestrator.

Wires the components together and runs them with structured concurrency.

Declarations arrive from the ledger's event stream and are queued. A single
worker takes queued items one at a time, so no two declarations are ever
processed concurrently. Periodic stake refreshes go through the same queue.

When a refresh begins the attack, the window lifecycle runs as one
background task: scan the finalized window, post the outcome, and on success
audit the colluders and post the misbehaving list.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from collusion_oracle.api import ApiServer, ApiServerConfig, OracleStatus
from collusion_oracle.audit import ComplianceAuditor
from collusion_oracle.beacon import BeaconDataClient, FixtureBeaconClient, LiveBeaconClient
from collusion_oracle.config import OracleConfig
from collusion_oracle.coordinator import AttackCoordinator, AttackWindow
from collusion_oracle.crypto import SignatureVerifier
from collusion_oracle.ledger import (
    Declaration,
    InMemoryLedger,
    Ledger,
    Web3Ledger,
    load_declarations,
)
from collusion_oracle.monitor import CensorshipMonitor
from collusion_oracle.stake import StakeAggregator, percentage_controlled
from collusion_oracle.types import (
    AuditIncompleteError,
    DataUnavailableError,
    FinalizationTimeoutError,
    LedgerError,
    OperationCancelledError,
    OracleError,
    ScanInconclusiveError,
)

from .pipeline import DeclarationOutcome, DeclarationPipeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StakeRefreshRequest:
    """Queue item asking the worker to recompute stake without a new declaration."""

    reason: str = "periodic"


WorkItem = Declaration | StakeRefreshRequest
"""Anything the worker consumes."""


@dataclass(slots=True)
class OracleNode:
    """
    Oracle orchestrator.

    Owns the work queue and the attack window task.
    """

    ledger: Ledger
    client: BeaconDataClient
    pipeline: DeclarationPipeline
    coordinator: AttackCoordinator
    monitor: CensorshipMonitor
    auditor: ComplianceAuditor

    api_server: ApiServer | None = field(default=None)
    """Optional status server."""

    stake_refresh_interval: float | None = field(default=None)
    """Seconds between periodic stake refreshes. None disables them."""

    outcomes: Counter[str] = field(default_factory=Counter)
    """Declarations processed, by outcome."""

    _queue: asyncio.Queue[WorkItem] = field(default_factory=asyncio.Queue)
    """Work items awaiting the worker."""

    _shutdown: asyncio.Event = field(default_factory=asyncio.Event)
    """Event signaling shutdown. Also the cancellation signal for the window task."""

    _window_task: asyncio.Task[frozenset[int] | None] | None = field(default=None)
    """The attack window lifecycle, once begun."""

    @classmethod
    def from_config(cls, config: OracleConfig) -> OracleNode:
        """
        Create a fully-wired node from configuration.

        The beacon data source and the ledger are each selected here, once.
        An in-memory ledger is seeded with the fixture's declarations.
        """
        client: BeaconDataClient
        if config.beacon_source == "fixture":
            assert config.fixture_path is not None
            client = FixtureBeaconClient.from_yaml_file(config.fixture_path)
        else:
            assert config.execution_endpoint is not None
            client = LiveBeaconClient(
                execution_url=config.execution_endpoint,
                beacon_url=config.beacon_api_url,
                api_key=config.beacon_api_key,
            )

        ledger: Ledger
        if config.ledger_backend == "memory":
            memory = InMemoryLedger(quorum_threshold=config.quorum_threshold)
            if config.fixture_path is not None:
                for declaration in load_declarations(config.fixture_path):
                    memory.commit(declaration)
            ledger = memory
        else:
            assert config.api_url and config.contract_address and config.private_key
            ledger = Web3Ledger.create(
                config.api_url,
                config.contract_address,
                config.private_key,
                event_poll_interval=config.event_poll_interval,
            )

        coordinator = AttackCoordinator(
            ledger=ledger,
            client=client,
            target_address=config.target_address,
            quorum_threshold=config.quorum_threshold,
            window_epochs=config.attack_window_epochs,
            lead_time_epochs=config.lead_time_epochs,
        )
        pipeline = DeclarationPipeline(
            client=client,
            ledger=ledger,
            verifier=SignatureVerifier(config.ciphersuite),
            aggregator=StakeAggregator(ledger=ledger, client=client),
            coordinator=coordinator,
        )
        node = cls(
            ledger=ledger,
            client=client,
            pipeline=pipeline,
            coordinator=coordinator,
            monitor=CensorshipMonitor(
                client=client,
                poll_interval=config.poll_interval,
                finalization_timeout=config.finalization_timeout,
            ),
            auditor=ComplianceAuditor(client=client),
            stake_refresh_interval=config.stake_refresh_interval,
        )

        if config.status_port is not None:
            node.api_server = ApiServer(
                config=ApiServerConfig(host=config.status_host, port=config.status_port),
                status_getter=node.status,
            )
        return node

    @property
    def window_task(self) -> asyncio.Task[frozenset[int] | None] | None:
        """The attack window lifecycle task, once the attack has begun."""
        return self._window_task

    def status(self) -> OracleStatus:
        """Current progress for the status endpoint."""
        snapshot = self.pipeline.last_snapshot
        return OracleStatus(
            phase=self.coordinator.phase.name,
            window=self.coordinator.window,
            controlled_balance=snapshot.total_controlled_balance if snapshot else None,
            network_balance=snapshot.total_network_balance if snapshot else None,
            controlled_percent=float(percentage_controlled(snapshot)) if snapshot else None,
            declarations=dict(self.outcomes),
        )

    async def run(self, *, install_signal_handlers: bool = True) -> None:
        """
        Run until shutdown.

        Args:
            install_signal_handlers: Whether to handle SIGINT/SIGTERM.
                Disable for testing or non-main threads.
        """
        if install_signal_handlers:
            self._install_signal_handlers()

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [
                    tg.create_task(self._pump()),
                    tg.create_task(self._work()),
                ]
                if self.stake_refresh_interval is not None:
                    tasks.append(tg.create_task(self._refresh_periodically()))
                if self.api_server is not None:
                    tg.create_task(self.api_server.run())
                tg.create_task(self._wait_shutdown(tasks))
        finally:
            if isinstance(self.client, LiveBeaconClient):
                await self.client.close()

    def _install_signal_handlers(self) -> None:
        """
        Install signal handlers for graceful shutdown.

        Silently ignores errors if handlers cannot be installed.
        This happens in non-main threads or embedded contexts.
        """
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._shutdown.set)
        except (ValueError, RuntimeError):
            # Cannot add handlers outside main thread.
            pass

    async def _wait_shutdown(self, tasks: list[asyncio.Task[None]]) -> None:
        """Wait for the shutdown signal, then stop the loops and the window task."""
        await self._shutdown.wait()

        for task in tasks:
            task.cancel()
        if self.api_server is not None:
            self.api_server.stop()

        # The window task observes the shutdown event at its next check.
        if self._window_task is not None:
            await self._window_task

    def stop(self) -> None:
        """Request graceful shutdown."""
        self._shutdown.set()

    @property
    def is_running(self) -> bool:
        """Check if node is currently running."""
        return not self._shutdown.is_set()

    # -- Loops --

    async def _pump(self) -> None:
        """Move declarations from the ledger's event stream into the queue."""
        async for declaration in self.ledger.declarations():
            await self._queue.put(declaration)

    async def _work(self) -> None:
        """Handle queued items strictly one at a time."""
        while True:
            item = await self._queue.get()
            try:
                match item:
                    case Declaration():
                        await self.handle_declaration(item)
                    case StakeRefreshRequest():
                        await self.handle_refresh(item)
            finally:
                self._queue.task_done()

    async def _refresh_periodically(self) -> None:
        assert self.stake_refresh_interval is not None
        while True:
            await asyncio.sleep(self.stake_refresh_interval)
            await self._queue.put(StakeRefreshRequest())

    def submit(self, item: WorkItem) -> None:
        """Queue a work item for the worker."""
        self._queue.put_nowait(item)

    # -- Handlers --

    async def handle_declaration(self, declaration: Declaration) -> DeclarationOutcome:
        """Process one declaration and start the window task if the attack began."""
        outcome = await self.pipeline.process(declaration)
        self.outcomes[outcome.value] += 1
        self._start_window_task()
        return outcome

    async def handle_refresh(self, request: StakeRefreshRequest) -> None:
        """Recompute stake and start the window task if the attack began."""
        logger.debug("Stake refresh (%s)", request.reason)
        try:
            await self.pipeline.refresh()
        except (DataUnavailableError, LedgerError) as e:
            logger.warning("Stake refresh stopped: %s", e)
        self._start_window_task()

    def _start_window_task(self) -> None:
        window = self.coordinator.window
        if window is None or self._window_task is not None:
            return
        self._window_task = asyncio.create_task(self.run_attack_window(window))

    async def run_attack_window(self, window: AttackWindow) -> frozenset[int] | None:
        """
        Scan the window, post the outcome and, on success, the misbehaving list.

        Every failure is logged and ends the lifecycle without posting
        anything further.

        Returns:
            The misbehaving validators that were posted, or None if nothing was.
        """
        try:
            return await self._run_attack_window(window)
        except OracleError:
            logger.exception("Attack window lifecycle stopped")
            return None

    async def _run_attack_window(self, window: AttackWindow) -> frozenset[int] | None:
        try:
            result = await self.monitor.scan(window, self._shutdown)
        except (ScanInconclusiveError, FinalizationTimeoutError) as e:
            logger.error("Attack outcome not posted: %s", e)
            return None
        except OperationCancelledError:
            logger.info("Attack window monitoring cancelled")
            return None

        try:
            await self.coordinator.record_outcome(result)
        except LedgerError as e:
            logger.error("Failed to post attack outcome: %s", e)
            return None

        if not result.success:
            logger.info("Attack failed at epoch %s", result.failing_epoch)
            return None

        try:
            colluder_ids = await self.ledger.get_colluding_validator_ids()
            misbehaving = await self.auditor.audit(colluder_ids, window, self._shutdown)
        except (AuditIncompleteError, LedgerError) as e:
            logger.error("Misbehaving validators not posted: %s", e)
            return None
        except OperationCancelledError:
            logger.info("Compliance audit cancelled")
            return None

        try:
            await self.ledger.post_misbehaving_validators(sorted(misbehaving))
        except LedgerError as e:
            logger.error("Failed to post misbehaving validators: %s", e)
            return None
        return misbehaving
