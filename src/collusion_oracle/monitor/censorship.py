"""
Censorship monitoring.

Once the attack window has finalized, every execution block produced during
the window is checked for a transaction sent by or to the target address.

A single violating block fails the whole window. Blocks are checked in
ascending epoch and slot order, and the scan stops at the first violation.

Data that cannot be read never counts as clean: the scan aborts and reports
itself inconclusive rather than skipping the epoch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from collusion_oracle import metrics
from collusion_oracle.types import (
    FinalizationTimeoutError,
    OperationCancelledError,
    ScanInconclusiveError,
)

if TYPE_CHECKING:
    from collusion_oracle.beacon import BeaconDataClient, EpochInfo
    from collusion_oracle.coordinator import AttackWindow

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
"""Seconds between finalization polls."""

DEFAULT_FINALIZATION_TIMEOUT = 2 * 60 * 60.0
"""Longest wait for the window to finalize, in seconds."""


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Outcome of a censorship scan."""

    success: bool
    """True if no block in the window involved the target."""

    failing_epoch: int | None = None
    """Epoch of the first violating block, when the scan failed."""


@dataclass(slots=True)
class CensorshipMonitor:
    """Waits for the window to finalize, then scans it for the target."""

    client: BeaconDataClient

    poll_interval: float = DEFAULT_POLL_INTERVAL
    """Seconds between finalization polls."""

    finalization_timeout: float = DEFAULT_FINALIZATION_TIMEOUT
    """Deadline for the window to finalize, in seconds."""

    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    """Sleep function (injectable for testing)."""

    clock: Callable[[], float] = field(default=time.monotonic)
    """Monotonic time source (injectable for testing)."""

    async def wait_for_finalization(
        self, epoch: int, cancel: asyncio.Event | None = None
    ) -> EpochInfo:
        """
        Poll until `epoch` is finalized.

        Absent results are retried like unfinalized ones. This is the only
        read in the oracle that is retried.

        Raises:
            FinalizationTimeoutError: If the deadline passes first.
            OperationCancelledError: If `cancel` is set.
        """
        deadline = self.clock() + self.finalization_timeout

        while True:
            if cancel is not None and cancel.is_set():
                raise OperationCancelledError("finalization wait")

            info = await self.client.fetch_epoch(epoch)
            if info is not None and info.finalized:
                logger.info("Epoch %d finalized", epoch)
                return info
            if info is None:
                logger.debug("Epoch %d unavailable, retrying", epoch)

            if self.clock() >= deadline:
                raise FinalizationTimeoutError(epoch, self.finalization_timeout)

            await self.sleep(self.poll_interval)

    async def scan(self, window: AttackWindow, cancel: asyncio.Event | None = None) -> ScanResult:
        """
        Check every block of the window for the target address.

        Raises:
            ScanInconclusiveError: If any epoch's slots or any block is absent.
            FinalizationTimeoutError: If the window does not finalize in time.
            OperationCancelledError: If `cancel` is set.
        """
        await self.wait_for_finalization(window.end_epoch, cancel)

        for epoch in range(window.start_epoch, window.end_epoch):
            if cancel is not None and cancel.is_set():
                raise OperationCancelledError("censorship scan")

            slots = await self.client.fetch_slots_for_epoch(epoch)
            if slots is None:
                raise ScanInconclusiveError(epoch, "slots unavailable")

            for slot in slots:
                # Missed and orphaned slots have no canonical block.
                if not slot.has_execution_block:
                    continue

                assert slot.exec_block_number is not None
                block = await self.client.fetch_execution_block(slot.exec_block_number)
                if block is None:
                    raise ScanInconclusiveError(
                        epoch, f"execution block {slot.exec_block_number} unavailable"
                    )
                metrics.blocks_scanned.inc()

                if block.involves(window.target_address):
                    logger.warning(
                        "Target %s found in block %d (slot %d, epoch %d)",
                        window.target_address,
                        block.number,
                        slot.slot,
                        epoch,
                    )
                    return ScanResult(success=False, failing_epoch=epoch)

            metrics.epochs_scanned.inc()
            logger.debug("Epoch %d clean (%d slots)", epoch, len(slots))

        logger.info(
            "No block in epochs [%d, %d) involved the target",
            window.start_epoch,
            window.end_epoch,
        )
        return ScanResult(success=True)
