"""Test helpers for collusion oracle unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TypeVar

from .builders import (
    COLLUDER_ADDRESS,
    GWEI_PER_VALIDATOR,
    MESSAGE,
    OTHER_ADDRESS,
    SLOTS_PER_EPOCH,
    TARGET_ADDRESS,
    add_epochs,
    attest,
    block_number_for,
    finalize_epochs,
    make_block,
    make_declaration,
    make_public_key,
    make_root,
    make_slot,
    make_validator,
    sign,
)
from .mocks import FailingLedger, RecordingSleep

_T = TypeVar("_T")


def run_async(coro: Coroutine[object, object, _T]) -> _T:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


__all__ = [
    # Builders
    "add_epochs",
    "attest",
    "block_number_for",
    "finalize_epochs",
    "make_block",
    "make_declaration",
    "make_public_key",
    "make_root",
    "make_slot",
    "make_validator",
    "sign",
    # Mocks
    "FailingLedger",
    "RecordingSleep",
    # Constants
    "COLLUDER_ADDRESS",
    "GWEI_PER_VALIDATOR",
    "MESSAGE",
    "OTHER_ADDRESS",
    "SLOTS_PER_EPOCH",
    "TARGET_ADDRESS",
    # Async utilities
    "run_async",
]
