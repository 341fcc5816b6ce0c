"""Reusable type definitions for the collusion oracle."""

from .base import CamelModel, StrictBaseModel, WireModel
from .exceptions import (
    AuditIncompleteError,
    DataUnavailableError,
    FinalizationTimeoutError,
    HexDecodeError,
    LedgerError,
    LedgerRejectedError,
    LedgerUnavailableError,
    OperationCancelledError,
    OracleError,
    ScanInconclusiveError,
    WindowImmutableError,
)
from .hex import address_value, addresses_equal, get_hex_value, is_hex_value
from .units import WEI_PER_GWEI, gwei_to_wei

ValidatorId = int
"""Beacon-chain validator index."""

Epoch = int
"""Beacon-chain epoch number."""

__all__ = [
    # Models
    "CamelModel",
    "StrictBaseModel",
    "WireModel",
    # Aliases
    "Epoch",
    "ValidatorId",
    # Units
    "WEI_PER_GWEI",
    "gwei_to_wei",
    # Hex helpers
    "address_value",
    "addresses_equal",
    "get_hex_value",
    "is_hex_value",
    # Exceptions
    "AuditIncompleteError",
    "DataUnavailableError",
    "FinalizationTimeoutError",
    "HexDecodeError",
    "LedgerError",
    "LedgerRejectedError",
    "LedgerUnavailableError",
    "OperationCancelledError",
    "OracleError",
    "ScanInconclusiveError",
    "WindowImmutableError",
]
