"""Exception hierarchy for the oracle."""

from __future__ import annotations

from typing import Any


class OracleError(Exception):
    """
    Base exception for all oracle errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class HexDecodeError(OracleError):
    """
    Raised when a value is not a `0x`-prefixed, even-length hex string.

    Attributes:
        value: The offending value (may be truncated for display).
        reason: What was wrong with it.
    """

    def __init__(self, value: Any, reason: str) -> None:
        self.value = value
        self.reason = reason

        value_repr = repr(value)
        if len(value_repr) > 50:
            value_repr = value_repr[:47] + "..."

        super().__init__(f"Invalid hex value {value_repr}: {reason}")


class DataUnavailableError(OracleError):
    """
    Raised when a data source returned no data for a required record.

    Attributes:
        resource: Kind of record (e.g., "validator", "epoch").
        key: Identifier of the record that was requested.
    """

    def __init__(self, resource: str, key: Any) -> None:
        self.resource = resource
        self.key = key
        super().__init__(f"No data available for {resource} {key}")


class LedgerError(OracleError):
    """Base class for errors raised by ledger operations."""


class LedgerRejectedError(LedgerError):
    """
    Raised when the ledger refuses an operation because a precondition failed.

    These are expected outcomes ("Attack has already begun.", "Contract has
    expired."). Callers log them and abandon the attempt without retrying.

    Attributes:
        operation: The ledger operation that was refused.
        reason: The reason given by the ledger.
    """

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Ledger rejected {operation}: {reason}")


class LedgerUnavailableError(LedgerError):
    """
    Raised when the ledger could not be reached or did not answer.

    Attributes:
        operation: The ledger operation that was attempted.
        detail: Transport-level description of the failure.
    """

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Ledger unavailable during {operation}: {detail}")


class ScanInconclusiveError(OracleError):
    """
    Raised when the censorship scan cannot read part of the window.

    A missing epoch or block never counts as clean; the scan aborts instead.

    Attributes:
        epoch: Epoch being scanned when data went missing.
        detail: What could not be fetched.
    """

    def __init__(self, epoch: int, detail: str) -> None:
        self.epoch = epoch
        self.detail = detail
        super().__init__(f"Scan inconclusive at epoch {epoch}: {detail}")


class AuditIncompleteError(OracleError):
    """
    Raised when the compliance audit cannot fetch data it depends on.

    The audit result is void; no partial misbehaving list is produced.

    Attributes:
        detail: What could not be fetched.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Audit incomplete: {detail}")


class FinalizationTimeoutError(OracleError):
    """
    Raised when an epoch does not finalize before the configured deadline.

    Attributes:
        epoch: Epoch that was awaited.
        timeout: Deadline in seconds.
    """

    def __init__(self, epoch: int, timeout: float) -> None:
        self.epoch = epoch
        self.timeout = timeout
        super().__init__(f"Epoch {epoch} not finalized after {timeout:.0f}s")


class OperationCancelledError(OracleError):
    """
    Raised when a long-running operation observes its cancellation signal.

    Attributes:
        operation: Name of the cancelled operation.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} cancelled")


class WindowImmutableError(OracleError):
    """Raised on an attempt to replace an attack window that has already begun."""
