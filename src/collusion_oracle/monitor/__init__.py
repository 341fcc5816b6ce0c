"""Censorship scanning of the finalized attack window."""

from .censorship import (
    DEFAULT_FINALIZATION_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    CensorshipMonitor,
    ScanResult,
)

__all__ = [
    "DEFAULT_FINALIZATION_TIMEOUT",
    "DEFAULT_POLL_INTERVAL",
    "CensorshipMonitor",
    "ScanResult",
]
