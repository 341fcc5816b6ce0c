"""Declaration processing and the oracle node orchestrator."""

from .node import OracleNode, StakeRefreshRequest, WorkItem
from .pipeline import DeclarationOutcome, DeclarationPipeline

__all__ = [
    "DeclarationOutcome",
    "DeclarationPipeline",
    "OracleNode",
    "StakeRefreshRequest",
    "WorkItem",
]
