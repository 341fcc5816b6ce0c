"""
Access to the collusion contract.

- Ledger: the protocol the oracle depends on
- Web3Ledger: the deployed contract over JSON-RPC
- InMemoryLedger: a simulation of the contract for offline runs and tests
"""

from .interface import Declaration, Ledger
from .memory import InMemoryLedger, LedgerValidator, load_declarations
from .web3_ledger import Web3Ledger

__all__ = [
    "Declaration",
    "InMemoryLedger",
    "Ledger",
    "LedgerValidator",
    "Web3Ledger",
    "load_declarations",
]
