"""
Balance units.

The beacon chain reports balances in gwei. The ledger accounts in wei.
Conversions are exact integer arithmetic.
"""

from typing_extensions import Final

WEI_PER_GWEI: Final = 10**9
"""Number of wei in one gwei."""


def gwei_to_wei(amount_gwei: int) -> int:
    """Convert a gwei amount to wei."""
    if amount_gwei < 0:
        raise ValueError(f"Balance cannot be negative: {amount_gwei}")
    return amount_gwei * WEI_PER_GWEI
