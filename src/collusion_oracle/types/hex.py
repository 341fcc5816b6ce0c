"""
Hex string decoding.

Every byte string the oracle receives (signatures, messages, public keys,
block roots, addresses) arrives as text. The accepted form is strict:

- The `0x` prefix is required
- The body holds an even number of hex digits, in any case
- The empty body `0x` decodes to zero bytes

Anything else is malformed input, which is a different failure from a
well-formed value that fails verification.
"""

from __future__ import annotations

import re
from typing import Any

from typing_extensions import Final

from .exceptions import HexDecodeError

HEX_PREFIX: Final = "0x"
"""Required prefix for hex-encoded values."""

_HEX_BODY = re.compile(r"[0-9a-fA-F]*")


def get_hex_value(value: Any) -> bytes:
    """
    Decode a `0x`-prefixed hex string to raw bytes.

    Args:
        value: The text to decode.

    Returns:
        The decoded bytes.

    Raises:
        HexDecodeError: If the prefix is missing, the body has odd length,
            or the body contains a non-hex character.
    """
    if not isinstance(value, str):
        raise HexDecodeError(value, f"expected str, got {type(value).__name__}")
    if not value.startswith(HEX_PREFIX):
        raise HexDecodeError(value, "missing 0x prefix")

    body = value[len(HEX_PREFIX) :]
    if _HEX_BODY.fullmatch(body) is None:
        raise HexDecodeError(value, "non-hex character")
    if len(body) % 2 != 0:
        raise HexDecodeError(value, "odd number of hex digits")

    return bytes.fromhex(body)


def is_hex_value(value: Any) -> bool:
    """Check whether `value` would decode with `get_hex_value`."""
    try:
        get_hex_value(value)
    except HexDecodeError:
        return False
    return True


def address_value(address: str) -> int:
    """
    Canonical numeric value of an address.

    Checksummed, lowercase and uppercase spellings of one address map to the
    same integer. Leading zeros are not significant.

    Raises:
        HexDecodeError: If the address is not valid hex.
    """
    return int.from_bytes(get_hex_value(address), "big")


def addresses_equal(left: str | None, right: str | None) -> bool:
    """
    Compare two addresses by numeric value.

    A missing address (e.g., the recipient of a contract creation) equals nothing.
    """
    if left is None or right is None:
        return False
    return address_value(left) == address_value(right)
