"""Tests for hex decoding and address comparison."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from collusion_oracle.types import (
    HexDecodeError,
    address_value,
    addresses_equal,
    get_hex_value,
    is_hex_value,
)


class TestGetHexValue:
    """Tests for strict 0x-prefixed hex decoding."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("0x", b""),
            ("0x00", b"\x00"),
            ("0xdeadBEEF", b"\xde\xad\xbe\xef"),
            ("0xFF", b"\xff"),
        ],
    )
    def test_decodes_valid_values(self, text: str, expected: bytes) -> None:
        """Well-formed values decode to their bytes regardless of digit case."""
        assert get_hex_value(text) == expected

    @pytest.mark.parametrize(
        ("text", "reason"),
        [
            ("deadbeef", "missing 0x prefix"),
            ("0Xdeadbeef", "missing 0x prefix"),
            ("0xabc", "odd number of hex digits"),
            ("0xzz", "non-hex character"),
            ("0x de", "non-hex character"),
            ("", "missing 0x prefix"),
        ],
    )
    def test_rejects_malformed_values(self, text: str, reason: str) -> None:
        """Missing prefix, odd length, and non-hex characters are all malformed."""
        with pytest.raises(HexDecodeError) as exc_info:
            get_hex_value(text)

        assert exc_info.value.reason == reason

    def test_rejects_non_string(self) -> None:
        """Bytes are not accepted in place of text."""
        with pytest.raises(HexDecodeError, match="expected str"):
            get_hex_value(b"0x00")

    def test_error_message_truncates_long_values(self) -> None:
        """Very long offending values are shortened in the message."""
        with pytest.raises(HexDecodeError) as exc_info:
            get_hex_value("0x" + "g" * 200)

        assert "..." in str(exc_info.value)
        assert len(str(exc_info.value)) < 120

    @given(st.binary(max_size=128))
    def test_encoded_bytes_decode_back(self, data: bytes) -> None:
        """Any byte string written as 0x-hex decodes to itself, in either case."""
        assert get_hex_value("0x" + data.hex()) == data
        assert get_hex_value("0x" + data.hex().upper()) == data

    @given(st.text(max_size=40))
    def test_never_raises_anything_but_hex_decode_error(self, text: str) -> None:
        """Arbitrary text either decodes or raises HexDecodeError."""
        assert is_hex_value(text) in (True, False)
        if not text.startswith("0x"):
            assert not is_hex_value(text)


class TestAddresses:
    """Tests for numeric address comparison."""

    def test_checksummed_and_lowercase_spellings_match(self) -> None:
        """Case does not matter when comparing addresses."""
        checksummed = "0x000000000000000000000000000000000000dEaD"
        assert addresses_equal(checksummed, checksummed.lower())
        assert addresses_equal(checksummed, "0x000000000000000000000000000000000000DEAD")

    def test_different_addresses_do_not_match(self) -> None:
        """Distinct addresses compare unequal."""
        assert not addresses_equal(
            "0x000000000000000000000000000000000000dEaD",
            "0x000000000000000000000000000000000000bEEF",
        )

    def test_missing_address_equals_nothing(self) -> None:
        """A contract-creation recipient (None) never matches."""
        assert not addresses_equal(None, "0x00")
        assert not addresses_equal("0x00", None)
        assert not addresses_equal(None, None)

    def test_address_value_ignores_leading_zeros(self) -> None:
        """The numeric value is what is compared."""
        assert address_value("0x00ff") == address_value("0xff") == 255
