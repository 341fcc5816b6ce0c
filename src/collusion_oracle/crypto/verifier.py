"""
BLS signature verification for colluder declarations.

A declaration claims that the holder of a validator's key signed a message
(the ledger's commitment hash for the colluder and the validator). The oracle
accepts the declaration only if the signature verifies under the validator's
public key as published by the beacon chain.

Ciphersuites
------------
BLS12-381 signatures are domain-separated by a hash-to-curve tag:

- basic: `BLS_SIG_BLS12381G2_XMD:SHA-256_SSWU_RO_NUL_`, the default tag of
  common signing libraries (and of the colluders' signing script)
- pop: `BLS_SIG_BLS12381G2_XMD:SHA-256_SSWU_RO_POP_`, the proof-of-possession
  tag used by the consensus layer itself

Both place public keys in G1 (48 bytes) and signatures in G2 (96 bytes).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from py_ecc.bls import G2Basic, G2ProofOfPossession

from collusion_oracle.types import HexDecodeError, get_hex_value

logger = logging.getLogger(__name__)


class Ciphersuite(str, Enum):
    """Supported BLS ciphersuites."""

    BASIC = "basic"
    POP = "pop"

    @property
    def scheme(self) -> Any:
        """The py_ecc scheme implementing this ciphersuite."""
        return G2Basic if self is Ciphersuite.BASIC else G2ProofOfPossession


@dataclass(frozen=True, slots=True)
class SignatureVerifier:
    """
    Verifies that a declaration was signed by the claimed validator key.

    Pure over its inputs. Never raises: malformed hex and library failures
    are logged and reported as an invalid signature.
    """

    ciphersuite: Ciphersuite = field(default=Ciphersuite.BASIC)
    """Domain separation tag family to verify against."""

    def verify(self, signature: str, message: str, claimed_public_key: str) -> bool:
        """
        Verify a BLS signature over exactly the given message bytes.

        Args:
            signature: Hex-encoded G2 signature with `0x` prefix.
            message: Hex-encoded message with `0x` prefix.
            claimed_public_key: Hex-encoded G1 public key with `0x` prefix.

        Returns:
            True only if the signature is cryptographically valid.
        """
        try:
            signature_bytes = get_hex_value(signature)
            message_bytes = get_hex_value(message)
            public_key_bytes = get_hex_value(claimed_public_key)
        except HexDecodeError as e:
            logger.warning("Malformed declaration input: %s", e)
            return False

        try:
            valid = bool(
                self.ciphersuite.scheme.Verify(public_key_bytes, message_bytes, signature_bytes)
            )
        except Exception as e:
            logger.error("BLS verification failed with %s: %s", type(e).__name__, e)
            return False

        if not valid:
            logger.info(
                "Signature does not verify under public key %s", claimed_public_key[:18]
            )
        return valid
