"""Cryptographic verification of colluder declarations."""

from .verifier import Ciphersuite, SignatureVerifier

__all__ = [
    "Ciphersuite",
    "SignatureVerifier",
]
