"""Audit of colluding validators' attestations."""

from .compliance import AttestationIndex, ComplianceAuditor, build_attestation_index

__all__ = [
    "AttestationIndex",
    "ComplianceAuditor",
    "build_attestation_index",
]
