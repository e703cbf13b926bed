# src/oraclelens/verify/__init__.py

"""
Authenticity verification for OracleLens.
Real attestation when configured, deterministic simulation otherwise.
"""

from .attestation import AttestationClient, AttestationVerifier, HttpAttestationClient
from .base import VerificationRequest, Verifier
from .orchestrator import (
    VerificationOrchestrator,
    VerificationState,
    build_verification_orchestrator,
)
from .payload_cache import PendingPayload, PendingPayloadCache, build_oracle_data_document
from .simulated import SimulatedVerifier

__all__ = [
    "AttestationClient",
    "AttestationVerifier",
    "HttpAttestationClient",
    "VerificationRequest",
    "Verifier",
    "VerificationOrchestrator",
    "VerificationState",
    "build_verification_orchestrator",
    "PendingPayload",
    "PendingPayloadCache",
    "build_oracle_data_document",
    "SimulatedVerifier",
]
