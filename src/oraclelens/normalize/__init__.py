# src/oraclelens/normalize/__init__.py

"""
Normalization layer for OracleLens.
Validates requests and converts raw oracle data into typed evaluation contexts.
"""

from .schema import (
    EvaluateRequest,
    EvaluateResponse,
    EvaluationContext,
    EvaluationResult,
    FactorScores,
    FormulaWeights,
    TrustLevel,
    VerificationMode,
    VerificationResult,
    WeightProfile,
)
from .hash_utils import compute_sha256
from .transformer import build_context, classify_payload, validate_request

__all__ = [
    "EvaluateRequest",
    "EvaluateResponse",
    "EvaluationContext",
    "EvaluationResult",
    "FactorScores",
    "FormulaWeights",
    "TrustLevel",
    "VerificationMode",
    "VerificationResult",
    "WeightProfile",
    "compute_sha256",
    "build_context",
    "classify_payload",
    "validate_request",
]
