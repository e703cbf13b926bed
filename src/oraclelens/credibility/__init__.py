# src/oraclelens/credibility/__init__.py

"""
Credibility scoring for OracleLens.
Computes the four trust factors and aggregates them into a final score.
"""

from .factors import (
    calculate_accuracy_score,
    calculate_factor_scores,
    calculate_proof_score,
    calculate_source_score,
    calculate_time_score,
)
from .scorer import CredibilityScorer, classify_trust_level
from .sources import SOURCE_REPUTATION_REGISTRY, TRUSTED_DOMAINS

__all__ = [
    "CredibilityScorer",
    "classify_trust_level",
    "calculate_accuracy_score",
    "calculate_factor_scores",
    "calculate_proof_score",
    "calculate_source_score",
    "calculate_time_score",
    "SOURCE_REPUTATION_REGISTRY",
    "TRUSTED_DOMAINS",
]
