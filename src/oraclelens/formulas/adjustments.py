# src/oraclelens/formulas/adjustments.py

import logging
from typing import Dict, List, Mapping

from oraclelens.credibility.sources import SOURCE_REPUTATION_REGISTRY
from oraclelens.normalize.schema import (
    FACTOR_NAMES,
    EvaluationContext,
    FormulaWeights,
    VerificationResult,
    WeightAdjustment,
    WeightProfile,
)

logger = logging.getLogger(__name__)

ADJUSTMENT_STEP = 0.05
MIN_WEIGHT = 0.05
MAX_WEIGHT = 0.70
TIME_SENSITIVE_HINT = "time-sensitive"


def compute_weight_adjustment(
    context: EvaluationContext,
    verification: VerificationResult,
    reputation: Mapping[str, float] = SOURCE_REPUTATION_REGISTRY,
) -> WeightAdjustment:
    """
    Derive per-factor deltas from the evaluation context.

    Rules are independent and accumulate:
    - verified attestation: proof +0.05
    - source missing from the reputation table: source +0.05
    - no reference values: accuracy -0.05
    - user hint mentions "time-sensitive": time +0.05
    """
    deltas: Dict[str, float] = {}
    reasons: List[str] = []

    def bump(factor: str, delta: float, reason: str) -> None:
        deltas[factor] = deltas.get(factor, 0.0) + delta
        reasons.append(reason)

    if verification.verified:
        bump("proof", ADJUSTMENT_STEP, "Increased proof weight due to verified attestation")

    if context.source_name.strip().lower() not in reputation:
        bump("source", ADJUSTMENT_STEP, "Increased source weight for unknown oracle")

    if not context.reference_data_available:
        bump("accuracy", -ADJUSTMENT_STEP, "Reduced accuracy weight, no reference data")

    if context.user_hint and TIME_SENSITIVE_HINT in context.user_hint.lower():
        bump("time", ADJUSTMENT_STEP, "Increased time weight for time-sensitive data")

    return WeightAdjustment(deltas=deltas, reasons=reasons)


def apply_weight_adjustment(
    weights: FormulaWeights,
    adjustment: WeightAdjustment,
    min_weight: float = MIN_WEIGHT,
    max_weight: float = MAX_WEIGHT,
) -> FormulaWeights:
    """
    Apply deltas, clamp each weight, then renormalize to sum to 1.

    Normalization runs even when the adjustment is empty.
    """
    base = weights.as_dict()
    clamped = {
        name: max(min_weight, min(max_weight, base[name] + adjustment.deltas.get(name, 0.0)))
        for name in FACTOR_NAMES
    }
    total = sum(clamped.values())
    return FormulaWeights(**{name: value / total for name, value in clamped.items()})


def adjust_profile(profile: WeightProfile, adjustment: WeightAdjustment) -> WeightProfile:
    """Return a re-validated copy of a catalog profile with adjusted weights."""
    adjusted = apply_weight_adjustment(profile.weights, adjustment)
    if not adjustment.is_empty:
        logger.debug(f"Adjusted {profile.id} weights: {adjustment.deltas}")
    return profile.with_weights(adjusted)
