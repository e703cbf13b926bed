# src/oraclelens/credibility/scorer.py

import logging
import math
from typing import Dict, List, Optional

from oraclelens.normalize.schema import (
    FACTOR_NAMES,
    EvaluationResult,
    FactorContribution,
    FactorScores,
    FormulaSelection,
    ScoreBreakdown,
    TrustLevel,
    VerificationResult,
    WeightProfile,
)
from oraclelens.report.renderer import TextRenderer

logger = logging.getLogger(__name__)

HIGH_TRUST_SCORE = 90
LOW_TRUST_MARGIN = 15

FACTOR_LABELS = {
    "source": "Source Reliability",
    "time": "Time Freshness",
    "accuracy": "Consistency",
    "proof": "Attestation Proof",
}

# (threshold, text) checked top-down; the last entry is the fallback
FACTOR_BANDS = {
    "source": [
        (80, "Highly trusted oracle source"),
        (60, "Moderately trusted source"),
        (0, "Source lacks established reputation"),
    ],
    "time": [
        (80, "Data is recent and timely"),
        (50, "Data is somewhat stale"),
        (0, "Data is outdated"),
    ],
    "accuracy": [
        (80, "Aligns well with other sources"),
        (60, "Minor deviations from other sources"),
        (0, "Significant deviation from other sources"),
    ],
    "proof": [
        (90, "Cryptographically verified"),
        (40, "No proof provided"),
        (0, "Proof verification failed"),
    ],
}

RECOMMENDATIONS = {
    TrustLevel.HIGH: "Data is highly credible and safe to use.",
    TrustLevel.MEDIUM: "Data is reasonably credible, proceed with normal caution.",
    TrustLevel.LOW: "Data has credibility concerns, use with caution.",
    TrustLevel.UNTRUSTED: "Data credibility is insufficient, additional verification required.",
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def classify_trust_level(final_score: int, min_acceptable_score: int) -> TrustLevel:
    """Threshold ladder evaluated top-down."""
    if final_score >= HIGH_TRUST_SCORE:
        return TrustLevel.HIGH
    if final_score >= min_acceptable_score:
        return TrustLevel.MEDIUM
    if final_score >= min_acceptable_score - LOW_TRUST_MARGIN:
        return TrustLevel.LOW
    return TrustLevel.UNTRUSTED


def describe_factor(name: str, raw: float) -> Dict[str, object]:
    """Label, percentage and banded description for one factor."""
    percent = _round_half_up(raw * 100)
    description = FACTOR_BANDS[name][-1][1]
    for threshold, text in FACTOR_BANDS[name]:
        if percent >= threshold:
            description = text
            break
    return {"label": FACTOR_LABELS[name], "percent": percent, "description": description}


class CredibilityScorer:
    """
    Combines factor scores with formula weights into a final credibility score.

    Produces the 0-100 score, the trust level and a reproducible explanation.
    """

    def __init__(self, renderer: Optional[TextRenderer] = None):
        """
        Initialize scorer.

        Args:
            renderer: Text renderer for explanations (default: built-in templates)
        """
        self.renderer = renderer or TextRenderer()

    def score(
        self,
        factors: FactorScores,
        profile: WeightProfile,
        verification: VerificationResult,
        selection: Optional[FormulaSelection] = None,
    ) -> EvaluationResult:
        """
        Aggregate factors under a weight profile.

        Args:
            factors: The four factor scores
            profile: Resolved (and normalized) weight profile
            verification: Verification outcome to attach to the result
            selection: How the profile was chosen, if known

        Returns:
            Successful EvaluationResult.
        """
        weights = profile.weights.as_dict()
        raw_scores = factors.as_dict()

        contributions = {
            name: FactorContribution(raw=raw_scores[name], weighted=raw_scores[name] * weights[name])
            for name in FACTOR_NAMES
        }
        normalized_score = sum(c.weighted for c in contributions.values())
        final_score = max(0, min(100, _round_half_up(normalized_score * 100)))
        trust_level = classify_trust_level(final_score, profile.min_acceptable_score)

        explanation = self.explain(factors, profile, final_score, trust_level)

        weighted = {name: round(c.weighted, 4) for name, c in contributions.items()}
        logger.debug(
            f"Scored {final_score}/100 ({trust_level.value}) with {profile.id}: {weighted}"
        )

        return EvaluationResult(
            success=True,
            final_score=final_score,
            normalized_score=normalized_score,
            breakdown=ScoreBreakdown(**contributions),
            trust_level=trust_level,
            formula_id=profile.id,
            formula_name=profile.name,
            explanation=explanation,
            verification=verification,
            selection=selection,
        )

    def explain(
        self,
        factors: FactorScores,
        profile: WeightProfile,
        final_score: int,
        trust_level: TrustLevel,
    ) -> str:
        """Render the deterministic factor-by-factor explanation."""
        raw_scores = factors.as_dict()
        factor_lines: List[Dict[str, object]] = [
            describe_factor(name, raw_scores[name]) for name in FACTOR_NAMES
        ]
        return self.renderer.render_explanation(
            final_score=final_score,
            trust_level=trust_level.value,
            formula_name=profile.name,
            factors=factor_lines,
            recommendation=RECOMMENDATIONS[trust_level],
        )
