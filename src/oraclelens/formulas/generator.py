# src/oraclelens/formulas/generator.py

"""
Custom formula synthesis for data that no catalog formula fits.

A generated formula only chooses weights for the same four factors; the
factor calculators never change. Generated formulas live for one request.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from oraclelens.normalize.schema import (
    FACTOR_NAMES,
    EvaluationContext,
    FormulaWeights,
    GeneratedFormula,
    VerificationResult,
)
from oraclelens.report.renderer import TextRenderer

logger = logging.getLogger(__name__)

MIN_GENERATED_WEIGHT = 0.05
MAX_GENERATED_WEIGHT = 0.60
MIN_SCORE_FLOOR = 50
MIN_SCORE_CEILING = 95
MIN_SCORE_STEP = 10


@dataclass(frozen=True)
class Archetype:
    name: str
    keywords: Tuple[str, ...]
    weights: Tuple[float, float, float, float]
    min_score: int
    traits: Tuple[str, ...]


# Classification order matters: the first archetype with a keyword hit wins
ARCHETYPES: Tuple[Archetype, ...] = (
    Archetype(
        "financial",
        ("financial", "price", "trading"),
        (0.25, 0.30, 0.30, 0.15),
        70,
        ("high accuracy requirement", "time-sensitive", "regulated sources preferred"),
    ),
    Archetype(
        "environmental",
        ("environment", "weather", "sensor"),
        (0.35, 0.25, 0.20, 0.20),
        60,
        ("source reputation important", "moderate time sensitivity", "natural variation expected"),
    ),
    Archetype(
        "governance",
        ("governance", "vote", "policy"),
        (0.45, 0.10, 0.15, 0.30),
        75,
        ("source authority critical", "immutable once published", "proof of authenticity valued"),
    ),
    Archetype(
        "event_outcome",
        ("event", "outcome", "result"),
        (0.20, 0.15, 0.25, 0.40),
        80,
        ("proof is paramount", "binary outcomes", "disputes possible"),
    ),
    Archetype(
        "sensitive",
        ("sensitive", "private", "kyc"),
        (0.15, 0.10, 0.20, 0.55),
        85,
        ("maximum verification required", "privacy-sensitive", "legal implications"),
    ),
)

BALANCED = Archetype(
    "balanced",
    (),
    (0.25, 0.25, 0.25, 0.25),
    65,
    ("general purpose", "no specific bias", "adaptable"),
)

EMPHASIS_RULES = (
    ("proof", 0.35, "High proof weight indicates cryptographic verification is critical for this use case."),
    ("time", 0.30, "Elevated time weight reflects time-sensitive nature of this data."),
    ("source", 0.35, "Strong source weight due to need for trusted data origin."),
    ("accuracy", 0.30, "Accuracy is prioritized for cross-validation with reference data."),
)


def classify_archetype(rationale: str) -> Archetype:
    text = rationale.lower()
    for archetype in ARCHETYPES:
        if any(keyword in text for keyword in archetype.keywords):
            return archetype
    return BALANCED


def _round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def _percent(value: float) -> int:
    return int(math.floor(value * 100 + 0.5))


def analyze_context(
    context: EvaluationContext,
    verification: VerificationResult,
    rationale: str,
) -> Tuple[Dict[str, float], List[str]]:
    """Collect weight deltas and analysis notes from context and rationale."""
    deltas = {name: 0.0 for name in FACTOR_NAMES}
    notes: List[str] = []
    text = rationale.lower()

    if verification.attempted:
        if verification.verified:
            deltas["proof"] += 0.05
            notes.append("Attestation verified, boosted proof weight")
        else:
            deltas["proof"] -= 0.05
            deltas["source"] += 0.05
            notes.append("Attestation failed, shifted weight to source scrutiny")
    else:
        deltas["proof"] -= 0.05
        deltas["accuracy"] += 0.05
        notes.append("No attestation, shifted weight to accuracy checking")

    if not context.reference_data_available:
        deltas["accuracy"] -= 0.05
        deltas["source"] += 0.03
        deltas["proof"] += 0.02
        notes.append("No reference data, reduced accuracy weight and increased source/proof")

    if "real-time" in text or "time-critical" in text:
        deltas["time"] += 0.10
        notes.append("Time-critical requirement, boosted time weight")

    if "untrusted" in text or "unknown source" in text:
        deltas["source"] += 0.10
        notes.append("Trust concerns mentioned, boosted source weight")

    return deltas, notes


def derive_weights(base: Tuple[float, float, float, float], deltas: Dict[str, float]) -> FormulaWeights:
    """
    Clamp, normalize and round to two decimals.

    The rounding residual is folded into the source weight so the result
    sums to 1.0.
    """
    clamped = {
        name: max(MIN_GENERATED_WEIGHT, min(MAX_GENERATED_WEIGHT, base[i] + deltas.get(name, 0.0)))
        for i, name in enumerate(FACTOR_NAMES)
    }
    total = sum(clamped.values())
    rounded = {name: _round2(value / total) for name, value in clamped.items()}

    residual = 1.0 - sum(rounded.values())
    rounded["source"] = _round2(rounded["source"] + residual)
    return FormulaWeights(**rounded)


def derive_min_score(base: int, rationale: str) -> int:
    text = rationale.lower()
    score = base
    if "strict" in text or "high standard" in text:
        score += MIN_SCORE_STEP
    if "lenient" in text or "flexible" in text:
        score -= MIN_SCORE_STEP
    return max(MIN_SCORE_FLOOR, min(MIN_SCORE_CEILING, score))


class CustomFormulaGenerator:
    """Synthesizes a request-scoped weight profile from a free-text rationale."""

    def __init__(self, renderer: Optional[TextRenderer] = None):
        self.renderer = renderer or TextRenderer()

    def generate(
        self,
        context: EvaluationContext,
        verification: VerificationResult,
        rationale: str,
    ) -> GeneratedFormula:
        archetype = classify_archetype(rationale)
        deltas, notes = analyze_context(context, verification, rationale)
        notes.insert(
            0,
            f"Detected {archetype.name} context from request"
            if archetype is not BALANCED
            else "No specific context detected, starting from balanced template",
        )

        weights = derive_weights(archetype.weights, deltas)
        min_score = derive_min_score(archetype.min_score, rationale)

        report = self.render_report(archetype, weights, notes, rationale, min_score)

        formula = GeneratedFormula(
            id=f"custom_{archetype.name}_{uuid.uuid4().hex[:8]}",
            name=f"Custom {archetype.name.capitalize()} Formula",
            description=f"Generated formula for: {rationale[:100]}",
            weights=weights,
            min_acceptable_score=min_score,
            applicable_categories=[context.category],
            archetype=archetype.name,
            rationale=rationale,
            report=report,
        )
        logger.info(
            f"Generated {formula.id} ({archetype.name}) for category '{context.category}'"
        )
        return formula

    def render_report(
        self,
        archetype: Archetype,
        weights: FormulaWeights,
        notes: List[str],
        rationale: str,
        min_score: int,
    ) -> str:
        weight_map = weights.as_dict()
        emphasis = [
            text for factor, threshold, text in EMPHASIS_RULES if weight_map[factor] > threshold
        ]
        return self.renderer.render_formula_report(
            rationale=rationale,
            archetype=archetype.name,
            traits=list(archetype.traits),
            notes=notes,
            percents={name: _percent(value) for name, value in weight_map.items()},
            dominant=weights.dominant(),
            emphasis=emphasis,
            min_acceptable_score=min_score,
        )
