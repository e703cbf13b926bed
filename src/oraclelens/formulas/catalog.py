# src/oraclelens/formulas/catalog.py

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from oraclelens.credibility.sources import (
    HIGH_TRUST_REPUTATION,
    SOURCE_REPUTATION_REGISTRY,
)
from oraclelens.formulas.adjustments import adjust_profile, compute_weight_adjustment
from oraclelens.normalize.schema import (
    Confidence,
    EvaluationContext,
    FormulaSelection,
    FormulaWeights,
    VerificationResult,
    WeightAdjustment,
    WeightProfile,
)

logger = logging.getLogger(__name__)

GENERIC_FORMULA_ID = "generic_v1"


def _profile(
    id: str,
    name: str,
    description: str,
    weights: Tuple[float, float, float, float],
    min_acceptable_score: int,
    categories: List[str],
) -> WeightProfile:
    source, time, accuracy, proof = weights
    return WeightProfile(
        id=id,
        name=name,
        description=description,
        weights=FormulaWeights(source=source, time=time, accuracy=accuracy, proof=proof),
        min_acceptable_score=min_acceptable_score,
        applicable_categories=categories,
    )


DEFAULT_PROFILES: Tuple[WeightProfile, ...] = (
    _profile(
        "price_feed_v1",
        "Price Feed Formula",
        "For financial price data where accuracy and freshness are critical",
        (0.25, 0.30, 0.30, 0.15),
        70,
        ["price_feed", "exchange_rate", "token_price"],
    ),
    _profile(
        "weather_v1",
        "Weather Data Formula",
        "For weather data with moderate tolerance for variation",
        (0.35, 0.25, 0.20, 0.20),
        60,
        ["weather", "temperature", "precipitation"],
    ),
    _profile(
        "policy_v1",
        "Policy/Governance Formula",
        "For governance decisions where source authority is paramount",
        (0.45, 0.10, 0.15, 0.30),
        75,
        ["policy", "governance", "voting", "regulation"],
    ),
    _profile(
        "prediction_v1",
        "Prediction Market Formula",
        "For prediction market outcomes where proof of result is critical",
        (0.20, 0.15, 0.25, 0.40),
        80,
        ["prediction", "outcome", "event_result", "sports"],
    ),
    _profile(
        "private_v1",
        "Private Data Formula",
        "For sensitive data requiring maximum verification",
        (0.15, 0.10, 0.20, 0.55),
        85,
        ["private", "sensitive", "confidential", "kyc"],
    ),
    _profile(
        GENERIC_FORMULA_ID,
        "Generic Formula",
        "Balanced formula for unclassified data types",
        (0.25, 0.25, 0.25, 0.25),
        65,
        ["*"],
    ),
)


@dataclass(frozen=True)
class CategoryPattern:
    """Keyword patterns that route a data category to one formula."""

    formula_id: str
    archetype: str
    patterns: Tuple["re.Pattern[str]", ...]
    description: str

    def matches(self, category: str) -> bool:
        return any(p.search(category) for p in self.patterns)


def _patterns(*keywords: str) -> Tuple["re.Pattern[str]", ...]:
    return tuple(re.compile(re.escape(k), re.IGNORECASE) for k in keywords)


# Checked in order; first match wins
DEFAULT_PATTERNS: Tuple[CategoryPattern, ...] = (
    CategoryPattern(
        "price_feed_v1",
        "financial",
        _patterns("price", "rate", "token", "exchange", "forex", "stock"),
        "Financial price data requires high accuracy and freshness",
    ),
    CategoryPattern(
        "weather_v1",
        "environmental",
        _patterns("weather", "temperature", "humidity", "precipitation", "climate"),
        "Weather data tolerates more variation but source matters",
    ),
    CategoryPattern(
        "policy_v1",
        "governance",
        _patterns("governance", "policy", "vote", "regulation", "law", "ruling"),
        "Governance data prioritizes source authority",
    ),
    CategoryPattern(
        "prediction_v1",
        "event_outcome",
        _patterns("prediction", "outcome", "result", "sport", "event", "match", "game"),
        "Prediction outcomes require strong proof verification",
    ),
    CategoryPattern(
        "private_v1",
        "sensitive",
        _patterns("private", "sensitive", "kyc", "identity", "confidential", "personal"),
        "Private data requires maximum proof verification",
    ),
)


@dataclass(frozen=True)
class FormulaMatch:
    profile: WeightProfile
    matched: bool
    description: str
    archetype: Optional[str] = None


class FormulaCatalog:
    """
    Read-only catalog of named weight profiles plus the category selector.

    Built once at start-up and shared across evaluations without locking.
    Generated formulas are never added here.
    """

    def __init__(
        self,
        profiles: Sequence[WeightProfile],
        patterns: Sequence[CategoryPattern],
        default_id: str = GENERIC_FORMULA_ID,
    ):
        by_id = {p.id: p for p in profiles}
        if len(by_id) != len(profiles):
            raise ValueError("Duplicate formula ids in catalog")
        if default_id not in by_id:
            raise ValueError(f"Default formula '{default_id}' is not in the catalog")
        for pattern in patterns:
            if pattern.formula_id not in by_id:
                raise ValueError(f"Pattern refers to unknown formula '{pattern.formula_id}'")
            if pattern.formula_id == default_id:
                raise ValueError("The default formula cannot be selected by pattern")

        self._profiles: Mapping[str, WeightProfile] = MappingProxyType(by_id)
        self._patterns: Tuple[CategoryPattern, ...] = tuple(patterns)
        self.default_id = default_id

    @classmethod
    def default(cls) -> "FormulaCatalog":
        return cls(DEFAULT_PROFILES, DEFAULT_PATTERNS)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "FormulaCatalog":
        """
        Load a catalog from YAML.

        Expected layout::

            default: generic_v1
            formulas:
              - id: price_feed_v1
                name: Price Feed Formula
                weights: {source: 0.25, time: 0.30, accuracy: 0.30, proof: 0.15}
                min_acceptable_score: 70
                archetype: financial
                patterns: [price, rate]
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}

        profiles: List[WeightProfile] = []
        patterns: List[CategoryPattern] = []
        for entry in data.get("formulas", []):
            keywords = entry.pop("patterns", None) or []
            archetype = entry.pop("archetype", "balanced")
            profile = WeightProfile.model_validate(entry)
            profiles.append(profile)
            if keywords:
                patterns.append(
                    CategoryPattern(
                        profile.id,
                        archetype,
                        _patterns(*keywords),
                        profile.description or f"Matched {profile.name}",
                    )
                )

        catalog = cls(profiles, patterns, data.get("default", GENERIC_FORMULA_ID))
        logger.info(f"Loaded formula catalog with {len(profiles)} formulas from {path}")
        return catalog

    @property
    def profiles(self) -> Mapping[str, WeightProfile]:
        return self._profiles

    @property
    def default_profile(self) -> WeightProfile:
        return self._profiles[self.default_id]

    def get(self, formula_id: str) -> Optional[WeightProfile]:
        return self._profiles.get(formula_id)

    def archetype_for(self, formula_id: str) -> Optional[str]:
        for pattern in self._patterns:
            if pattern.formula_id == formula_id:
                return pattern.archetype
        return None

    def select(self, category: str) -> FormulaMatch:
        """
        Select the profile for a data category.

        Patterns are tried in catalog order and the first match wins; the
        default profile is only returned when nothing matched.
        """
        for pattern in self._patterns:
            if pattern.matches(category):
                return FormulaMatch(
                    profile=self._profiles[pattern.formula_id],
                    matched=True,
                    description=pattern.description,
                    archetype=pattern.archetype,
                )

        return FormulaMatch(
            profile=self.default_profile,
            matched=False,
            description="No specific pattern matched, using balanced generic formula",
        )

    def select_formula(
        self,
        context: EvaluationContext,
        verification: VerificationResult,
        formula_id: Optional[str] = None,
    ) -> Tuple[WeightProfile, FormulaSelection, FormulaMatch]:
        """
        Pick, assess and adjust the catalog profile for one evaluation.

        Args:
            context: Evaluation context
            verification: Verification outcome (feeds confidence and adjustments)
            formula_id: Explicit catalog id; unknown ids fall back to pattern selection

        Returns:
            (adjusted profile, selection record, raw category match)
        """
        match = self.select(context.category)
        if formula_id:
            override = self.get(formula_id)
            if override is not None:
                match = FormulaMatch(
                    profile=override,
                    matched=True,
                    description=f"Formula '{formula_id}' requested explicitly",
                    archetype=self.archetype_for(override.id),
                )
            else:
                logger.warning(f"Unknown formula '{formula_id}', using category selection")

        confidence = assess_confidence(
            match.matched,
            context.source_name,
            verification,
            context.reference_data_available,
        )
        adjustment = compute_weight_adjustment(context, verification)
        profile = adjust_profile(match.profile, adjustment)

        selection = FormulaSelection(
            formula_id=profile.id,
            confidence=confidence,
            matched_pattern=match.matched,
            reasoning=build_selection_reasoning(context, match, verification, adjustment),
            adjustment_reasoning=adjustment.reasoning(),
        )
        logger.info(
            f"Selected {profile.id} for category '{context.category}' "
            f"(confidence: {confidence.value})"
        )
        return profile, selection, match


def build_selection_reasoning(
    context: EvaluationContext,
    match: FormulaMatch,
    verification: VerificationResult,
    adjustment: WeightAdjustment,
    reputation: Mapping[str, float] = SOURCE_REPUTATION_REGISTRY,
) -> str:
    """Plain-language account of why a formula was chosen, one statement per line."""
    lines = [
        f"Selected formula: {match.profile.id}",
        f"Reason: {match.description}",
    ]

    source_reputation = reputation.get(context.source_name.strip().lower())
    if source_reputation is None:
        lines.append(
            f'Oracle "{context.source_name}" is not in the reputation registry, '
            "extra scrutiny applied."
        )
    else:
        lines.append(
            f'Oracle "{context.source_name}" has reputation {source_reputation:.2f} '
            "in the registry."
        )

    if not verification.attempted:
        lines.append("No attestation proof provided, credibility relies on other factors.")
    elif verification.verified:
        lines.append("Attestation proof is available and verified.")
    else:
        lines.append("Attestation proof is available but NOT verified, this is a red flag.")

    if adjustment.reasoning():
        lines.append(f"Weight adjustments: {adjustment.reasoning()}")

    return "\n".join(lines)


def assess_confidence(
    matched: bool,
    source_name: str,
    verification: VerificationResult,
    reference_data_available: bool,
    reputation: Mapping[str, float] = SOURCE_REPUTATION_REGISTRY,
) -> Confidence:
    """
    Bucket a small integer score into a selection confidence level.

    Starts at 3 for a pattern match (2 otherwise), then +1 for a high-trust
    source, -1 for a source missing from the table, +1 for a verified
    attestation and -1 when no reference values exist.
    """
    points = 3 if matched else 2

    source_reputation = reputation.get(source_name.strip().lower())
    if source_reputation is None:
        points -= 1
    elif source_reputation >= HIGH_TRUST_REPUTATION:
        points += 1

    if verification.verified:
        points += 1

    if not reference_data_available:
        points -= 1

    if points >= 4:
        return Confidence.HIGH
    if points >= 2:
        return Confidence.MEDIUM
    return Confidence.LOW
