# src/oraclelens/credibility/factors.py

"""
The four credibility factors, each normalized to [0, 1].

- Source: how reliable is the reporting oracle?
- Time: how fresh is the reading?
- Accuracy: does the reading agree with other sources?
- Proof: is there a verified attestation of where the data came from?

Every calculator is a pure function.
"""

import logging
import math
import statistics
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from oraclelens.credibility.sources import (
    DEFAULT_SOURCE_REPUTATION,
    SOURCE_REPUTATION_REGISTRY,
    TRUSTED_DOMAINS,
    is_trusted_domain,
)
from oraclelens.normalize.schema import EvaluationContext, FactorScores, VerificationResult

logger = logging.getLogger(__name__)

DOCUMENTATION_BONUS = 0.05
REGULATION_BONUS = 0.05
REPUTATION_MIX = 0.7
UPTIME_MIX = 0.3

FUTURE_TIMESTAMP_SCORE = 0.5
DEFAULT_MAX_AGE_SECONDS = 300.0

NO_REFERENCE_SCORE = 0.7
DEFAULT_TOLERANCE_PERCENT = 1.0

PROOF_NOT_ATTEMPTED = 0.4
PROOF_FAILED = 0.1
PROOF_VERIFIED = 0.9
PROOF_VERIFIED_TRUSTED = 1.0


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def calculate_source_score(
    source_name: str,
    has_api_documentation: bool = False,
    is_regulated: bool = False,
    historical_uptime: Optional[float] = None,
    reputation: Mapping[str, float] = SOURCE_REPUTATION_REGISTRY,
) -> float:
    """
    Score source reliability from reputation, documentation, regulation and uptime.

    Args:
        source_name: Oracle name, matched case-insensitively
        has_api_documentation: Source publishes API documentation
        is_regulated: Source operates under regulation
        historical_uptime: Uptime percentage (0-100), blended in when given
        reputation: Reputation table to consult

    Returns:
        Source score in [0, 1]
    """
    score = reputation.get(source_name.strip().lower(), DEFAULT_SOURCE_REPUTATION)

    if has_api_documentation:
        score += DOCUMENTATION_BONUS
    if is_regulated:
        score += REGULATION_BONUS

    if historical_uptime is not None:
        uptime = max(0.0, min(100.0, historical_uptime)) / 100.0
        score = score * REPUTATION_MIX + uptime * UPTIME_MIX

    return _clamp(score)


def calculate_time_score(
    reported_at: datetime,
    now: datetime,
    max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
) -> float:
    """
    Score freshness with exponential decay, half-life = max_age / 2.

    Future timestamps get a fixed penalty. Past max_age the score decays
    linearly instead of dropping off a cliff.
    """
    if max_age_seconds <= 0:
        raise ValueError("max_age_seconds must be positive")

    age = (now - reported_at).total_seconds()

    if age < 0:
        return FUTURE_TIMESTAMP_SCORE

    if age > max_age_seconds:
        overage_ratio = age / max_age_seconds
        return _clamp(1.0 - (overage_ratio - 1.0) * 0.5)

    half_life = max_age_seconds / 2.0
    return _clamp(math.exp(-age / half_life))


def calculate_accuracy_score(
    primary_value: Optional[float],
    reference_values: Sequence[float],
    tolerance_percent: float = DEFAULT_TOLERANCE_PERCENT,
) -> float:
    """
    Score agreement between the reading and the median of reference values.

    Within tolerance the score slides linearly from 1.0 to 0.9; beyond it
    the score decays exponentially in the excess deviation. Without
    references (or without a number to compare) the neutral score applies.
    """
    if tolerance_percent <= 0:
        raise ValueError("tolerance_percent must be positive")

    if primary_value is None or not reference_values:
        return NO_REFERENCE_SCORE

    median = statistics.median(reference_values)

    if median == 0:
        return 1.0 if primary_value == 0 else 0.0

    deviation_percent = abs(primary_value - median) / abs(median) * 100.0

    if deviation_percent <= tolerance_percent:
        return _clamp(1.0 - (deviation_percent / tolerance_percent) * 0.1)

    excess = deviation_percent - tolerance_percent
    return _clamp(0.9 * math.exp(-excess / tolerance_percent))


def calculate_proof_score(
    verification: VerificationResult,
    trusted_domains: Iterable[str] = TRUSTED_DOMAINS,
) -> float:
    """
    Tiered proof score.

    A failed proof scores below no proof at all: it is an active red flag.
    """
    if not verification.attempted:
        return PROOF_NOT_ATTEMPTED
    if not verification.verified:
        return PROOF_FAILED
    if is_trusted_domain(verification.domain, trusted_domains):
        return PROOF_VERIFIED_TRUSTED
    return PROOF_VERIFIED


def calculate_factor_scores(
    context: EvaluationContext,
    verification: VerificationResult,
    max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
    tolerance_percent: float = DEFAULT_TOLERANCE_PERCENT,
    trusted_domains: Iterable[str] = TRUSTED_DOMAINS,
) -> FactorScores:
    """Compute all four factors sequentially for one context."""
    scores = FactorScores(
        source=calculate_source_score(
            context.source_name,
            has_api_documentation=context.has_api_documentation,
            is_regulated=context.is_regulated,
            historical_uptime=context.historical_uptime,
        ),
        time=calculate_time_score(context.reported_at, context.now, max_age_seconds),
        accuracy=calculate_accuracy_score(
            context.primary_value, context.reference_values, tolerance_percent
        ),
        proof=calculate_proof_score(verification, trusted_domains),
    )
    logger.debug(f"Factor scores for {context.source_name}: {scores.as_dict()}")
    return scores
