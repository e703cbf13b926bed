# src/oraclelens/normalize/schema.py
import math
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

FACTOR_NAMES = ("source", "time", "accuracy", "proof")
WEIGHT_SUM_TOLERANCE = 0.01


class TrustLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNTRUSTED = "untrusted"


class VerificationMode(str, Enum):
    REAL = "real"
    SIMULATED = "simulated"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OnChainStatus(str, Enum):
    REAL_SUCCESS = "real_success"
    REAL_FAILURE = "real_failure"
    SKIPPED_NOT_CONFIGURED = "skipped_not_configured"


# --- Factor scores and weights ---


class FactorScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: float = Field(..., ge=0.0, le=1.0)
    time: float = Field(..., ge=0.0, le=1.0)
    accuracy: float = Field(..., ge=0.0, le=1.0)
    proof: float = Field(..., ge=0.0, le=1.0)

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in FACTOR_NAMES}


class FormulaWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: float = Field(..., ge=0.0, le=1.0)
    time: float = Field(..., ge=0.0, le=1.0)
    accuracy: float = Field(..., ge=0.0, le=1.0)
    proof: float = Field(..., ge=0.0, le=1.0)

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in FACTOR_NAMES}

    def total(self) -> float:
        return sum(self.as_dict().values())

    def dominant(self) -> str:
        """Name of the heaviest factor; ties resolve in source/time/accuracy/proof order."""
        weights = self.as_dict()
        return max(FACTOR_NAMES, key=lambda name: (weights[name], -FACTOR_NAMES.index(name)))


class WeightProfile(BaseModel):
    """
    A named credibility formula: four factor weights plus a trust threshold.

    Weights must sum to 1.0 within WEIGHT_SUM_TOLERANCE.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Formula identifier (e.g., 'price_feed_v1')")
    name: str = Field(..., min_length=1)
    description: str = ""
    weights: FormulaWeights
    min_acceptable_score: int = Field(..., ge=0, le=100)
    applicable_categories: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_weight_sum(self) -> "WeightProfile":
        total = self.weights.total()
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"weights must sum to 1.0 (got {total:.4f})")
        return self

    def with_weights(self, weights: FormulaWeights) -> "WeightProfile":
        """Return a validated copy of this profile carrying new weights."""
        data = self.model_dump()
        data["weights"] = weights.model_dump()
        return self.model_validate(data)


class GeneratedFormula(WeightProfile):
    """Request-scoped formula synthesized when no catalog entry fits."""

    archetype: str
    rationale: str = ""
    report: str = ""


class WeightAdjustment(BaseModel):
    model_config = ConfigDict(frozen=True)

    deltas: Dict[str, float] = Field(default_factory=dict)
    reasons: List[str] = Field(default_factory=list)

    @field_validator("deltas")
    @classmethod
    def validate_deltas(cls, v: Dict[str, float]) -> Dict[str, float]:
        for name, delta in v.items():
            if name not in FACTOR_NAMES:
                raise ValueError(f"unknown factor in adjustment: {name}")
            if not -0.1 <= delta <= 0.1:
                raise ValueError(f"adjustment for {name} out of range: {delta}")
        return v

    @property
    def is_empty(self) -> bool:
        return not self.deltas

    def reasoning(self) -> Optional[str]:
        if not self.reasons:
            return None
        return ". ".join(self.reasons) + "."


# --- Verification ---


class VerificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    attempted: bool
    verified: bool
    proof_id: str = ""
    domain: Optional[str] = None
    mode: VerificationMode
    error: Optional[str] = None

    @model_validator(mode="after")
    def validate_attempted(self) -> "VerificationResult":
        if self.verified and not self.attempted:
            raise ValueError("a verified result must have been attempted")
        return self


# --- Payloads ---


class NumericPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["numeric"] = "numeric"
    field: str
    value: float
    data: Dict[str, Any] = Field(default_factory=dict)


class OutcomePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["outcome"] = "outcome"
    field: str
    outcome: str
    data: Dict[str, Any] = Field(default_factory=dict)


class GenericPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["generic"] = "generic"
    data: Dict[str, Any] = Field(default_factory=dict)


OraclePayload = Annotated[
    Union[NumericPayload, OutcomePayload, GenericPayload], Field(discriminator="kind")
]


class EvaluationContext(BaseModel):
    """Immutable input to one evaluation."""

    model_config = ConfigDict(frozen=True)

    source_name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    primary_value: Optional[float] = None
    reference_values: List[float] = Field(default_factory=list)
    reported_at: datetime
    now: datetime
    source_url: Optional[str] = None
    user_hint: Optional[str] = None
    has_api_documentation: bool = False
    is_regulated: bool = False
    historical_uptime: Optional[float] = Field(None, ge=0.0, le=100.0)
    payload: OraclePayload = Field(default_factory=GenericPayload)

    @field_validator("reference_values")
    @classmethod
    def validate_reference_values(cls, v: List[float]) -> List[float]:
        if any(not math.isfinite(x) for x in v):
            raise ValueError("reference values must be finite numbers")
        return v

    @property
    def reference_data_available(self) -> bool:
        return len(self.reference_values) > 0


# --- Results ---


class FactorContribution(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: float = 0.0
    weighted: float = 0.0


class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: FactorContribution = Field(default_factory=FactorContribution)
    time: FactorContribution = Field(default_factory=FactorContribution)
    accuracy: FactorContribution = Field(default_factory=FactorContribution)
    proof: FactorContribution = Field(default_factory=FactorContribution)


class FormulaSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    formula_id: str
    confidence: Confidence
    matched_pattern: bool
    generated: bool = False
    reasoning: str = ""
    adjustment_reasoning: Optional[str] = None


class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    final_score: int = Field(..., ge=0, le=100)
    normalized_score: float = 0.0
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    trust_level: TrustLevel
    formula_id: str
    formula_name: str
    explanation: str
    verification: VerificationResult
    selection: Optional[FormulaSelection] = None
    error: Optional[str] = None

    @classmethod
    def failed(
        cls, error: str, verification: Optional[VerificationResult] = None
    ) -> "EvaluationResult":
        """Well-formed result for an evaluation that could not complete."""
        return cls(
            success=False,
            final_score=0,
            trust_level=TrustLevel.UNTRUSTED,
            formula_id="error",
            formula_name="Error",
            explanation="Evaluation failed",
            verification=verification
            or VerificationResult(
                attempted=False, verified=False, mode=VerificationMode.SIMULATED
            ),
            error=error,
        )


# --- Collaborator-facing request/response ---


class WireModel(BaseModel):
    """Base for shapes exchanged with outer layers: camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EvaluateRequest(WireModel):
    source_name: str
    category: str
    data_value: Dict[str, Any]
    source_url: Optional[str] = None
    reference_values: Optional[List[float]] = None
    user_hint: Optional[str] = None
    custom_formula_reason: Optional[str] = None
    formula_id: Optional[str] = None
    has_api_documentation: bool = False
    is_regulated: bool = False
    historical_uptime: Optional[float] = Field(None, ge=0.0, le=100.0)

    @field_validator("source_name", "category")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("data_value")
    @classmethod
    def validate_data_value(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("reference_values")
    @classmethod
    def validate_reference_values(cls, v: Optional[List[float]]) -> Optional[List[float]]:
        if v is not None and any(not math.isfinite(x) for x in v):
            raise ValueError("reference values must be finite numbers")
        return v


class OnChainOutcome(WireModel):
    status: OnChainStatus
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != OnChainStatus.REAL_FAILURE


class VerificationSummary(WireModel):
    verified: bool
    proof_id: str
    mode: VerificationMode
    domain: Optional[str] = None


class EvaluateResponse(WireModel):
    success: bool
    request_id: str
    score: int = Field(..., ge=0, le=100)
    trust_level: TrustLevel
    breakdown: ScoreBreakdown
    formula_id: str
    formula_name: str
    explanation: str
    verification: VerificationSummary
    timestamp: int = Field(..., description="Epoch milliseconds")
    confidence: Optional[Confidence] = None
    formula_reasoning: Optional[str] = None
    persisted: bool = False
    on_chain: Optional[OnChainOutcome] = None
    error: Optional[str] = None

    @classmethod
    def from_result(
        cls, request_id: str, result: EvaluationResult, timestamp: int
    ) -> "EvaluateResponse":
        selection = result.selection
        return cls(
            success=result.success,
            request_id=request_id,
            score=result.final_score,
            trust_level=result.trust_level,
            breakdown=result.breakdown,
            formula_id=result.formula_id,
            formula_name=result.formula_name,
            explanation=result.explanation,
            verification=VerificationSummary(
                verified=result.verification.verified,
                proof_id=result.verification.proof_id,
                mode=result.verification.mode,
                domain=result.verification.domain,
            ),
            timestamp=timestamp,
            confidence=selection.confidence if selection else None,
            formula_reasoning=selection.reasoning if selection else None,
            error=result.error,
        )
