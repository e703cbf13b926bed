# tests/unit/test_formulas.py

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from oraclelens.formulas.adjustments import (
    apply_weight_adjustment,
    compute_weight_adjustment,
)
from oraclelens.formulas.catalog import FormulaCatalog, assess_confidence
from oraclelens.formulas.generator import (
    CustomFormulaGenerator,
    classify_archetype,
    derive_min_score,
    derive_weights,
)
from oraclelens.normalize.schema import (
    Confidence,
    EvaluationContext,
    FormulaWeights,
    VerificationMode,
    VerificationResult,
    WeightAdjustment,
)

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

VERIFIED = VerificationResult(
    attempted=True, verified=True, proof_id="0x1", domain="api.coingecko.com",
    mode=VerificationMode.SIMULATED,
)
FAILED = VerificationResult(
    attempted=True, verified=False, proof_id="0x2", mode=VerificationMode.SIMULATED
)
NOT_ATTEMPTED = VerificationResult(
    attempted=False, verified=False, mode=VerificationMode.SIMULATED
)


def _context(source_name="chainlink", category="price_feed", refs=(100.0,), hint=None):
    return EvaluationContext(
        source_name=source_name,
        category=category,
        primary_value=100.0,
        reference_values=list(refs),
        reported_at=NOW - timedelta(seconds=10),
        now=NOW,
        user_hint=hint,
    )


class TestFormulaCatalog:
    """Test catalog contents and category selection."""

    @pytest.fixture
    def catalog(self):
        return FormulaCatalog.default()

    def test_default_profiles(self, catalog):
        assert set(catalog.profiles) == {
            "price_feed_v1", "weather_v1", "policy_v1",
            "prediction_v1", "private_v1", "generic_v1",
        }
        price = catalog.get("price_feed_v1")
        assert price.weights == FormulaWeights(source=0.25, time=0.30, accuracy=0.30, proof=0.15)
        assert price.min_acceptable_score == 70
        assert catalog.get("private_v1").weights.proof == 0.55
        assert catalog.get("nope") is None

    @pytest.mark.parametrize(
        "category,expected",
        [
            ("price_feed", "price_feed_v1"),
            ("ETH/USD Exchange", "price_feed_v1"),
            ("temperature", "weather_v1"),
            ("Humidity sensor", "weather_v1"),
            ("governance_proposal", "policy_v1"),
            ("sports_result", "prediction_v1"),
            ("kyc_check", "private_v1"),
            ("satellite_imagery", "generic_v1"),
        ],
    )
    def test_select(self, catalog, category, expected):
        assert catalog.select(category).profile.id == expected

    def test_first_match_wins(self, catalog):
        # "price" and "prediction" both match; price is checked first
        match = catalog.select("price_prediction")
        assert match.profile.id == "price_feed_v1"
        assert match.archetype == "financial"

        # "vote" (policy) and "outcome" (prediction); policy is checked first
        assert catalog.select("vote_outcome").profile.id == "policy_v1"

    def test_generic_is_fallback_only(self, catalog):
        match = catalog.select("generic")
        assert match.profile.id == "generic_v1"
        assert match.matched is False

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "formulas.yaml"
        path.write_text(
            """
default: balanced
formulas:
  - id: balanced
    name: Balanced
    weights: {source: 0.25, time: 0.25, accuracy: 0.25, proof: 0.25}
    min_acceptable_score: 60
  - id: energy_v1
    name: Energy Formula
    description: Grid telemetry
    archetype: environmental
    patterns: [grid, energy]
    weights: {source: 0.4, time: 0.3, accuracy: 0.2, proof: 0.1}
    min_acceptable_score: 65
""",
            encoding="utf-8",
        )
        catalog = FormulaCatalog.from_yaml(path)
        match = catalog.select("Energy usage")
        assert match.profile.id == "energy_v1"
        assert match.archetype == "environmental"
        assert catalog.select("price").profile.id == "balanced"

    def test_from_yaml_rejects_bad_weights(self, tmp_path):
        path = tmp_path / "formulas.yaml"
        path.write_text(
            """
formulas:
  - id: generic_v1
    name: Broken
    weights: {source: 0.5, time: 0.5, accuracy: 0.5, proof: 0.5}
    min_acceptable_score: 60
""",
            encoding="utf-8",
        )
        with pytest.raises(ValidationError):
            FormulaCatalog.from_yaml(path)

    def test_unknown_default_rejected(self, catalog):
        with pytest.raises(ValueError, match="not in the catalog"):
            FormulaCatalog(list(catalog.profiles.values()), [], default_id="missing")

    def test_select_formula_reasoning(self, catalog):
        profile, selection, match = catalog.select_formula(_context(), VERIFIED)
        assert match.matched is True
        assert selection.formula_id == "price_feed_v1"
        assert selection.confidence == Confidence.HIGH
        assert "Selected formula: price_feed_v1" in selection.reasoning
        assert 'Oracle "chainlink" has reputation 0.95' in selection.reasoning
        assert "verified" in selection.reasoning
        assert selection.adjustment_reasoning is not None
        assert abs(profile.weights.total() - 1.0) < 1e-9

    def test_select_formula_override(self, catalog):
        profile, selection, match = catalog.select_formula(
            _context(category="price_feed"), VERIFIED, formula_id="weather_v1"
        )
        assert profile.id == "weather_v1"
        assert match.archetype == "environmental"

    def test_select_formula_unknown_override_falls_back(self, catalog):
        profile, _, _ = catalog.select_formula(_context(), VERIFIED, formula_id="nope_v9")
        assert profile.id == "price_feed_v1"


class TestConfidence:
    """Test selection confidence buckets."""

    def test_high(self):
        assert assess_confidence(True, "chainlink", VERIFIED, True) == Confidence.HIGH

    def test_medium(self):
        # 3 (match) - 1 (unknown source) = 2
        assert assess_confidence(True, "UnknownOracle", FAILED, True) == Confidence.MEDIUM

    def test_low(self):
        # 2 (no match) - 1 (unknown source) - 1 (no references) = 0
        assert assess_confidence(False, "UnknownOracle", NOT_ATTEMPTED, False) == Confidence.LOW

    def test_mid_reputation_source_is_neutral(self):
        # band (0.80) is known but below the high-trust mark: 2 + 0 = 2
        assert assess_confidence(False, "band", NOT_ATTEMPTED, True) == Confidence.MEDIUM


class TestWeightAdjustment:
    """Test context-driven weight adjustments."""

    def test_rules_accumulate(self):
        adjustment = compute_weight_adjustment(
            _context(source_name="UnknownOracle", refs=(), hint="Time-Sensitive feed"), VERIFIED
        )
        assert adjustment.deltas == pytest.approx(
            {"proof": 0.05, "source": 0.05, "accuracy": -0.05, "time": 0.05}
        )
        assert len(adjustment.reasons) == 4

    def test_no_rules(self):
        adjustment = compute_weight_adjustment(_context(), NOT_ATTEMPTED)
        assert adjustment.is_empty

    def test_empty_adjustment_still_normalizes(self):
        weights = FormulaWeights(source=0.3, time=0.3, accuracy=0.3, proof=0.3)
        result = apply_weight_adjustment(weights, WeightAdjustment())
        assert result.total() == pytest.approx(1.0, abs=1e-9)
        assert result.source == pytest.approx(0.25)

    def test_clamp_then_normalize(self):
        weights = FormulaWeights(source=0.15, time=0.10, accuracy=0.20, proof=0.65)
        adjustment = WeightAdjustment(deltas={"proof": 0.1, "time": -0.1})
        result = apply_weight_adjustment(weights, adjustment)
        # proof capped at 0.70, time floored at 0.05 before normalizing
        total = 0.15 + 0.05 + 0.20 + 0.70
        assert result.proof == pytest.approx(0.70 / total)
        assert result.time == pytest.approx(0.05 / total)
        assert abs(result.total() - 1.0) <= 1e-9

    def test_verified_price_feed(self):
        weights = FormulaWeights(source=0.25, time=0.30, accuracy=0.30, proof=0.15)
        result = apply_weight_adjustment(weights, WeightAdjustment(deltas={"proof": 0.05}))
        assert result.proof == pytest.approx(0.20 / 1.05)


class TestCustomFormulaGenerator:
    """Test custom formula synthesis."""

    @pytest.mark.parametrize(
        "rationale,expected",
        [
            ("High-frequency trading signal", "financial"),
            ("Soil sensor readings", "environmental"),
            ("DAO vote tally", "governance"),
            ("Election outcome", "event_outcome"),
            ("KYC attestation", "sensitive"),
            ("Something entirely new", "balanced"),
        ],
    )
    def test_classify_archetype(self, rationale, expected):
        assert classify_archetype(rationale).name == expected

    def test_archetype_first_match_wins(self):
        # Mentions weather (environmental) and price (financial); financial is checked first
        assert classify_archetype("weather derivatives price").name == "financial"
        # Mentions policy (governance) and private (sensitive); governance is checked first
        assert classify_archetype("private policy data").name == "governance"

    def test_derive_weights_rounds_and_sums(self):
        weights = derive_weights(
            (0.25, 0.30, 0.30, 0.15), {"proof": 0.05, "time": 0.10}
        )
        assert weights == FormulaWeights(source=0.22, time=0.35, accuracy=0.26, proof=0.17)
        assert abs(weights.total() - 1.0) < 0.01

    def test_derive_weights_clamps(self):
        weights = derive_weights((0.15, 0.10, 0.20, 0.55), {"proof": 0.10, "time": -0.10})
        assert weights.time >= 0.04
        assert weights.proof <= 0.61
        assert abs(weights.total() - 1.0) < 0.01

    @pytest.mark.parametrize(
        "base,rationale,expected",
        [
            (70, "strict audit", 80),
            (70, "High Standard required", 80),
            (60, "lenient check", 50),
            (60, "flexible and lenient", 50),
            (85, "strict", 95),
            (85, "strict and flexible", 85),
        ],
    )
    def test_min_score(self, base, rationale, expected):
        assert derive_min_score(base, rationale) == expected

    def test_generate(self):
        generator = CustomFormulaGenerator()
        formula = generator.generate(
            _context(category="satellite_imagery"),
            VERIFIED,
            "real-time financial trading signal, strict",
        )
        assert formula.id.startswith("custom_financial_")
        assert formula.name == "Custom Financial Formula"
        assert formula.archetype == "financial"
        assert formula.min_acceptable_score == 80
        assert formula.weights.time == 0.35
        assert formula.applicable_categories == ["satellite_imagery"]
        assert "Base Template Selected: financial" in formula.report
        assert "The formula emphasizes time (35%)" in formula.report
        assert "Elevated time weight" in formula.report

    def test_generated_ids_are_unique(self):
        generator = CustomFormulaGenerator()
        first = generator.generate(_context(), NOT_ATTEMPTED, "anything")
        second = generator.generate(_context(), NOT_ATTEMPTED, "anything")
        assert first.id != second.id
        assert first.weights == second.weights

    def test_no_reference_notes(self):
        formula = CustomFormulaGenerator().generate(
            _context(refs=()), FAILED, "unknown source feed"
        )
        assert "No reference data" in formula.report
        assert "Attestation failed" in formula.report
        assert "Trust concerns mentioned" in formula.report
