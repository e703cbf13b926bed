# tests/unit/test_report.py

import json
from unittest.mock import MagicMock

import pytest
import requests

from oraclelens.core.config import RegistryConfig
from oraclelens.normalize.hash_utils import registry_key
from oraclelens.normalize.schema import (
    Confidence,
    EvaluateRequest,
    EvaluateResponse,
    EvaluationResult,
    FactorContribution,
    FormulaSelection,
    OnChainStatus,
    ScoreBreakdown,
    TrustLevel,
    VerificationMode,
    VerificationResult,
)
from oraclelens.report.ledger import EvaluationLedger
from oraclelens.report.onchain import (
    NullRegistrySubmitter,
    RelayRegistrySubmitter,
    build_registry_submitter,
)
from oraclelens.report.renderer import TextRenderer


def _response(request_id, score=95, trust_level=TrustLevel.HIGH):
    result = EvaluationResult(
        final_score=score,
        normalized_score=score / 100,
        trust_level=trust_level,
        formula_id="price_feed_v1",
        formula_name="Price Feed Formula",
        explanation="Credibility Score: 95/100 (HIGH)",
        breakdown=ScoreBreakdown(source=FactorContribution(raw=0.95, weighted=0.2375)),
        verification=VerificationResult(
            attempted=True,
            verified=True,
            proof_id="0xproof",
            domain="api.coingecko.com",
            mode=VerificationMode.SIMULATED,
        ),
        selection=FormulaSelection(
            formula_id="price_feed_v1",
            confidence=Confidence.HIGH,
            matched_pattern=True,
            reasoning="Selected formula: price_feed_v1",
        ),
    )
    return EvaluateResponse.from_result(request_id, result, timestamp=1736942400000)


def _request(source_name="chainlink"):
    return EvaluateRequest(
        source_name=source_name,
        category="price_feed",
        data_value={"price": 2534.5},
        source_url="https://api.coingecko.com/api/v3/simple/price",
        reference_values=[2534.89, 2535.20],
    )


class TestEvaluationLedger:
    """Test the append-only evaluation ledger."""

    @pytest.fixture
    def ledger(self, tmp_path):
        return EvaluationLedger(tmp_path / "data" / "evaluations.jsonl")

    def test_append_and_get(self, ledger):
        entry = ledger.append(_request(), _response("req_1"))
        assert entry.score == 95
        assert entry.tool["name"] == "OracleLens"

        stored = ledger.get("req_1")
        assert stored.source_name == "chainlink"
        assert stored.trust_level == TrustLevel.HIGH
        assert stored.proof_id == "0xproof"
        assert stored.verification_domain == "api.coingecko.com"
        assert stored.source_url == "https://api.coingecko.com/api/v3/simple/price"
        assert stored.reference_values == [2534.89, 2535.20]
        assert stored.breakdown.source.raw == 0.95
        assert stored.breakdown.source.weighted == 0.2375
        assert stored.explanation == "Credibility Score: 95/100 (HIGH)"
        assert stored.formula_reasoning == "Selected formula: price_feed_v1"
        assert ledger.get("req_missing") is None

    def test_lines_are_json(self, ledger):
        ledger.append(_request(), _response("req_1"))
        lines = ledger.path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["request_id"] == "req_1"

    def test_touch_appends_without_rewriting(self, ledger):
        ledger.append(_request(), _response("req_1"))
        original = ledger.path.read_text(encoding="utf-8")

        assert ledger.touch("req_1") is True
        assert ledger.touch("req_missing") is False

        content = ledger.path.read_text(encoding="utf-8")
        assert content.startswith(original)
        assert len(content.splitlines()) == 2
        assert ledger.get("req_1").updated_at is not None

    def test_query_filters_newest_first(self, ledger):
        ledger.append(_request("chainlink"), _response("req_1"))
        ledger.append(_request("UnknownOracle"), _response("req_2", 30, TrustLevel.UNTRUSTED))
        ledger.append(_request("Chainlink"), _response("req_3"))

        assert [e.request_id for e in ledger.query()] == ["req_3", "req_2", "req_1"]
        assert [e.request_id for e in ledger.query(source_name="CHAINLINK")] == ["req_3", "req_1"]
        assert [e.request_id for e in ledger.query(trust_level="untrusted")] == ["req_2"]
        assert [e.request_id for e in ledger.query(limit=1)] == ["req_3"]
        assert ledger.query(limit=0) == []

    def test_malformed_lines_are_skipped(self, ledger):
        ledger.append(_request(), _response("req_1"))
        with open(ledger.path, "a", encoding="utf-8") as f:
            f.write("{not json\n")
        ledger.append(_request(), _response("req_2"))
        assert len(ledger.query()) == 2

    def test_missing_file_is_empty(self, ledger):
        assert ledger.query() == []


class TestRegistrySubmitter:
    """Test on-chain submission outcomes."""

    def _session(self, status_code=200, body=None, side_effect=None):
        session = MagicMock()
        if side_effect is not None:
            session.post.side_effect = side_effect
        else:
            response = MagicMock()
            response.status_code = status_code
            response.json.return_value = body or {}
            session.post.return_value = response
        return session

    def test_not_configured(self):
        submitter = build_registry_submitter(RegistryConfig())
        assert isinstance(submitter, NullRegistrySubmitter)
        outcome = submitter.submit("req_1", 95, True, "0xproof")
        assert outcome.status == OnChainStatus.SKIPPED_NOT_CONFIGURED
        assert outcome.success is True

    def test_build_configured(self):
        submitter = build_registry_submitter(
            RegistryConfig(
                enabled=True,
                relay_url="https://relay.example",
                contract_address="0x" + "1" * 40,
                api_key="k",
            )
        )
        assert isinstance(submitter, RelayRegistrySubmitter)
        assert submitter.api_key == "k"

    def test_success(self):
        session = self._session(body={"txHash": "0xtx", "blockNumber": 123})
        submitter = RelayRegistrySubmitter(
            "https://relay.example/", "0xcontract", api_key="key", session=session
        )
        outcome = submitter.submit("req_1", 95, True, "0xproof")

        assert outcome.status == OnChainStatus.REAL_SUCCESS
        assert outcome.tx_hash == "0xtx"
        assert outcome.block_number == 123

        args, kwargs = session.post.call_args
        assert args[0] == "https://relay.example/submit"
        assert kwargs["headers"]["Authorization"] == "Bearer key"
        assert kwargs["json"]["requestId"] == registry_key("req_1")
        assert kwargs["json"]["proofHash"] == registry_key("0xproof")
        assert kwargs["json"]["score"] == 95

    def test_http_failure(self):
        submitter = RelayRegistrySubmitter(
            "https://relay.example", "0xcontract", session=self._session(status_code=500)
        )
        outcome = submitter.submit("req_1", 95, True, "0xproof")
        assert outcome.status == OnChainStatus.REAL_FAILURE
        assert outcome.success is False
        assert "500" in outcome.error

    def test_network_failure(self):
        submitter = RelayRegistrySubmitter(
            "https://relay.example",
            "0xcontract",
            session=self._session(side_effect=requests.Timeout("slow")),
        )
        outcome = submitter.submit("req_1", 95, False, "")
        assert outcome.status == OnChainStatus.REAL_FAILURE
        assert outcome.error == "slow"

    def test_wire_shape(self):
        outcome = NullRegistrySubmitter().submit("req_1", 1, False, "")
        assert outcome.to_wire() == {"status": "skipped_not_configured"}


class TestTextRenderer:
    """Test template rendering."""

    def test_missing_template_dir(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            TextRenderer(tmp_path / "nope")

    def test_formula_report(self):
        report = TextRenderer().render_formula_report(
            rationale="custom need",
            archetype="balanced",
            traits=["general purpose", "adaptable"],
            notes=["note one"],
            percents={"source": 25, "time": 25, "accuracy": 25, "proof": 25},
            dominant="source",
            emphasis=[],
            min_acceptable_score=65,
        )
        lines = report.splitlines()
        assert lines[0] == "Custom Formula Generation Report"
        assert 'User Request: "custom need"' in lines
        assert "Template Characteristics: general purpose, adaptable" in lines
        assert "  - note one" in lines
        assert "  - Proof (P):    25%" in lines
        assert lines[-1] == "Minimum Acceptable Score: 65"
