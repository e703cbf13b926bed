# tests/unit/test_verify.py

import hashlib
import json
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from oraclelens.core.config import VerificationConfig
from oraclelens.exceptions import AttestationUnavailableError, VerificationError
from oraclelens.normalize.schema import VerificationMode, VerificationResult
from oraclelens.verify.attestation import (
    AttestationClient,
    AttestationVerifier,
    HttpAttestationClient,
)
from oraclelens.verify.base import VerificationRequest, Verifier, hostname_of
from oraclelens.verify.orchestrator import (
    VerificationOrchestrator,
    build_verification_orchestrator,
)
from oraclelens.verify.payload_cache import (
    PendingPayload,
    PendingPayloadCache,
    build_oracle_data_document,
)
from oraclelens.verify.simulated import SimulatedVerifier


def _request(request_id="req_1_abcd1234", source_name="chainlink", payload=None):
    return VerificationRequest(
        request_id=request_id,
        source_name=source_name,
        category="price_feed",
        payload=payload if payload is not None else {"price": 2534.5},
        source_url="https://api.coingecko.com/api/v3/simple/price",
    )


class StubAttestationClient(AttestationClient):
    def __init__(self, verified=True, url="https://oraclelens.example/api/oracle-data/x"):
        self.verified = verified
        self.url = url
        self.signed_params = None

    def sign(self, request_params):
        self.signed_params = request_params
        return "signed-request"

    def start_attestation(self, signed_request):
        assert signed_request == "signed-request"
        return {
            "recipient": "0xrecipient",
            "data": '{"price": 2534.5}',
            "timestamp": 1736942400000,
            "signatures": ["0xsig"],
            "request": {"url": self.url},
        }

    def verify_attestation(self, attestation):
        return self.verified


class RaisingVerifier(Verifier):
    def verify(self, request):
        raise VerificationError("gateway exploded")


class SlowVerifier(Verifier):
    def __init__(self, delay):
        self.delay = delay
        self.finished = threading.Event()

    def verify(self, request):
        time.sleep(self.delay)
        self.finished.set()
        return VerificationResult(
            attempted=True, verified=True, proof_id="0xslow", mode=VerificationMode.REAL
        )


class TestSimulatedVerifier:
    """Test deterministic simulated verification."""

    def test_deterministic(self):
        verifier = SimulatedVerifier()
        first = verifier.verify(_request(request_id="a"))
        second = verifier.verify(_request(request_id="b"))
        assert first == second

    def test_matches_seed_rule(self):
        payload = {"price": 2534.5}
        seed = hashlib.sha256(
            ("chainlink" + "price_feed" + json.dumps(payload, sort_keys=True, separators=(",", ":")))
            .encode("utf-8")
        ).hexdigest()

        result = SimulatedVerifier().verify(_request(payload=payload))

        assert result.attempted is True
        assert result.verified is (int(seed[:8], 16) % 10 != 0)
        assert result.proof_id == "0x" + hashlib.sha256(f"simulated:{seed}".encode()).hexdigest()
        assert result.domain == "api.coingecko.com"
        assert result.mode == VerificationMode.SIMULATED

    def test_payload_key_order_does_not_matter(self):
        verifier = SimulatedVerifier()
        a = verifier.verify(_request(payload={"price": 1, "timestamp": 2}))
        b = verifier.verify(_request(payload={"timestamp": 2, "price": 1}))
        assert a.proof_id == b.proof_id

    def test_roughly_ninety_percent_verify(self):
        verifier = SimulatedVerifier()
        results = [
            verifier.verify(_request(payload={"price": i})).verified for i in range(500)
        ]
        assert 0.8 < sum(results) / len(results) < 0.97

    def test_hostname_of(self):
        assert hostname_of("https://API.example.com:8443/path") == "api.example.com"
        assert hostname_of(None) is None
        assert hostname_of("") is None


class TestAttestationVerifier:
    """Test the real attestation path against a stub client."""

    def test_verified_attestation(self, tmp_path):
        client = StubAttestationClient(url="https://oraclelens.example/api/oracle-data/req_1")
        with PendingPayloadCache(tmp_path / "cache") as cache:
            verifier = AttestationVerifier(
                client,
                template_id="tmpl-1",
                public_base_url="https://oraclelens.example/",
                payload_cache=cache,
            )
            result = verifier.verify(_request(request_id="req_1"))

            assert cache.get("req_1").source_name == "chainlink"

        assert result.verified is True
        assert result.mode == VerificationMode.REAL
        assert result.domain == "oraclelens.example"
        assert result.proof_id.startswith("0x") and len(result.proof_id) == 66
        assert client.signed_params["url"] == "https://oraclelens.example/api/oracle-data/req_1"
        assert client.signed_params["templateId"] == "tmpl-1"
        assert client.signed_params["method"] == "GET"
        assert client.signed_params["attMode"] == {"algorithmType": "proxytls"}
        assert client.signed_params["userAddress"].startswith("0x")

    def test_unverified_attestation(self):
        verifier = AttestationVerifier(
            StubAttestationClient(verified=False), "tmpl-1", "https://oraclelens.example"
        )
        result = verifier.verify(_request())
        assert result.attempted is True
        assert result.verified is False


class TestHttpAttestationClient:
    """Test the HTTP gateway client with a mocked session."""

    def _response(self, status_code=200, body=None):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = body or {}
        return response

    def test_requires_credentials(self):
        with pytest.raises(AttestationUnavailableError):
            HttpAttestationClient("", "app", "secret")

    def test_sign_posts_with_credentials(self):
        session = MagicMock()
        session.post.return_value = self._response(body={"signedRequest": "abc"})
        client = HttpAttestationClient(
            "https://gateway.example/", "app-1", "s3cret", timeout=5, session=session
        )

        assert client.sign({"templateId": "t"}) == "abc"

        args, kwargs = session.post.call_args
        assert args[0] == "https://gateway.example/v1/sign"
        assert kwargs["headers"]["X-App-Id"] == "app-1"
        assert kwargs["timeout"] == 5
        assert session.post.call_count == 1

    def test_http_error_raises_verification_error(self):
        session = MagicMock()
        session.post.return_value = self._response(status_code=503)
        client = HttpAttestationClient("https://gateway.example", "app", "secret", session=session)
        with pytest.raises(VerificationError, match="503"):
            client.start_attestation("signed")
        assert session.post.call_count == 1

    def test_network_error_raises_verification_error(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        client = HttpAttestationClient("https://gateway.example", "app", "secret", session=session)
        with pytest.raises(VerificationError, match="unreachable"):
            client.verify_attestation({})

    def test_verify_requires_literal_true(self):
        session = MagicMock()
        session.post.return_value = self._response(body={"verified": "yes"})
        client = HttpAttestationClient("https://gateway.example", "app", "secret", session=session)
        assert client.verify_attestation({}) is False


class TestVerificationOrchestrator:
    """Test mode selection and the fallback behavior."""

    def test_disabled(self):
        result = VerificationOrchestrator(enabled=False).verify(_request())
        assert result.attempted is False
        assert result.verified is False

    def test_simulated_only(self):
        result = VerificationOrchestrator().verify(_request())
        assert result.mode == VerificationMode.SIMULATED
        assert result.error is None

    def test_real_success(self):
        real = AttestationVerifier(StubAttestationClient(), "tmpl", "https://oraclelens.example")
        result = VerificationOrchestrator(real=real).verify(_request())
        assert result.mode == VerificationMode.REAL
        assert result.verified is True

    def test_fallback_on_exception(self):
        orchestrator = VerificationOrchestrator(real=RaisingVerifier())
        result = orchestrator.verify(_request())
        expected = SimulatedVerifier().verify(_request())

        assert result.mode == VerificationMode.SIMULATED
        assert result.verified == expected.verified
        assert result.proof_id == expected.proof_id
        assert result.error == "gateway exploded"

    def test_fallback_on_unverified(self):
        real = AttestationVerifier(
            StubAttestationClient(verified=False), "tmpl", "https://oraclelens.example"
        )
        result = VerificationOrchestrator(real=real).verify(_request())
        assert result.mode == VerificationMode.SIMULATED
        assert result.error == "Attestation was not verified"

    def test_fallback_on_timeout(self):
        slow = SlowVerifier(delay=0.5)
        orchestrator = VerificationOrchestrator(real=slow, timeout_seconds=0.05)
        started = time.monotonic()
        result = orchestrator.verify(_request())
        elapsed = time.monotonic() - started

        assert elapsed < 0.4
        assert result.mode == VerificationMode.SIMULATED
        assert "timed out" in result.error
        orchestrator.close()

    def test_concurrent_callers_share_one_attestation_pool(self):
        orchestrator = VerificationOrchestrator(real=SlowVerifier(delay=0))
        barrier = threading.Barrier(8)
        pools = []

        def grab():
            barrier.wait()
            pools.append(orchestrator._real_executor())

        threads = [threading.Thread(target=grab) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(pool) for pool in pools}) == 1
        orchestrator.close()
        assert orchestrator._executor is None

    def test_rejects_bad_timeout(self):
        with pytest.raises(ValueError):
            VerificationOrchestrator(timeout_seconds=0)

    def test_build_without_credentials_is_simulated(self):
        orchestrator = build_verification_orchestrator(VerificationConfig(mode="auto"))
        assert orchestrator.has_real_capability is False
        assert orchestrator.enabled is True

    def test_build_with_credentials(self):
        config = VerificationConfig(
            mode="auto",
            gateway_url="https://gateway.example",
            app_id="app",
            app_secret="secret",
            template_id="tmpl",
        )
        orchestrator = build_verification_orchestrator(config)
        assert isinstance(orchestrator.real, AttestationVerifier)

    def test_build_simulated_ignores_credentials(self):
        config = VerificationConfig(
            mode="simulated",
            gateway_url="https://gateway.example",
            app_id="app",
            app_secret="secret",
            template_id="tmpl",
        )
        assert build_verification_orchestrator(config).has_real_capability is False

    def test_build_disabled(self):
        orchestrator = build_verification_orchestrator(VerificationConfig(mode="disabled"))
        assert orchestrator.verify(_request()).attempted is False


class TestPendingPayloadCache:
    """Test the expiring pending payload store."""

    @pytest.fixture
    def payload(self):
        return PendingPayload(
            source_name="chainlink",
            category="price_feed",
            data_value={"price": 2534.5},
            source_url="https://api.coingecko.com",
            reference_values=[2534.89],
        )

    def test_put_and_get(self, tmp_path, payload):
        with PendingPayloadCache(tmp_path) as cache:
            cache.put("req_1", payload)
            assert "req_1" in cache
            assert cache.get("req_1") == payload
            assert cache.get("req_missing") is None

    def test_entries_expire_unread(self, tmp_path, payload):
        with PendingPayloadCache(tmp_path, ttl_seconds=0.2) as cache:
            cache.put("req_1", payload)
            cache.put("req_2", payload)
            time.sleep(0.4)
            assert cache.evict_expired() == 2
            assert cache.get("req_1") is None

    def test_default_directory(self):
        cache = PendingPayloadCache()
        try:
            assert cache.directory.exists()
        finally:
            cache.close()

    def test_rejects_bad_ttl(self, tmp_path):
        with pytest.raises(ValueError):
            PendingPayloadCache(tmp_path, ttl_seconds=0)

    def test_oracle_data_document(self, payload):
        document = build_oracle_data_document("req_1", payload, now_ms=1736942400000)
        assert document == {
            "requestId": "req_1",
            "oracle": {"name": "chainlink", "type": "price_feed", "verified": True},
            "data": {"price": 2534.5},
            "metadata": {
                "source": "https://api.coingecko.com",
                "referenceValues": [2534.89],
                "timestamp": 1736942400000,
                "version": "1.0.0",
            },
            "signature": {"algorithm": "ORACLE_LENS_V1", "server": "oraclelens"},
        }
