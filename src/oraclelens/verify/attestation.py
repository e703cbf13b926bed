# src/oraclelens/verify/attestation.py

"""
Real attestation path.

An attestation gateway fetches our public oracle-data document over TLS and
signs what it saw. Verifying that signature proves the reading came from
this server unmodified.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from oraclelens.exceptions import AttestationUnavailableError, VerificationError
from oraclelens.normalize.hash_utils import derive_proof_id, placeholder_address
from oraclelens.normalize.schema import VerificationMode, VerificationResult
from oraclelens.verify.base import VerificationRequest, Verifier, hostname_of
from oraclelens.verify.payload_cache import PendingPayload, PendingPayloadCache

logger = logging.getLogger(__name__)

RESPONSE_FIELDS = ["requestId", "oracle", "data", "metadata"]


class AttestationClient(ABC):
    """The three-step attestation capability: sign, execute, verify."""

    @abstractmethod
    def sign(self, request_params: Dict[str, Any]) -> str:
        """Sign an attestation request; returns the signed request string."""

    @abstractmethod
    def start_attestation(self, signed_request: str) -> Dict[str, Any]:
        """Execute the attestation; returns the attestation document."""

    @abstractmethod
    def verify_attestation(self, attestation: Dict[str, Any]) -> bool:
        """Check the attestation signatures."""


class HttpAttestationClient(AttestationClient):
    """
    Attestation client talking to an HTTP gateway.

    Single attempt per call: the verification orchestrator owns the timeout
    and falls back to simulation instead of retrying.
    """

    def __init__(
        self,
        gateway_url: str,
        app_id: str,
        app_secret: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not gateway_url or not app_id or not app_secret:
            raise AttestationUnavailableError("Attestation gateway URL and app credentials are required")
        self.gateway_url = gateway_url.rstrip("/")
        self.app_id = app_id
        self._app_secret = app_secret
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.gateway_url}{path}"
        headers = {
            "X-App-Id": self.app_id,
            "X-App-Secret": self._app_secret,
            "User-Agent": "OracleLens/0.1",
        }
        try:
            response = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise VerificationError(f"Attestation gateway unreachable: {e}") from e

        if response.status_code != 200:
            raise VerificationError(
                f"Attestation gateway returned {response.status_code} for {path}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise VerificationError(f"Attestation gateway returned invalid JSON for {path}") from e

    def sign(self, request_params: Dict[str, Any]) -> str:
        data = self._post("/v1/sign", {"request": request_params})
        signed = data.get("signedRequest")
        if not signed:
            raise VerificationError("Attestation gateway did not return a signed request")
        return signed

    def start_attestation(self, signed_request: str) -> Dict[str, Any]:
        data = self._post("/v1/attestations", {"signedRequest": signed_request})
        attestation = data.get("attestation")
        if not isinstance(attestation, dict):
            raise VerificationError("Attestation gateway did not return an attestation")
        return attestation

    def verify_attestation(self, attestation: Dict[str, Any]) -> bool:
        data = self._post("/v1/attestations/verify", {"attestation": attestation})
        return data.get("verified") is True


class AttestationVerifier(Verifier):
    """Verifier backed by a real attestation capability."""

    name = "attestation"

    def __init__(
        self,
        client: AttestationClient,
        template_id: str,
        public_base_url: str,
        payload_cache: Optional[PendingPayloadCache] = None,
    ):
        self.client = client
        self.template_id = template_id
        self.public_base_url = public_base_url.rstrip("/")
        self.payload_cache = payload_cache

    def data_endpoint(self, request_id: str) -> str:
        return f"{self.public_base_url}/api/oracle-data/{request_id}"

    def build_request_params(self, request: VerificationRequest) -> Dict[str, Any]:
        return {
            "templateId": self.template_id,
            "userAddress": placeholder_address(request.source_name),
            "attMode": {"algorithmType": "proxytls"},
            "url": self.data_endpoint(request.request_id),
            "method": "GET",
            "responseFields": list(RESPONSE_FIELDS),
        }

    def verify(self, request: VerificationRequest) -> VerificationResult:
        # The gateway fetches the payload back from our endpoint
        if self.payload_cache is not None and request.request_id not in self.payload_cache:
            self.payload_cache.put(
                request.request_id,
                PendingPayload(
                    source_name=request.source_name,
                    category=request.category,
                    data_value=request.payload,
                    source_url=request.source_url,
                    reference_values=request.reference_values or None,
                ),
            )

        endpoint = self.data_endpoint(request.request_id)
        signed = self.client.sign(self.build_request_params(request))

        logger.info(f"Starting attestation for {endpoint}")
        attestation = self.client.start_attestation(signed)
        verified = self.client.verify_attestation(attestation) is True

        attested_url = (attestation.get("request") or {}).get("url") or endpoint
        domain = hostname_of(attested_url)
        logger.info(f"Attestation complete: verified={verified}, domain={domain}")

        return VerificationResult(
            attempted=True,
            verified=verified,
            proof_id=derive_proof_id(attestation),
            domain=domain,
            mode=VerificationMode.REAL,
        )
