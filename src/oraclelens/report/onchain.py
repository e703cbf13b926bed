# src/oraclelens/report/onchain.py

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from oraclelens.normalize.hash_utils import registry_key
from oraclelens.normalize.schema import OnChainOutcome, OnChainStatus

logger = logging.getLogger(__name__)

MAX_REGISTRY_SCORE = 100


class RegistrySubmitter(ABC):
    """Publishes evaluation results to the on-chain registry."""

    @abstractmethod
    def submit(
        self, request_id: str, score: int, verified: bool, proof_id: str
    ) -> OnChainOutcome:
        """Submit one result. Must not raise: failures are reported in the outcome."""


class NullRegistrySubmitter(RegistrySubmitter):
    """Used when no registry is configured."""

    def submit(
        self, request_id: str, score: int, verified: bool, proof_id: str
    ) -> OnChainOutcome:
        logger.debug(f"Skipping on-chain submission for {request_id} (not configured)")
        return OnChainOutcome(status=OnChainStatus.SKIPPED_NOT_CONFIGURED)


class RelayRegistrySubmitter(RegistrySubmitter):
    """
    Submits results through an HTTP relay that signs and sends the transaction.

    Request and proof ids are mapped to 32-byte hex keys before submission.
    """

    def __init__(
        self,
        relay_url: str,
        contract_address: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.relay_url = relay_url.rstrip("/")
        self.contract_address = contract_address
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        # Only statuses where the relay did not accept the transaction
        retry_strategy = Retry(
            total=2,
            backoff_factor=1,
            status_forcelist=[429, 503],
            allowed_methods=frozenset({"POST"}),
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def submit(
        self, request_id: str, score: int, verified: bool, proof_id: str
    ) -> OnChainOutcome:
        body = {
            "contractAddress": self.contract_address,
            "requestId": registry_key(request_id),
            "score": max(0, min(MAX_REGISTRY_SCORE, int(score))),
            "verified": bool(verified),
            "proofHash": registry_key(proof_id) if proof_id else "0x" + "0" * 64,
        }
        headers = {"User-Agent": "OracleLens/0.1"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        logger.info(f"Submitting result on-chain: {request_id} score={body['score']}")
        try:
            response = self.session.post(
                f"{self.relay_url}/submit", json=body, headers=headers, timeout=self.timeout
            )
            if response.status_code != 200:
                error = f"Registry relay returned {response.status_code}"
                logger.warning(f"On-chain submission failed for {request_id}: {error}")
                return OnChainOutcome(status=OnChainStatus.REAL_FAILURE, error=error)
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"On-chain submission failed for {request_id}: {e}")
            return OnChainOutcome(status=OnChainStatus.REAL_FAILURE, error=str(e))

        outcome = OnChainOutcome(
            status=OnChainStatus.REAL_SUCCESS,
            tx_hash=data.get("txHash"),
            block_number=data.get("blockNumber"),
        )
        logger.info(f"Result submitted: tx={outcome.tx_hash} block={outcome.block_number}")
        return outcome


def build_registry_submitter(config) -> RegistrySubmitter:
    """Relay submitter when a RegistryConfig is fully configured, else a no-op."""
    if not config.is_configured:
        return NullRegistrySubmitter()
    return RelayRegistrySubmitter(
        relay_url=config.relay_url,
        contract_address=config.contract_address,
        api_key=config.api_key.get_secret_value() if config.api_key else None,
        timeout=config.timeout_seconds,
    )
