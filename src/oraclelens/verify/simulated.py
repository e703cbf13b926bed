# src/oraclelens/verify/simulated.py

import logging

from oraclelens.normalize.hash_utils import canonical_json, compute_sha256
from oraclelens.normalize.schema import VerificationMode, VerificationResult
from oraclelens.verify.base import VerificationRequest, Verifier, hostname_of

logger = logging.getLogger(__name__)


class SimulatedVerifier(Verifier):
    """
    Deterministic stand-in for real attestation.

    The outcome depends only on (source_name, category, payload): about nine
    in ten inputs verify, and identical inputs always get the same result
    and proof id.
    """

    name = "simulated"

    def verify(self, request: VerificationRequest) -> VerificationResult:
        seed = compute_sha256(
            request.source_name + request.category + canonical_json(request.payload)
        )
        verified = int(seed[:8], 16) % 10 != 0
        proof_id = "0x" + compute_sha256("simulated:" + seed)

        logger.debug(f"Simulated verification for {request.request_id}: verified={verified}")
        return VerificationResult(
            attempted=True,
            verified=verified,
            proof_id=proof_id,
            domain=hostname_of(request.source_url),
            mode=VerificationMode.SIMULATED,
        )
