# src/oraclelens/verify/orchestrator.py

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import List, Optional

from oraclelens.exceptions import AttestationUnavailableError
from oraclelens.normalize.schema import VerificationMode, VerificationResult
from oraclelens.verify.attestation import AttestationVerifier, HttpAttestationClient
from oraclelens.verify.base import VerificationRequest, Verifier
from oraclelens.verify.payload_cache import PendingPayloadCache
from oraclelens.verify.simulated import SimulatedVerifier

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class VerificationState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ATTEMPTING_REAL = "attempting_real"
    VERIFIED_REAL = "verified_real"
    FAILED_REAL = "failed_real"
    SIMULATED = "simulated"
    DONE = "done"


class VerificationOrchestrator:
    """
    Runs the real verifier when one is configured and falls back to simulation.

    One real attempt per request, bounded by timeout_seconds. Any exception,
    an unverified outcome or a timeout leads to the simulated result, which
    then carries the real-path error message.
    """

    def __init__(
        self,
        simulated: Optional[Verifier] = None,
        real: Optional[Verifier] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        enabled: bool = True,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.simulated = simulated or SimulatedVerifier()
        self.real = real
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    @property
    def has_real_capability(self) -> bool:
        return self.real is not None

    def _real_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(thread_name_prefix="oraclelens-attest")
            return self._executor

    def verify(self, request: VerificationRequest) -> VerificationResult:
        if not self.enabled:
            return VerificationResult(
                attempted=False, verified=False, mode=VerificationMode.SIMULATED
            )

        states: List[VerificationState] = [VerificationState.UNINITIALIZED]
        real_error: Optional[str] = None

        if self.real is not None:
            states.append(VerificationState.ATTEMPTING_REAL)
            try:
                result = self._attempt_real(request)
                if result.verified:
                    states += [VerificationState.VERIFIED_REAL, VerificationState.DONE]
                    logger.debug(f"Verification states for {request.request_id}: {states}")
                    return result
                real_error = result.error or "Attestation was not verified"
            except FutureTimeoutError:
                real_error = f"Attestation timed out after {self.timeout_seconds}s"
            except Exception as e:
                real_error = str(e) or type(e).__name__

            states.append(VerificationState.FAILED_REAL)
            logger.warning(
                f"Real verification failed for {request.request_id}, "
                f"falling back to simulated: {real_error}"
            )

        states.append(VerificationState.SIMULATED)
        result = self.simulated.verify(request)
        if real_error:
            result = result.model_copy(update={"error": real_error})

        states.append(VerificationState.DONE)
        logger.debug(f"Verification states for {request.request_id}: {states}")
        return result

    def _attempt_real(self, request: VerificationRequest) -> VerificationResult:
        future = self._real_executor().submit(self.real.verify, request)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            # The worker cannot be interrupted; its late result is discarded
            future.cancel()
            raise

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)


def build_verification_orchestrator(
    config, payload_cache: Optional[PendingPayloadCache] = None
) -> VerificationOrchestrator:
    """
    Build the orchestrator from a VerificationConfig.

    Modes: "disabled" skips verification, "simulated" never tries the real
    path, "real" and "auto" use it whenever credentials are configured.
    """
    if config.mode == "disabled":
        logger.info("Verification disabled")
        return VerificationOrchestrator(enabled=False)

    real: Optional[Verifier] = None
    if config.mode in ("real", "auto"):
        if config.has_credentials:
            try:
                client = HttpAttestationClient(
                    gateway_url=config.gateway_url,
                    app_id=config.app_id,
                    app_secret=config.app_secret.get_secret_value(),
                    timeout=config.timeout_seconds,
                )
                real = AttestationVerifier(
                    client,
                    template_id=config.template_id,
                    public_base_url=config.public_base_url,
                    payload_cache=payload_cache,
                )
                logger.info(f"Real attestation enabled via {config.gateway_url}")
            except AttestationUnavailableError as e:
                logger.warning(f"Attestation client unavailable, using simulated mode: {e}")
        elif config.mode == "real":
            logger.warning("Verification mode 'real' requested without credentials, using simulated")
        else:
            logger.info("No attestation credentials, using simulated verification")

    return VerificationOrchestrator(real=real, timeout_seconds=config.timeout_seconds)
