# src/oraclelens/core/pipeline.py

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from oraclelens.core.config import OracleLensConfig
from oraclelens.credibility.factors import (
    calculate_accuracy_score,
    calculate_proof_score,
    calculate_source_score,
    calculate_time_score,
)
from oraclelens.credibility.scorer import CredibilityScorer
from oraclelens.exceptions import FormulaResolutionError
from oraclelens.formulas.adjustments import adjust_profile, compute_weight_adjustment
from oraclelens.formulas.catalog import FormulaCatalog
from oraclelens.formulas.generator import CustomFormulaGenerator
from oraclelens.normalize.schema import (
    Confidence,
    EvaluateRequest,
    EvaluateResponse,
    EvaluationContext,
    EvaluationResult,
    FactorScores,
    FormulaSelection,
    GeneratedFormula,
    OnChainOutcome,
    OnChainStatus,
    VerificationResult,
    WeightProfile,
)
from oraclelens.normalize.transformer import build_context
from oraclelens.report.ledger import EvaluationLedger
from oraclelens.report.onchain import (
    NullRegistrySubmitter,
    RegistrySubmitter,
    build_registry_submitter,
)
from oraclelens.report.renderer import TextRenderer
from oraclelens.verify.base import VerificationRequest
from oraclelens.verify.orchestrator import (
    VerificationOrchestrator,
    build_verification_orchestrator,
)
from oraclelens.verify.payload_cache import PendingPayload, PendingPayloadCache

logger = logging.getLogger(__name__)

ENVIRONMENTAL_ARCHETYPE = "environmental"


def generate_request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class EvaluationPipeline:
    """
    End-to-end credibility evaluation for oracle readings.

    Runs factor calculation and verification concurrently, resolves the
    weighting formula, aggregates the score, then hands the result to the
    ledger and registry collaborators. Never raises for a bad evaluation:
    failures come back as well-formed failed results.
    """

    def __init__(
        self,
        config: Optional[OracleLensConfig] = None,
        catalog: Optional[FormulaCatalog] = None,
        orchestrator: Optional[VerificationOrchestrator] = None,
        scorer: Optional[CredibilityScorer] = None,
        generator: Optional[CustomFormulaGenerator] = None,
        ledger: Optional[EvaluationLedger] = None,
        registry: Optional[RegistrySubmitter] = None,
        payload_cache: Optional[PendingPayloadCache] = None,
    ):
        """
        Initialize pipeline.

        Args:
            config: Validated configuration (default: built-in defaults)
            catalog: Formula catalog (default: built-in profiles)
            orchestrator: Verification orchestrator (default: simulated only)
            scorer: Credibility scorer
            generator: Custom formula generator
            ledger: Evaluation ledger; None disables persistence
            registry: On-chain registry submitter (default: not configured)
            payload_cache: Pending payload store for attestation fetches
        """
        self.config = config or OracleLensConfig()
        renderer = TextRenderer()
        self.catalog = catalog or FormulaCatalog.default()
        self.orchestrator = orchestrator or VerificationOrchestrator(
            timeout_seconds=self.config.verification.timeout_seconds
        )
        self.scorer = scorer or CredibilityScorer(renderer)
        self.generator = generator or CustomFormulaGenerator(renderer)
        self.ledger = ledger
        self.registry = registry or NullRegistrySubmitter()
        self.payload_cache = payload_cache
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.pipeline.max_workers,
            thread_name_prefix="oraclelens-eval",
        )

    @classmethod
    def from_config(cls, config: OracleLensConfig) -> "EvaluationPipeline":
        """Build the pipeline and all of its collaborators from configuration."""
        catalog = (
            FormulaCatalog.from_yaml(config.formulas.catalog_path)
            if config.formulas.catalog_path
            else FormulaCatalog.default()
        )
        payload_cache = PendingPayloadCache(
            directory=config.payload_cache.directory,
            ttl_seconds=config.payload_cache.ttl_seconds,
        )
        ledger = EvaluationLedger(config.ledger.path) if config.ledger.enabled else None
        return cls(
            config=config,
            catalog=catalog,
            orchestrator=build_verification_orchestrator(config.verification, payload_cache),
            ledger=ledger,
            registry=build_registry_submitter(config.registry),
            payload_cache=payload_cache,
        )

    # --- Single evaluation ---

    def evaluate_context(
        self,
        context: EvaluationContext,
        request_id: Optional[str] = None,
        formula_id: Optional[str] = None,
        custom_formula_reason: Optional[str] = None,
    ) -> EvaluationResult:
        """
        Evaluate one prepared context.

        Args:
            context: Immutable evaluation context
            request_id: Identifier shared with verification (default: generated)
            formula_id: Explicit catalog formula to use
            custom_formula_reason: Caller's rationale for a custom formula

        Returns:
            EvaluationResult; success is False if anything went wrong.
        """
        request_id = request_id or generate_request_id()
        verification: Optional[VerificationResult] = None
        scoring = self.config.scoring

        try:
            if formula_id and self.catalog.get(formula_id) is not None:
                archetype = self.catalog.archetype_for(formula_id)
            else:
                archetype = self.catalog.select(context.category).archetype
            tolerance = (
                scoring.environmental_tolerance_percent
                if archetype == ENVIRONMENTAL_ARCHETYPE
                else scoring.tolerance_percent
            )
            verification_request = VerificationRequest(
                request_id=request_id,
                source_name=context.source_name,
                category=context.category,
                payload=context.payload.data,
                source_url=context.source_url,
                reference_values=context.reference_values,
            )

            source_future = self._executor.submit(
                calculate_source_score,
                context.source_name,
                context.has_api_documentation,
                context.is_regulated,
                context.historical_uptime,
            )
            time_future = self._executor.submit(
                calculate_time_score, context.reported_at, context.now, scoring.max_age_seconds
            )
            accuracy_future = self._executor.submit(
                calculate_accuracy_score,
                context.primary_value,
                context.reference_values,
                tolerance,
            )
            verify_future = self._executor.submit(self.orchestrator.verify, verification_request)

            verification = verify_future.result()
            factors = FactorScores(
                source=source_future.result(),
                time=time_future.result(),
                accuracy=accuracy_future.result(),
                proof=calculate_proof_score(verification, scoring.trusted_domains),
            )
            logger.debug(f"Factor scores for {request_id}: {factors.as_dict()}")

            profile, selection = self.resolve_formula(
                context, verification, formula_id, custom_formula_reason
            )
            result = self.scorer.score(factors, profile, verification, selection)

        except Exception as e:
            logger.error(f"Evaluation {request_id} failed: {e}")
            return EvaluationResult.failed(str(e) or type(e).__name__, verification)

        logger.info(
            f"Evaluation {request_id}: {result.final_score}/100 "
            f"({result.trust_level.value}) with {result.formula_id}"
        )
        return result

    def resolve_formula(
        self,
        context: EvaluationContext,
        verification: VerificationResult,
        formula_id: Optional[str] = None,
        custom_formula_reason: Optional[str] = None,
    ) -> Tuple[WeightProfile, FormulaSelection]:
        """
        Choose the weight profile for an evaluation.

        An explicit catalog formula always wins. Otherwise a custom formula is
        generated when the caller gave a rationale for a category no pattern
        matches, or when selection confidence is low.
        """
        profile, selection, match = self.catalog.select_formula(context, verification, formula_id)

        overridden = bool(formula_id) and self.catalog.get(formula_id) is not None
        wants_custom = (bool(custom_formula_reason) and not match.matched) or (
            selection.confidence == Confidence.LOW
        )
        if overridden or not wants_custom:
            return profile, selection

        rationale = custom_formula_reason or context.user_hint or context.category
        try:
            generated = self._generate(context, verification, rationale)
        except FormulaResolutionError as e:
            logger.warning(f"Custom formula generation failed, using generic formula: {e}")
            fallback = adjust_profile(
                self.catalog.default_profile, compute_weight_adjustment(context, verification)
            )
            return fallback, selection.model_copy(
                update={
                    "formula_id": fallback.id,
                    "reasoning": f"{selection.reasoning}\nCustom formula generation failed: {e}",
                }
            )

        return generated, FormulaSelection(
            formula_id=generated.id,
            confidence=selection.confidence,
            matched_pattern=match.matched,
            generated=True,
            reasoning=(
                f"{selection.reasoning}\nGenerated custom formula: {generated.name}\n\n"
                f"{generated.report}"
            ),
        )

    def _generate(
        self, context: EvaluationContext, verification: VerificationResult, rationale: str
    ) -> GeneratedFormula:
        try:
            generated = self.generator.generate(context, verification, rationale)
            # Generated weights are final; only re-check the invariants
            return GeneratedFormula.model_validate(generated.model_dump())
        except (ValidationError, ValueError) as e:
            raise FormulaResolutionError(str(e)) from e

    # --- Request boundary ---

    def evaluate(
        self, request: EvaluateRequest, now: Optional[datetime] = None
    ) -> EvaluateResponse:
        """
        Evaluate a validated request and notify the ledger and registry.

        Args:
            request: Validated EvaluateRequest
            now: Evaluation time (default: current UTC time)

        Returns:
            EvaluateResponse ready for the wire.
        """
        request_id = generate_request_id()
        logger.info(
            f"Evaluating {request_id}: source={request.source_name}, category={request.category}"
        )

        try:
            context = build_context(request, now)
        except Exception as e:
            logger.error(f"Could not build context for {request_id}: {e}")
            return EvaluateResponse.from_result(
                request_id, EvaluationResult.failed(str(e) or type(e).__name__), _now_ms()
            )

        self._store_pending(request_id, request)

        result = self.evaluate_context(
            context,
            request_id=request_id,
            formula_id=request.formula_id,
            custom_formula_reason=request.custom_formula_reason,
        )
        response = EvaluateResponse.from_result(request_id, result, _now_ms())
        if not result.success:
            return response

        return response.model_copy(
            update={
                "persisted": self._persist(request, response),
                "on_chain": self._submit_on_chain(response),
            }
        )

    def evaluate_batch(self, requests: Sequence[EvaluateRequest]) -> List[EvaluateResponse]:
        """
        Evaluate many requests concurrently.

        Each item is isolated: one failure never affects the others. Results
        come back in input order.
        """
        if not requests:
            return []

        logger.info(f"Evaluating batch of {len(requests)} requests")
        with ThreadPoolExecutor(
            max_workers=self.config.pipeline.batch_workers,
            thread_name_prefix="oraclelens-batch",
        ) as pool:
            responses = list(pool.map(self._evaluate_isolated, requests))

        succeeded = sum(1 for r in responses if r.success)
        logger.info(f"Batch complete: {succeeded}/{len(responses)} succeeded")
        return responses

    def _evaluate_isolated(self, request: EvaluateRequest) -> EvaluateResponse:
        try:
            return self.evaluate(request)
        except Exception as e:
            logger.error(f"Batch item failed: {e}")
            return EvaluateResponse.from_result(
                generate_request_id(), EvaluationResult.failed(str(e)), _now_ms()
            )

    # --- Collaborators ---

    def _store_pending(self, request_id: str, request: EvaluateRequest) -> None:
        if self.payload_cache is None:
            return
        try:
            self.payload_cache.put(
                request_id,
                PendingPayload(
                    source_name=request.source_name,
                    category=request.category,
                    data_value=request.data_value,
                    source_url=request.source_url,
                    reference_values=request.reference_values,
                ),
            )
        except Exception as e:
            logger.warning(f"Failed to cache pending payload for {request_id}: {e}")

    def _persist(self, request: EvaluateRequest, response: EvaluateResponse) -> bool:
        if self.ledger is None:
            return False
        try:
            self.ledger.append(request, response)
            return True
        except Exception as e:
            logger.warning(f"Failed to persist evaluation {response.request_id}: {e}")
            return False

    def _submit_on_chain(self, response: EvaluateResponse) -> OnChainOutcome:
        try:
            return self.registry.submit(
                response.request_id,
                response.score,
                response.verification.verified,
                response.verification.proof_id,
            )
        except Exception as e:
            logger.warning(f"On-chain submission raised for {response.request_id}: {e}")
            return OnChainOutcome(status=OnChainStatus.REAL_FAILURE, error=str(e))

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self.orchestrator.close()
        if self.payload_cache is not None:
            self.payload_cache.close()

    def __enter__(self) -> "EvaluationPipeline":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
