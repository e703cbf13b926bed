# src/oraclelens/report/ledger.py

import json
import logging
import platform
import socket
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from oraclelens.normalize.schema import (
    EvaluateRequest,
    EvaluateResponse,
    ScoreBreakdown,
    TrustLevel,
)

logger = logging.getLogger(__name__)


class LedgerEntry(BaseModel):
    """One line of the ledger: an evaluation record or a touch event."""

    model_config = ConfigDict(frozen=True)

    event: Literal["evaluation", "touch"]
    request_id: str
    recorded_at: str
    source_name: Optional[str] = None
    category: Optional[str] = None
    data_value: Optional[Dict[str, Any]] = None
    source_url: Optional[str] = None
    reference_values: Optional[List[float]] = None
    score: Optional[int] = None
    trust_level: Optional[TrustLevel] = None
    formula_id: Optional[str] = None
    formula_name: Optional[str] = None
    formula_reasoning: Optional[str] = None
    breakdown: Optional[ScoreBreakdown] = None
    explanation: Optional[str] = None
    verified: Optional[bool] = None
    proof_id: Optional[str] = None
    verification_mode: Optional[str] = None
    verification_domain: Optional[str] = None
    tool: Optional[Dict[str, Any]] = None
    updated_at: Optional[str] = None


class EvaluationLedger:
    """
    Append-only JSON Lines log of evaluations.

    Lines are never rewritten. A touch appends a touch event; reads fold the
    latest touch into the evaluation record as updated_at.
    """

    def __init__(self, path: Union[str, Path]):
        """
        Initialize ledger.

        Args:
            path: JSONL file to append to (created on first write)
        """
        self.path = Path(path).resolve()
        self._lock = threading.Lock()
        self.tool_info = {
            "name": "OracleLens",
            "version": self._get_tool_version(),
            "hostname": socket.gethostname(),
            "python_version": platform.python_version(),
        }

    def _get_tool_version(self) -> str:
        from oraclelens import __version__

        return __version__

    def _write(self, entry: LedgerEntry) -> None:
        line = entry.model_dump_json(exclude_none=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def _read(self) -> Iterator[LedgerEntry]:
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield LedgerEntry.model_validate(json.loads(line))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning(f"Skipping malformed ledger line {line_no} in {self.path}: {e}")

    def append(self, request: EvaluateRequest, response: EvaluateResponse) -> LedgerEntry:
        """
        Record one evaluation.

        Args:
            request: The validated request that was evaluated
            response: The response returned to the caller

        Returns:
            The entry as written.
        """
        entry = LedgerEntry(
            event="evaluation",
            request_id=response.request_id,
            recorded_at=self._get_timestamp(),
            source_name=request.source_name,
            category=request.category,
            data_value=request.data_value,
            source_url=request.source_url,
            reference_values=request.reference_values,
            score=response.score,
            trust_level=response.trust_level,
            formula_id=response.formula_id,
            formula_name=response.formula_name,
            formula_reasoning=response.formula_reasoning,
            breakdown=response.breakdown,
            explanation=response.explanation,
            verified=response.verification.verified,
            proof_id=response.verification.proof_id,
            verification_mode=response.verification.mode.value,
            verification_domain=response.verification.domain,
            tool=self.tool_info,
        )
        self._write(entry)
        logger.debug(f"Ledger record appended for {response.request_id}")
        return entry

    def touch(self, request_id: str) -> bool:
        """Record an update marker for an existing evaluation; False if unknown."""
        if self.get(request_id) is None:
            return False
        self._write(
            LedgerEntry(event="touch", request_id=request_id, recorded_at=self._get_timestamp())
        )
        return True

    def _folded(self) -> List[LedgerEntry]:
        evaluations: Dict[str, LedgerEntry] = {}
        touches: Dict[str, str] = {}
        for entry in self._read():
            if entry.event == "evaluation":
                evaluations.setdefault(entry.request_id, entry)
            else:
                touches[entry.request_id] = entry.recorded_at

        return [
            entry.model_copy(update={"updated_at": touches[rid]}) if rid in touches else entry
            for rid, entry in evaluations.items()
        ]

    def get(self, request_id: str) -> Optional[LedgerEntry]:
        for entry in self._folded():
            if entry.request_id == request_id:
                return entry
        return None

    def query(
        self,
        source_name: Optional[str] = None,
        trust_level: Optional[Union[TrustLevel, str]] = None,
        limit: int = 50,
    ) -> List[LedgerEntry]:
        """
        Evaluation history, newest first.

        Args:
            source_name: Only evaluations from this oracle (case-insensitive)
            trust_level: Only evaluations at this trust level
            limit: Maximum number of records

        Returns:
            Matching ledger entries.
        """
        if limit <= 0:
            return []
        level = TrustLevel(trust_level) if trust_level is not None else None
        wanted_source = source_name.strip().lower() if source_name else None

        results = []
        for entry in reversed(self._folded()):
            if wanted_source and (entry.source_name or "").lower() != wanted_source:
                continue
            if level is not None and entry.trust_level != level:
                continue
            results.append(entry)
            if len(results) >= limit:
                break
        return results

    def _get_timestamp(self) -> str:
        """Get ISO 8601 UTC timestamp with timezone."""
        return datetime.now(timezone.utc).isoformat()
