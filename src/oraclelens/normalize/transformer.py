# src/oraclelens/normalize/transformer.py

import json
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple, Union

from dateutil import parser as date_parser
from pydantic import ValidationError

from oraclelens.exceptions import RequestValidationError
from oraclelens.normalize.schema import (
    EvaluateRequest,
    EvaluationContext,
    GenericPayload,
    NumericPayload,
    OraclePayload,
    OutcomePayload,
)

logger = logging.getLogger(__name__)

# Fields tried, in order, when looking for the number being reported
NUMERIC_FIELDS: Tuple[str, ...] = ("price", "value", "temperature", "rate", "amount", "answer")
OUTCOME_FIELDS: Tuple[str, ...] = ("outcome", "result", "winner", "status")
TIMESTAMP_FIELDS: Tuple[str, ...] = ("timestamp", "reported_at", "updated_at")

# Epoch values above this are milliseconds
_MILLIS_THRESHOLD = 1e12
DEFAULT_REPORT_AGE = timedelta(seconds=60)


def validate_request(raw: Union[Dict[str, Any], str]) -> EvaluateRequest:
    """
    Validate a raw evaluation request before it reaches the pipeline.

    Args:
        raw: Dict or JSON string in the collaborator-facing (camelCase) shape

    Returns:
        Validated EvaluateRequest.

    Raises:
        RequestValidationError: If required fields are missing or malformed.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RequestValidationError(f"Request body is not valid JSON: {e}")

    if not isinstance(raw, dict):
        raise RequestValidationError("Request body must be a JSON object")

    try:
        return EvaluateRequest.model_validate(raw)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise RequestValidationError(
            "Missing or invalid required fields: " + "; ".join(errors), errors=errors
        )


def _is_number(value: Any) -> bool:
    # bool is an int subclass and never a reading
    if isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


def classify_payload(data: Dict[str, Any]) -> OraclePayload:
    """
    Classify raw oracle data into one of the known payload shapes.

    Numeric readings win over categorical outcomes; anything else passes
    through as a generic payload.
    """
    for field in NUMERIC_FIELDS:
        if field in data and _is_number(data[field]):
            return NumericPayload(field=field, value=float(data[field]), data=data)

    for field in OUTCOME_FIELDS:
        value = data.get(field)
        if isinstance(value, (str, bool)) and str(value).strip():
            return OutcomePayload(field=field, outcome=str(value).strip(), data=data)

    return GenericPayload(data=data)


def extract_primary_value(payload: OraclePayload) -> Optional[float]:
    """Number to compare against reference values, if the payload carries one."""
    if isinstance(payload, NumericPayload):
        return payload.value
    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if _is_number(value):
        seconds = value / 1000.0 if value > _MILLIS_THRESHOLD else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    if isinstance(value, str) and value.strip():
        dt = date_parser.parse(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    return None


def extract_reported_at(data: Dict[str, Any], now: datetime) -> datetime:
    """
    Determine when the oracle claims the reading was taken.

    Accepts epoch seconds, epoch milliseconds or date strings. Falls back to
    one minute before ``now`` when no usable timestamp is present.
    """
    for field in TIMESTAMP_FIELDS:
        if field not in data:
            continue
        try:
            parsed = _parse_timestamp(data[field])
        except (ValueError, OverflowError, OSError) as e:
            logger.debug(f"Ignoring unparseable {field}={data[field]!r}: {e}")
            continue
        if parsed is not None:
            return parsed

    return now - DEFAULT_REPORT_AGE


def build_context(
    request: EvaluateRequest, now: Optional[datetime] = None
) -> EvaluationContext:
    """
    Build the immutable evaluation context for a validated request.

    Args:
        request: Validated request
        now: Evaluation time (default: current UTC time)

    Returns:
        EvaluationContext with the payload classified and timestamps resolved.
    """
    now = now or datetime.now(timezone.utc)
    payload = classify_payload(request.data_value)

    return EvaluationContext(
        source_name=request.source_name,
        category=request.category,
        primary_value=extract_primary_value(payload),
        reference_values=list(request.reference_values or []),
        reported_at=extract_reported_at(request.data_value, now),
        now=now,
        source_url=request.source_url,
        user_hint=request.user_hint,
        has_api_documentation=request.has_api_documentation,
        is_regulated=request.is_regulated,
        historical_uptime=request.historical_uptime,
        payload=payload,
    )
