# src/oraclelens/exceptions.py

from typing import List, Optional


class OracleLensError(Exception):
    """Base class for all OracleLens errors."""


class RequestValidationError(OracleLensError, ValueError):
    """
    Raised at the request boundary when required fields are missing or malformed.

    Carries an HTTP-style client error status so outer layers can map it directly.
    """

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)


class VerificationError(OracleLensError):
    """Raised inside the real attestation path; always triggers the simulated fallback."""


class AttestationUnavailableError(VerificationError):
    """Raised when no attestation capability is configured or it cannot be initialized."""


class FormulaResolutionError(OracleLensError):
    """Raised when a formula cannot be resolved; handled by falling back to the generic profile."""
