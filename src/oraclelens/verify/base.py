# src/oraclelens/verify/base.py

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from oraclelens.normalize.schema import VerificationResult


class VerificationRequest(BaseModel):
    """What a verifier needs to know about one oracle reading."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    source_name: str
    category: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    source_url: Optional[str] = None
    reference_values: List[float] = Field(default_factory=list)


class Verifier(ABC):
    """A provider of authenticity verification for oracle data."""

    name: str = "verifier"

    @abstractmethod
    def verify(self, request: VerificationRequest) -> VerificationResult:
        """Verify one reading; implementations may raise on failure."""


def hostname_of(url: Optional[str]) -> Optional[str]:
    """Host part of a URL, or None when the URL is missing or unparseable."""
    if not url:
        return None
    try:
        return urlparse(url).hostname
    except ValueError:
        return None
