# src/oraclelens/verify/payload_cache.py

import logging
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import diskcache
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DOCUMENT_VERSION = "1.0.0"
SIGNATURE_ALGORITHM = "ORACLE_LENS_V1"


class PendingPayload(BaseModel):
    """Reading held while an attestation fetches it back from the public endpoint."""

    model_config = ConfigDict(frozen=True)

    source_name: str
    category: str
    data_value: Dict[str, Any]
    source_url: Optional[str] = None
    reference_values: Optional[List[float]] = None
    created_at: float = Field(default_factory=time.time)


class PendingPayloadCache:
    """
    Short-lived store of pending payloads keyed by request id.

    Entries expire after ttl_seconds whether or not they were ever read.
    Backed by diskcache, so it is safe to share across threads and processes.
    """

    def __init__(
        self,
        directory: Optional[Union[str, Path]] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        if directory:
            path = Path(directory)
            path.mkdir(parents=True, exist_ok=True)
        else:
            path = Path(tempfile.mkdtemp(prefix="oraclelens-pending-"))

        self.directory = path
        self.ttl_seconds = ttl_seconds
        self._cache = diskcache.Cache(str(path))

    def put(self, request_id: str, payload: PendingPayload) -> None:
        self._cache.set(request_id, payload.model_dump(mode="json"), expire=self.ttl_seconds)

    def get(self, request_id: str) -> Optional[PendingPayload]:
        entry = self._cache.get(request_id)
        if entry is None:
            return None
        return PendingPayload.model_validate(entry)

    def __contains__(self, request_id: str) -> bool:
        return self._cache.get(request_id) is not None

    def evict_expired(self) -> int:
        """Drop expired entries now; returns how many were removed."""
        removed = self._cache.expire()
        if removed:
            logger.debug(f"Evicted {removed} expired pending payloads")
        return removed

    def close(self) -> None:
        self._cache.close()

    def __enter__(self) -> "PendingPayloadCache":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def build_oracle_data_document(
    request_id: str,
    payload: PendingPayload,
    server: str = "oraclelens",
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Document served at /api/oracle-data/<request_id> for attestation to fetch.

    The attestation proves this document came from our server.
    """
    return {
        "requestId": request_id,
        "oracle": {
            "name": payload.source_name,
            "type": payload.category,
            "verified": True,
        },
        "data": payload.data_value,
        "metadata": {
            "source": payload.source_url,
            "referenceValues": payload.reference_values,
            "timestamp": now_ms if now_ms is not None else int(time.time() * 1000),
            "version": DOCUMENT_VERSION,
        },
        "signature": {
            "algorithm": SIGNATURE_ALGORITHM,
            "server": server,
        },
    }
