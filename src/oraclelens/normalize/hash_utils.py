# src/oraclelens/normalize/hash_utils.py

import hashlib
import json
from typing import Any, Mapping, Union


def compute_sha256(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 hash of input data.

    Args:
        data: Bytes or string to hash. Strings are encoded as UTF-8.

    Returns:
        Hexadecimal SHA-256 hash string (64 lowercase chars).

    Examples:
        >>> compute_sha256(b"hello")
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'

        >>> compute_sha256("hello")
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    elif not isinstance(data, bytes):
        raise TypeError("Input must be bytes or str")

    return hashlib.sha256(data).hexdigest()


def canonical_json(value: Any) -> str:
    """Serialize to JSON with sorted keys and no whitespace, so equal values hash equally."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def derive_proof_id(attestation: Mapping[str, Any]) -> str:
    """
    Derive a deterministic proof identifier from an attestation.

    Covers recipient, payload, timestamp and signatures only; request
    metadata such as headers does not change the identifier.
    """
    bound = {
        "recipient": attestation.get("recipient"),
        "data": attestation.get("data"),
        "timestamp": attestation.get("timestamp"),
        "signatures": attestation.get("signatures"),
    }
    return "0x" + compute_sha256(canonical_json(bound))


def placeholder_address(seed: str) -> str:
    """20-byte hex address derived from a seed, used as attestation recipient."""
    return "0x" + compute_sha256(seed)[:40]


def registry_key(value: str) -> str:
    """
    Map an identifier to a 32-byte hex key for the on-chain registry.

    Values that already are 0x-prefixed 32-byte hex strings pass through.
    """
    if value.startswith("0x") and len(value) == 66:
        try:
            int(value[2:], 16)
            return value.lower()
        except ValueError:
            pass
    return "0x" + compute_sha256(value)
