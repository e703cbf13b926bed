# src/oraclelens/credibility/sources.py

from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

# Oracle reputation registry: lowercase oracle name -> reputation (0-1)
# Loaded once at import and never mutated
SOURCE_REPUTATION_REGISTRY: Mapping[str, float] = MappingProxyType(
    {
        "chainlink": 0.95,  # Decentralized node network, longest track record
        "pyth": 0.90,  # First-party publisher data
        "api3": 0.85,  # First-party airnodes
        "band": 0.80,
        "dia": 0.75,
        "weatherapi": 0.80,  # Commercial weather provider
    }
)

DEFAULT_SOURCE_REPUTATION = 0.50

# Reputation at or above this counts as a high-trust oracle
HIGH_TRUST_REPUTATION = 0.90

# Hosts whose verified attestations earn the maximum proof score
TRUSTED_DOMAINS: Tuple[str, ...] = (
    "api.coingecko.com",
    "api.coinmarketcap.com",
    "pro-api.coinmarketcap.com",
    "api.binance.com",
    "api.kraken.com",
)


def is_known_source(source: str) -> bool:
    """Check whether a source appears in the reputation registry (case-insensitive)."""
    return source.strip().lower() in SOURCE_REPUTATION_REGISTRY


def get_source_reputation(
    source: str, default: float = DEFAULT_SOURCE_REPUTATION
) -> float:
    """
    Get the reputation for an oracle source.

    Args:
        source: Oracle name (any case)
        default: Reputation if source not found

    Returns:
        Reputation in [0, 1]
    """
    return SOURCE_REPUTATION_REGISTRY.get(source.strip().lower(), default)


def is_trusted_domain(
    domain: Optional[str], trusted_domains: Iterable[str] = TRUSTED_DOMAINS
) -> bool:
    """
    Check a host against the allow-list.

    Matches the exact host or any subdomain of a listed host.
    """
    if not domain:
        return False
    host = domain.strip().lower().rstrip(".")
    for trusted in trusted_domains:
        trusted = trusted.strip().lower()
        if host == trusted or host.endswith("." + trusted):
            return True
    return False
