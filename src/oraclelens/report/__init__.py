# src/oraclelens/report/__init__.py

"""
Reporting module for OracleLens.
Renders explanations, keeps the evaluation ledger and publishes results on-chain.
"""

from .ledger import EvaluationLedger, LedgerEntry
from .onchain import (
    NullRegistrySubmitter,
    RegistrySubmitter,
    RelayRegistrySubmitter,
    build_registry_submitter,
)
from .renderer import TextRenderer

__all__ = [
    "EvaluationLedger",
    "LedgerEntry",
    "NullRegistrySubmitter",
    "RegistrySubmitter",
    "RelayRegistrySubmitter",
    "build_registry_submitter",
    "TextRenderer",
]
