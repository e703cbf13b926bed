# src/oraclelens/core/__init__.py

"""
Core orchestration for OracleLens.
Manages configuration and end-to-end evaluation.
"""

from .config import OracleLensConfig, load_config
from .pipeline import EvaluationPipeline, generate_request_id

__all__ = [
    "OracleLensConfig",
    "load_config",
    "EvaluationPipeline",
    "generate_request_id",
]
