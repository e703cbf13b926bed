# src/oraclelens/__init__.py

"""
OracleLens Credibility Evaluation Engine
Assigns a 0-100 credibility score to externally reported oracle data.
"""

__version__ = "0.1.0"
__author__ = "OracleLens Development Team"

# No direct exports from root; subpackages are accessed explicitly
# e.g., from oraclelens.core import EvaluationPipeline
