# src/oraclelens/formulas/__init__.py

"""
Weighting formulas for OracleLens.
Selects a catalog formula per data category, adjusts its weights to the
evaluation context, or synthesizes a custom formula when nothing fits.
"""

from .adjustments import apply_weight_adjustment, compute_weight_adjustment
from .catalog import FormulaCatalog, FormulaMatch, assess_confidence
from .generator import CustomFormulaGenerator, classify_archetype

__all__ = [
    "FormulaCatalog",
    "FormulaMatch",
    "assess_confidence",
    "apply_weight_adjustment",
    "compute_weight_adjustment",
    "CustomFormulaGenerator",
    "classify_archetype",
]
