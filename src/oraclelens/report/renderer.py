# src/oraclelens/report/renderer.py

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

EXPLANATION_TEMPLATE = "explanation.txt.j2"
FORMULA_REPORT_TEMPLATE = "formula_report.txt.j2"


class TextRenderer:
    """
    Renders the plain-text explanation and formula reports.

    Output is a pure function of the template context: no clocks, no randomness.
    """

    def __init__(self, template_dir: Optional[Union[str, Path]] = None):
        """
        Initialize renderer.

        Args:
            template_dir: Directory containing Jinja2 templates (default: built-in)
        """
        if template_dir:
            template_path = Path(template_dir).resolve()
            if not template_path.exists():
                raise ValueError(f"Template directory not found: {template_path}")
        else:
            template_path = Path(__file__).parent / "templates"

        self.env = Environment(
            loader=FileSystemLoader(str(template_path)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )

    def render_explanation(
        self,
        final_score: int,
        trust_level: str,
        formula_name: str,
        factors: List[Dict[str, Any]],
        recommendation: str,
    ) -> str:
        template = self.env.get_template(EXPLANATION_TEMPLATE)
        return template.render(
            final_score=final_score,
            trust_level=trust_level,
            formula_name=formula_name,
            factors=factors,
            recommendation=recommendation,
        )

    def render_formula_report(
        self,
        rationale: str,
        archetype: str,
        traits: List[str],
        notes: List[str],
        percents: Dict[str, int],
        dominant: str,
        emphasis: List[str],
        min_acceptable_score: int,
    ) -> str:
        template = self.env.get_template(FORMULA_REPORT_TEMPLATE)
        return template.render(
            rationale=rationale,
            archetype=archetype,
            traits=traits,
            notes=notes,
            percents=percents,
            dominant=dominant,
            emphasis=emphasis,
            min_acceptable_score=min_acceptable_score,
        )
