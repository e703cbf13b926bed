#!/usr/bin/env python3
# scripts/oraclelens_evaluate.py

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from oraclelens.core.config import load_config
from oraclelens.core.pipeline import EvaluationPipeline
from oraclelens.exceptions import RequestValidationError
from oraclelens.formulas.catalog import FormulaCatalog
from oraclelens.normalize.schema import EvaluateRequest
from oraclelens.normalize.transformer import validate_request

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("oraclelens_evaluate")


def load_requests(input_path: Path) -> List[EvaluateRequest]:
    """Load one request object or a list of them; invalid items are skipped."""
    with open(input_path, "r", encoding="utf-8") as f:
        raw: Any = json.load(f)

    items = raw if isinstance(raw, list) else [raw]
    requests = []
    for index, item in enumerate(items):
        try:
            requests.append(validate_request(item))
        except RequestValidationError as e:
            logger.warning(f"Skipping request #{index}: {e}")

    logger.info(f"Loaded {len(requests)} valid requests from {input_path}")
    return requests


def print_formulas(catalog: FormulaCatalog) -> None:
    for profile in catalog.profiles.values():
        w = profile.weights
        print(
            f"{profile.id:<15} {profile.name:<28} "
            f"S={w.source:.2f} T={w.time:.2f} A={w.accuracy:.2f} P={w.proof:.2f} "
            f"min={profile.min_acceptable_score}"
        )


def main():
    parser = argparse.ArgumentParser(
        description="OracleLens Credibility Evaluator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Evaluate a single request
  oraclelens_evaluate.py --input request.json

  # Evaluate a batch and save responses
  oraclelens_evaluate.py --input batch.json --output responses.json

  # Show the formula catalog
  oraclelens_evaluate.py --list-formulas
        """,
    )

    parser.add_argument("--input", help="JSON file with one request or a list of requests")
    parser.add_argument("--output", help="Write JSON responses here (default: stdout)")
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Configuration file path (default: config/config.yaml)",
    )
    parser.add_argument(
        "--list-formulas", action="store_true", help="Print the formula catalog and exit"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Load configuration
    try:
        config = load_config(args.config)
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    if args.list_formulas:
        catalog_path = config.formulas.catalog_path
        catalog = FormulaCatalog.from_yaml(catalog_path) if catalog_path else FormulaCatalog.default()
        print_formulas(catalog)
        return

    if not args.input:
        parser.error("--input is required unless --list-formulas is given")

    input_path = Path(args.input).resolve()
    if not input_path.exists():
        logger.error(f"Input file not found: {input_path}")
        sys.exit(1)

    try:
        requests = load_requests(input_path)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read requests: {e}")
        sys.exit(1)

    if not requests:
        logger.error("No valid requests found in input")
        sys.exit(1)

    with EvaluationPipeline.from_config(config) as pipeline:
        if len(requests) == 1:
            responses = [pipeline.evaluate(requests[0])]
        else:
            responses = pipeline.evaluate_batch(requests)

    payload = [r.to_wire() for r in responses]
    output = json.dumps(payload[0] if len(payload) == 1 else payload, indent=2)

    if args.output:
        output_path = Path(args.output).resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(output + "\n", encoding="utf-8")
        logger.info(f"Responses saved to: {output_path}")
    else:
        print(output)

    if not all(r.success for r in responses):
        sys.exit(2)


if __name__ == "__main__":
    main()
