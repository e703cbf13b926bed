#!/usr/bin/env python3
# scripts/oraclelens_history.py

import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from oraclelens.core.config import load_config
from oraclelens.normalize.schema import TrustLevel
from oraclelens.report.ledger import EvaluationLedger

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("oraclelens_history")


def main():
    parser = argparse.ArgumentParser(description="OracleLens Evaluation History")

    parser.add_argument("--request-id", help="Show a single evaluation")
    parser.add_argument("--source", help="Filter by oracle name")
    parser.add_argument(
        "--trust-level",
        choices=[level.value for level in TrustLevel],
        help="Filter by trust level",
    )
    parser.add_argument("--limit", type=int, default=20, help="Maximum records (default: 20)")
    parser.add_argument("--ledger", help="Ledger file (overrides config)")
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Configuration file path (default: config/config.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    ledger = EvaluationLedger(args.ledger or config.ledger.path)
    if not ledger.path.exists():
        logger.error(f"Ledger not found: {ledger.path}")
        sys.exit(1)

    if args.request_id:
        entry = ledger.get(args.request_id)
        if entry is None:
            logger.error(f"No evaluation found for {args.request_id}")
            sys.exit(1)
        print(entry.model_dump_json(indent=2, exclude_none=True))
        return

    entries = ledger.query(
        source_name=args.source, trust_level=args.trust_level, limit=args.limit
    )
    print(json.dumps([e.model_dump(mode="json", exclude_none=True) for e in entries], indent=2))
    logger.info(f"{len(entries)} evaluations listed")


if __name__ == "__main__":
    main()
