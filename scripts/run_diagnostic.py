"""
Run the diagnostic engine on one or more children.

The input file holds either a single ValidationInput object or a list of them.

Usage:
    python scripts/run_diagnostic.py --data data/children.json      # Evaluate with food classification
    python scripts/run_diagnostic.py --data x.json --no-classifier   # Skip the LLM (no API key needed)
    python scripts/run_diagnostic.py --data x.json --parallel        # Run the four groups on a thread pool
    python scripts/run_diagnostic.py --self-check                    # Run the canned clinical scenarios
"""

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load .env
env_path = project_root / ".env"
if env_path.exists():
    for line in env_path.read_text().strip().split("\n"):
        if "=" in line and not line.startswith("#"):
            key, val = line.split("=", 1)
            os.environ[key.strip()] = val.strip().strip("'\"")

from pydantic import ValidationError

from sleep_diagnostic.food_classifier.classifier import AnthropicFoodClassifier
from sleep_diagnostic.meta_eval.scenarios import run_scenario_suite
from sleep_diagnostic.models import ValidationInput
from sleep_diagnostic.pipeline import evaluate, summarize_batch
from sleep_diagnostic.settings import Settings


def _load_inputs(path: Path) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    return raw if isinstance(raw, list) else [raw]


def _self_check() -> int:
    print("Running scenario self-check...")
    suite = run_scenario_suite()
    for line in suite.details:
        print(line)
    print(f"\n{suite.scenarios_passed}/{suite.scenarios_total} scenarios passed ({suite.pass_rate:.0%})")
    return 0 if suite.scenarios_passed == suite.scenarios_total else 1


def main():
    parser = argparse.ArgumentParser(description="Run the pediatric sleep diagnostic engine")
    parser.add_argument("--data", type=str, help="Path to a ValidationInput JSON (object or list)")
    parser.add_argument("--output", type=str, default="output", help="Output directory")
    parser.add_argument("--no-classifier", action="store_true", help="Do not classify feeding notes")
    parser.add_argument("--parallel", action="store_true", help="Run the group validators concurrently")
    parser.add_argument("--self-check", action="store_true", help="Run the canned clinical scenarios and exit")
    args = parser.parse_args()

    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.self_check:
        sys.exit(_self_check())

    if not args.data:
        parser.error("--data is required unless --self-check is given")

    data_path = Path(args.data)
    if not data_path.is_absolute():
        data_path = project_root / data_path
    raw_inputs = _load_inputs(data_path)
    print(f"Loaded {len(raw_inputs)} input(s) from {data_path}")

    classifier = None if args.no_classifier else AnthropicFoodClassifier(settings=settings)

    output_dir = project_root / args.output
    output_dir.mkdir(parents=True, exist_ok=True)

    results = []
    for i, raw in enumerate(raw_inputs):
        start = time.time()
        label = raw.get("child_id", f"#{i + 1}") if isinstance(raw, dict) else f"#{i + 1}"
        print(f"  [{i + 1}/{len(raw_inputs)}] Evaluating {label}...", end=" ", flush=True)

        try:
            data = ValidationInput.model_validate(raw)
            result = evaluate(data, classifier=classifier, parallel=args.parallel)
        except ValidationError as e:
            print(f"INVALID INPUT: {e.error_count()} error(s)")
            continue
        except Exception as e:
            print(f"ERROR: {e}")
            continue

        results.append(result)
        elapsed = time.time() - start
        print(f"done ({elapsed:.1f}s) - overall={result.overall_status.value}, alerts={len(result.alerts)}")

    results_path = output_dir / "results.json"
    with open(results_path, "w", encoding="utf-8") as f:
        json.dump([r.model_dump(mode="json") for r in results], f, indent=2, ensure_ascii=False)
    print(f"\nResults saved to {results_path}")

    summary = summarize_batch(results)
    summary_path = output_dir / "summary.json"
    with open(summary_path, "w", encoding="utf-8") as f:
        f.write(summary.model_dump_json(indent=2))
    print(f"Summary saved to {summary_path}")

    print("\n" + "=" * 60)
    print("DIAGNOSTIC COMPLETE")
    print("=" * 60)
    print(f"Children evaluated:  {summary.total_children}")
    print(f"Status distribution: {summary.status_distribution}")
    print(f"Alerts:              {summary.total_alerts}")
    print(f"Warnings:            {summary.total_warnings}")
    print(f"Alerts by group:     {summary.alerts_by_group}")


if __name__ == "__main__":
    main()
