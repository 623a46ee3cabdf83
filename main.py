#!/usr/bin/env python3
"""
Plan Budget Agent - CLI Entry Point

A LangGraph-based AI agent that turns residential construction plans into
a Quebec 2025 cost budget.

Usage:
    # Analyze plan pages (URLs, images or PDFs)
    python main.py --images plan-1.png plan-2.png --output ./output

    # Merge page/batch results analyzed elsewhere
    python main.py --mode merge --batches ./batches.json --output ./output

    # Estimate without plans from the client context
    python main.py --mode manual --context ./client.json

    # Show workflow visualization
    python main.py --show-graph
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from version import __version__, APP_NAME
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def _load_json(path: str, what: str):
    json_path = Path(path)
    if not json_path.exists():
        raise FileNotFoundError(f"{what} file does not exist: {json_path}")
    with open(json_path, encoding='utf-8') as f:
        return json.load(f)


def _load_batches(path: str):
    """Batches file: a list of results, or {"batchResults": [...], "totalImages": N}."""
    data = _load_json(path, "Batches")
    if isinstance(data, list):
        return data, None
    if isinstance(data, dict):
        return data.get("batchResults") or [], data.get("totalImages")
    raise ValueError(f"Batches file must hold a list or an object, got {type(data).__name__}")


def _parse_policies(values):
    policies = {}
    for value in values or []:
        name, sep, policy = value.rpartition("=")
        if not sep or not name or policy.lower() not in ("max", "sum"):
            raise ValueError(f"Invalid --policy '{value}' (expected CATEGORY=max or CATEGORY=sum)")
        policies[name] = policy.lower()
    return policies


def main():
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Plan Budget Agent - Quebec construction budgets from plans",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --images https://example.com/plan-1.png ./plans/plan-2.pdf --output ./output
  %(prog)s --mode merge --batches ./batches.json --quality haut-de-gamme
  %(prog)s --mode manual --context ./client.json --provider openai
  %(prog)s --show-graph
        """
    )

    parser.add_argument(
        "--mode", "-m",
        choices=["plan", "merge", "manual"],
        default="plan",
        help="plan (default, analyze plan pages), merge (combine batch results), manual (no plans)"
    )

    parser.add_argument(
        "--images", "-i",
        nargs="+",
        default=[],
        help="Plan references for plan mode: image URLs, image files or PDFs"
    )

    parser.add_argument(
        "--batches", "-b",
        default=None,
        help="JSON file with batch results for merge mode"
    )

    parser.add_argument(
        "--context", "-c",
        default=None,
        help="JSON file with the client context (project type, area, material choices...)"
    )

    parser.add_argument(
        "--quality", "-q",
        default="standard",
        help="Finish quality: economique, standard or haut-de-gamme (default: standard)"
    )

    parser.add_argument(
        "--policy",
        action="append",
        default=[],
        metavar="CATEGORY=max|sum",
        help="Override the merge policy for a category (repeatable)"
    )

    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Directory for JSON/CSV reports (default: print summary only)"
    )

    parser.add_argument(
        "--provider",
        choices=["anthropic", "openai"],
        default=None,
        help="Vision provider (default: from config, else anthropic)"
    )

    parser.add_argument(
        "--model",
        default=None,
        help="Vision model override"
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config (default: ./plan_budget.yaml or ~/.plan-budget/config.yaml)"
    )

    parser.add_argument(
        "--price-book",
        default=None,
        help="Path to a price book YAML (default: bundled Quebec 2025 book)"
    )

    parser.add_argument(
        "--no-checkpoints",
        action="store_true",
        help="Disable state checkpointing"
    )

    parser.add_argument(
        "--show-graph",
        action="store_true",
        help="Show workflow graph visualization and exit"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args()

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Show graph visualization
    if args.show_graph:
        from agent import get_workflow_visualization
        print(get_workflow_visualization())
        return 0

    # Validate mode arguments
    if args.mode == "plan" and not args.images:
        parser.error("--images is required in plan mode")
    if args.mode == "merge" and not args.batches:
        parser.error("--batches is required in merge mode")

    try:
        from estimator.config import load_config
        from estimator.pricing import load_price_book

        config = load_config(args.config)
        if args.provider:
            config = dataclasses.replace(config, provider=args.provider)
        if args.model:
            config = dataclasses.replace(config, model=args.model)

        price_book_path = args.price_book or config.price_book_path
        if price_book_path:
            load_price_book(price_book_path)

        policies = _parse_policies(args.policy)
        client_context = _load_json(args.context, "Context") if args.context else {}
        batch_results, total_images = _load_batches(args.batches) if args.batches else ([], None)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1

    output_path = str(Path(args.output).resolve()) if args.output else None

    # Print banner
    print("\n" + "=" * 60)
    print(f"  {APP_NAME} {__version__}")
    print("  LangGraph Workflow for Quebec Construction Budgets")
    print("=" * 60)
    print(f"  Mode:     {args.mode}")
    if args.mode == "plan":
        print(f"  Plans:    {len(args.images)} reference(s)")
    if args.mode == "merge":
        print(f"  Batches:  {len(batch_results)}")
    if args.mode != "merge":
        print(f"  Provider: {config.provider} ({config.model or 'default model'})")
    print(f"  Quality:  {args.quality}")
    if price_book_path:
        print(f"  Prices:   {price_book_path}")
    if output_path:
        print(f"  Output:   {output_path}")
    print("=" * 60 + "\n")

    # Run the workflow
    try:
        from agent import run_analysis_workflow
        from estimator.plan_analyzer import PlanAnalyzer
        from estimator.vision_providers import get_provider

        analyzer = None
        if args.mode != "merge":
            provider = get_provider(
                config.provider,
                config.resolve_api_key(),
                model=config.model,
                max_tokens=config.max_tokens
            )
            analyzer = PlanAnalyzer(provider, config)

        start_time = datetime.now()

        result = run_analysis_workflow(
            mode=args.mode,
            image_references=args.images,
            batch_results=batch_results,
            total_images=total_images,
            quality=args.quality,
            client_context=client_context,
            policy_overrides=policies,
            price_book_path=price_book_path,
            output_path=output_path,
            analyzer=analyzer,
            enable_checkpoints=not args.no_checkpoints
        )

        duration = (datetime.now() - start_time).total_seconds()

        if not result.get("success"):
            print("\n" + "=" * 60)
            print("  ANALYSIS FAILED")
            print("=" * 60)
            print(f"  {result.get('error')}")
            print("=" * 60 + "\n")
            return 1

        budget = result.get("budget") or {}

        # Print summary
        print("\n" + "=" * 60)
        print("  BUDGET COMPLETE")
        print("=" * 60)
        print(f"  {budget.get('projectSummary', '')}")
        print()
        for category in budget.get("categories", []):
            print(f"  {category['name']:<35} ${category['budget']:>14,.2f}")
        print("-" * 60)
        print(f"  {'Total estimé (TTC)':<35} ${budget.get('estimatedTotal', 0):>14,.2f}")
        synthesized = result.get("synthesized_categories") or []
        if synthesized:
            print(f"\n  Estimated from benchmarks: {', '.join(synthesized)}")
        if args.mode == "plan":
            print(
                f"  Pages: {result.get('pages_total', 0)} total, "
                f"{result.get('pages_skipped', 0)} skipped, {result.get('pages_failed', 0)} failed"
            )
        print(f"  Duration: {duration:.1f} seconds")
        print("=" * 60)

        report_paths = result.get("report_paths")
        if report_paths:
            print(f"\n  Reports saved to: {report_paths['json']}")
            print(f"                    {report_paths['csv']}")

        print()
        return 0

    except ValueError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Workflow failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
