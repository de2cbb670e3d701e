"""CLI script for querying similar items.

Useful for testing and evaluation. Loads the latest training run, answers a
query with every algorithm, and prints the fused ranking.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from simrec.recommender.engine import ServingEngine
from simrec.recommender.exceptions import ModelNotFoundError
from simrec.recommender.model import ItemScore, Query

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def get_similar_items(
    query: Query,
    model_dir: str = "models",
    run_id: Optional[str] = None,
) -> Tuple[List[ItemScore], Dict[str, List[ItemScore]]]:
    """Get similar items for a query.

    Args:
        query: Query to answer
        model_dir: Model store root
        run_id: Training run to use (default: latest)

    Returns:
        Tuple of (fused item scores, per-algorithm item scores)
    """
    try:
        engine = ServingEngine.from_model_dir(model_dir, run_id=run_id)
    except ModelNotFoundError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    return engine.predict_with_breakdown(query)


def _split(values: Optional[str]) -> Optional[List[str]]:
    if values is None:
        return None
    return [v.strip() for v in values.split(",") if v.strip()]


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Get items similar to one or more query items",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/predict_cli.py i1
  python scripts/predict_cli.py i1 i7 --num 5
  python scripts/predict_cli.py i1 --categories c1,c2 --black-list i3
  python scripts/predict_cli.py i1 --explain
        """
    )

    parser.add_argument(
        "items",
        nargs="+",
        help="Query item IDs"
    )

    parser.add_argument(
        "--num",
        type=int,
        default=10,
        help="Number of results to return (default: 10)"
    )

    parser.add_argument(
        "--categories",
        type=str,
        default=None,
        help="Comma-separated categories; only items in one of them are returned"
    )

    parser.add_argument(
        "--white-list",
        type=str,
        default=None,
        help="Comma-separated item IDs allowed in the results"
    )

    parser.add_argument(
        "--black-list",
        type=str,
        default=None,
        help="Comma-separated item IDs excluded from the results"
    )

    parser.add_argument(
        "--model-dir",
        type=str,
        default="models",
        help="Model store root (default: models)"
    )

    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Training run to use (default: latest)"
    )

    parser.add_argument(
        "--explain",
        action="store_true",
        help="Show each algorithm's own ranking"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    try:
        query = Query(
            items=tuple(args.items),
            num=args.num,
            categories=_split(args.categories),
            white_list=_split(args.white_list),
            black_list=_split(args.black_list),
        )
    except ValueError as e:
        parser.error(str(e))

    fused, breakdown = get_similar_items(query, model_dir=args.model_dir, run_id=args.run_id)

    print(f"\nItems similar to {', '.join(args.items)}:")
    if not fused:
        print("  (no similar items found)")
    for rank, item_score in enumerate(fused, start=1):
        print(f"  {rank:>3}. {item_score.item:<20} {item_score.score:+.4f}")

    if args.explain:
        print("\nPer-algorithm scores:")
        for name, scores in breakdown.items():
            formatted = ", ".join(f"{s.item}={s.score:.4f}" for s in scores)
            print(f"  {name}: {formatted or '(none)'}")

    print()


if __name__ == "__main__":
    main()
