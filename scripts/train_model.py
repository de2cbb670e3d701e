"""Command-line interface for training the SimRec engine.

This script trains every algorithm named in an engine config and publishes
the resulting models as one training run.

Example:
    Train with the settings in engine.json:
        $ python scripts/train_model.py data/engine.json

    Train into a different model store with a fixed run id:
        $ python scripts/train_model.py data/engine.json \\
            --model-dir models/production \\
            --run-id 2024-06-01
"""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from simrec.recommender.config import load_engine_config
from simrec.recommender.exceptions import SimRecError
from simrec.recommender.train import train_engine


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the script.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise, use INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_arguments() -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Namespace object containing parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Train the SimRec similar-item models from an engine config.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Train with the model directory from the config
  python scripts/train_model.py data/engine.json

  # Train into another model store
  python scripts/train_model.py data/engine.json --model-dir models/prod

  # Train with verbose logging (per-iteration loss)
  python scripts/train_model.py data/engine.json --verbose
        """,
    )

    parser.add_argument(
        "config_path",
        type=str,
        help="Path to the engine config JSON file",
    )

    parser.add_argument(
        "--model-dir",
        type=str,
        default=None,
        help="Model store root (default: model_dir from the config)",
    )

    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Id of the training run (default: UTC timestamp)",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point for the training script.

    Returns:
        Exit code: 0 on success, 1 on error.
    """
    try:
        args = parse_arguments()

        setup_logging(verbose=args.verbose)
        logger = logging.getLogger(__name__)

        config = load_engine_config(args.config_path)

        logger.info("=" * 70)
        logger.info("Training Configuration")
        logger.info("=" * 70)
        logger.info(f"Events:      {config.datasource.events_path}")
        logger.info(f"Users:       {config.datasource.users_path}")
        logger.info(f"Items:       {config.datasource.items_path}")
        for algo in config.algorithms:
            logger.info(f"Algorithm:   {algo.name} ({algo.strategy}) {algo.params.model_dump()}")
        logger.info("=" * 70)

        model_dir = args.model_dir or config.model_dir
        run_id, models = train_engine(config, model_dir=model_dir, run_id=args.run_id)

        logger.info("=" * 70)
        logger.info("Training Summary")
        logger.info("=" * 70)
        logger.info(f"Run id:      {run_id}")
        for name, model in models.items():
            logger.info(f"{name}: {model.n_items} items, rank {model.rank}")
        logger.info(f"Models saved to: {(Path(model_dir) / run_id).absolute()}")
        logger.info("=" * 70)

        return 0

    except FileNotFoundError as e:
        logging.error(f"File error: {e}")
        return 1
    except (SimRecError, ValidationError, ValueError) as e:
        logging.error(f"Validation error: {e}")
        return 1
    except KeyboardInterrupt:
        logging.warning("Training interrupted by user")
        return 130
    except Exception as e:
        logging.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
