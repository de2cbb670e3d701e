"""Model training module.

Trains one item latent-factor model per configured algorithm. Every
algorithm runs the same steps: select its events, index the user and item
populations, turn events into preference triples with its strategy, and fit
implicit ALS. The models of a run are published together or not at all.
"""

import logging
import time
from typing import Dict, Optional, Tuple

import pandas as pd

from simrec.recommender.als import train_implicit_als
from simrec.recommender.config import (
    AlgorithmParams,
    AlgorithmSpec,
    EngineConfig,
    build_registry,
)
from simrec.recommender.exceptions import EmptyDatasetError
from simrec.recommender.index import build_index_maps
from simrec.recommender.model import Item, LatentModel
from simrec.recommender.preferences import TripleStrategy
from simrec.recommender.reporting import LoggingSink, ReportingSink, default_sink
from simrec.recommender.utils import (
    load_events_csv,
    load_items_csv,
    load_users_csv,
    publish_run,
)

# Configure module logger
logger = logging.getLogger(__name__)


def resolve_seed(seed: Optional[int]) -> int:
    """Return the seed, or a time-derived one if unset."""
    if seed is not None:
        return seed

    derived = int(time.time() * 1000) % (2 ** 32)
    logger.info(f"No seed configured, using time-derived seed {derived}")
    return derived


def train_algorithm(
    events: pd.DataFrame,
    users: pd.DataFrame,
    items: pd.DataFrame,
    strategy: TripleStrategy,
    params: AlgorithmParams,
    sink: Optional[ReportingSink] = None,
) -> LatentModel:
    """Train one item latent-factor model.

    Args:
        events: DataFrame with columns event, user, item, timestamp.
        users: User population with column user_id.
        items: Item population with columns item_id and categories.
        strategy: How this algorithm turns events into triples.
        params: ALS hyperparameters.
        sink: Reporting sink for unmapped identifiers.

    Returns:
        Trained LatentModel holding item-side factors.

    Raises:
        EmptyDatasetError: If the algorithm's preference events, the user
            population, the item population or the mapped triples are
            empty. All of these are checked before any ALS iteration.
    """
    selected = events[events["event"].isin(strategy.event_names)]
    if selected.empty:
        raise EmptyDatasetError(
            "preferences", details={"dataset": "preferences", "events": sorted(strategy.event_names)}
        )
    if users.empty:
        raise EmptyDatasetError("users")
    if items.empty:
        raise EmptyDatasetError("items")

    user_map, item_map = build_index_maps(users["user_id"], items["item_id"])

    triples = strategy.prepare(selected, user_map, item_map, sink=sink or default_sink)
    if triples.empty:
        raise EmptyDatasetError("triples")

    _, item_factors = train_implicit_als(
        triples,
        n_users=len(user_map),
        n_items=len(item_map),
        rank=params.rank,
        iterations=params.iterations,
        regularization=params.regularization,
        alpha=params.alpha,
        seed=resolve_seed(params.seed),
    )

    item_metadata = {
        item_map.index(str(row.item_id)): Item(
            item_id=str(row.item_id),
            categories=getattr(row, "categories", None),
        )
        for row in items.itertuples(index=False)
    }

    return LatentModel(item_factors=item_factors, item_index=item_map, items=item_metadata)


def train_models(
    events: pd.DataFrame,
    users: pd.DataFrame,
    items: pd.DataFrame,
    registry: Dict[str, AlgorithmSpec],
    sink: Optional[ReportingSink] = None,
) -> Dict[str, LatentModel]:
    """Train every registered algorithm on the same data.

    Any failure aborts the whole run; no partial set of models is returned.
    """
    models = {}
    for name, algorithm in registry.items():
        logger.info(f"Training algorithm '{name}' with strategy '{algorithm.strategy.name}'")
        models[name] = train_algorithm(
            events, users, items, algorithm.strategy, algorithm.params, sink=sink
        )
    return models


def train_engine(
    config: EngineConfig,
    model_dir: Optional[str] = None,
    run_id: Optional[str] = None,
) -> Tuple[str, Dict[str, LatentModel]]:
    """Train all configured algorithms and publish them as one run.

    This is the main entry point for training: load the data source,
    train each algorithm, then save the run.

    Args:
        config: Engine configuration.
        model_dir: Model store root; defaults to config.model_dir.
        run_id: Id for the run; a UTC timestamp if None.

    Returns:
        A tuple of (run_id, mapping from algorithm name to LatentModel).

    Raises:
        FileNotFoundError: If a data source file does not exist.
        MalformedEventError: If an event has an unrecognized type.
        EmptyDatasetError: If a dataset required for training is empty.
        OSError: If unable to save model artifacts.

    Example:
        >>> config = load_engine_config("engine.json")
        >>> run_id, models = train_engine(config)
        >>> print(f"Published run {run_id}: {sorted(models)}")
    """
    model_dir = model_dir or config.model_dir
    sink = LoggingSink(logging.getLogger(__name__))

    logger.info("=" * 60)
    logger.info("Starting engine training")
    logger.info("=" * 60)

    try:
        events = load_events_csv(config.datasource.events_path)
        users = load_users_csv(config.datasource.users_path)
        items = load_items_csv(config.datasource.items_path)

        models = train_models(events, users, items, build_registry(config), sink=sink)

        run_id = publish_run(models, model_dir, run_id)

        logger.info("=" * 60)
        logger.info(f"Training completed successfully! Run: {run_id}")
        logger.info(f"Reports: {sink.counts}")
        logger.info("=" * 60)

        return run_id, models

    except Exception as e:
        logger.error(f"Training failed: {e}", exc_info=True)
        raise
