"""Utility functions for the recommendation engine.

This module provides helper functions for loading events and entity
populations from CSV files and for saving and loading trained models.

Model store layout:

    <model_dir>/
        LATEST                  id of the last published run
        <run_id>/
            <algorithm>/
                item_factors.joblib
                item_index.joblib
                items.joblib
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import joblib
import numpy as np
import pandas as pd

from simrec.recommender.exceptions import MalformedEventError, ModelNotFoundError
from simrec.recommender.index import IndexMap
from simrec.recommender.model import Item, LatentModel

# Configure module logger
logger = logging.getLogger(__name__)

KNOWN_EVENT_NAMES = frozenset({"view", "like", "dislike"})

# Raw CSV column -> internal column
EVENT_COLUMNS = {
    "event": "event",
    "entity_id": "user",
    "target_entity_id": "item",
    "event_time": "timestamp",
}
CATEGORY_SEPARATOR = "|"

# Model artifact filenames
FACTORS_FILENAME = "item_factors.joblib"
ITEM_INDEX_FILENAME = "item_index.joblib"
ITEMS_FILENAME = "items.joblib"
LATEST_FILENAME = "LATEST"


def _read_csv(csv_path: str, required_columns: set, **kwargs) -> pd.DataFrame:
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info(f"Loading CSV from {csv_path}")
    df = pd.read_csv(csv_path, **kwargs)

    if not required_columns.issubset(df.columns):
        missing = required_columns - set(df.columns)
        raise ValueError(f"CSV missing required columns: {missing}")

    return df


def normalize_events(events: pd.DataFrame) -> pd.DataFrame:
    """Normalize event names and id types.

    Event names are stripped and lower-cased and must belong to
    KNOWN_EVENT_NAMES.

    Raises:
        MalformedEventError: On the first event with an unrecognized type.
    """
    names = events["event"].astype(str).str.strip().str.lower()
    unknown = ~names.isin(KNOWN_EVENT_NAMES)

    if unknown.any():
        position = int(np.flatnonzero(unknown.to_numpy())[0])
        row = events.iloc[position]
        raise MalformedEventError(
            row["event"],
            KNOWN_EVENT_NAMES,
            details={
                "event": str(row["event"]),
                "row": position,
                "user": str(row["user"]),
                "item": str(row["item"]),
            },
        )

    return pd.DataFrame({
        "event": names.to_numpy(),
        "user": events["user"].astype(str).to_numpy(),
        "item": events["item"].astype(str).to_numpy(),
        "timestamp": events["timestamp"].astype("int64").to_numpy(),
    })


def load_events_csv(csv_path: str) -> pd.DataFrame:
    """Load raw events from a CSV file.

    Args:
        csv_path: Path to CSV with columns: event, entity_id,
            target_entity_id, event_time (epoch milliseconds).

    Returns:
        DataFrame with columns event, user, item, timestamp.

    Raises:
        FileNotFoundError: If CSV file does not exist.
        ValueError: If CSV is missing required columns.
        MalformedEventError: If an event has an unrecognized type.
    """
    df = _read_csv(
        csv_path,
        set(EVENT_COLUMNS),
        dtype={"event": str, "entity_id": str, "target_entity_id": str},
        keep_default_na=False,
    )
    events = normalize_events(df.rename(columns=EVENT_COLUMNS))

    logger.info(f"Loaded {len(events)} events")
    logger.info(f"Event counts: {events['event'].value_counts().to_dict()}")

    return events


def load_users_csv(csv_path: str) -> pd.DataFrame:
    """Load the user population (column user_id)."""
    df = _read_csv(csv_path, {"user_id"}, dtype={"user_id": str}, keep_default_na=False)
    users = df[["user_id"]].drop_duplicates().reset_index(drop=True)

    logger.info(f"Loaded {len(users)} users")

    return users


def _parse_categories(value: str) -> Optional[Tuple[str, ...]]:
    categories = tuple(c.strip() for c in value.split(CATEGORY_SEPARATOR) if c.strip())
    return categories or None


def load_items_csv(csv_path: str) -> pd.DataFrame:
    """Load the item population.

    Args:
        csv_path: Path to CSV with column item_id and an optional
            categories column holding "|"-separated category names.

    Returns:
        DataFrame with columns item_id and categories (tuple or None).
    """
    df = _read_csv(csv_path, {"item_id"}, dtype=str, keep_default_na=False)

    if "categories" in df.columns:
        categories = df["categories"].map(_parse_categories)
    else:
        categories = pd.Series([None] * len(df), index=df.index, dtype=object)

    items = pd.DataFrame({
        "item_id": df["item_id"].to_numpy(),
        "categories": categories.to_numpy(),
    }).drop_duplicates(subset=["item_id"], keep="last").reset_index(drop=True)

    logger.info(f"Loaded {len(items)} items")

    return items


def save_model_artifacts(model: LatentModel, output_dir: str) -> None:
    """Save one trained model to a directory.

    Raises:
        OSError: If unable to create the directory or write the files.
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    joblib.dump(np.asarray(model.item_factors), output_path / FACTORS_FILENAME)
    joblib.dump(model.item_index.to_dict(), output_path / ITEM_INDEX_FILENAME)
    joblib.dump(
        {
            idx: {"item_id": item.item_id, "categories": item.categories}
            for idx, item in model.items.items()
        },
        output_path / ITEMS_FILENAME,
    )

    logger.info(f"Saved model ({model.n_items} items, rank {model.rank}) to {output_path}")


def load_model_artifacts(model_dir: str) -> LatentModel:
    """Load one trained model from a directory.

    Raises:
        FileNotFoundError: If any required artifact file is missing.
    """
    model_path = Path(model_dir)

    for filename in (FACTORS_FILENAME, ITEM_INDEX_FILENAME, ITEMS_FILENAME):
        if not (model_path / filename).exists():
            raise FileNotFoundError(f"Model file not found: {model_path / filename}")

    item_factors = joblib.load(model_path / FACTORS_FILENAME)
    item_index = IndexMap.from_dict(joblib.load(model_path / ITEM_INDEX_FILENAME))
    items = {
        int(idx): Item(item_id=meta["item_id"], categories=meta["categories"])
        for idx, meta in joblib.load(model_path / ITEMS_FILENAME).items()
    }

    logger.info(f"Loaded model from {model_path}: {len(item_index)} items")

    return LatentModel(item_factors=item_factors, item_index=item_index, items=items)


def new_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


def publish_run(
    models: Mapping[str, LatentModel],
    model_dir: str,
    run_id: Optional[str] = None,
) -> str:
    """Save the models of one training run and mark it as latest.

    The run is written to a staging directory and renamed into place, and
    the LATEST pointer is replaced last, so readers never see a partial run.

    Returns:
        The run id.

    Raises:
        FileExistsError: If a run with this id already exists.
    """
    run_id = run_id or new_run_id()
    root = Path(model_dir)
    root.mkdir(parents=True, exist_ok=True)

    final_path = root / run_id
    if final_path.exists():
        raise FileExistsError(f"Training run already exists: {final_path}")

    staging = Path(tempfile.mkdtemp(prefix=f".{run_id}-", dir=root))
    try:
        for name, model in models.items():
            save_model_artifacts(model, str(staging / name))
        staging.rename(final_path)
    except Exception:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    fd, tmp_pointer = tempfile.mkstemp(prefix=".latest-", dir=root)
    with os.fdopen(fd, "w") as f:
        f.write(run_id)
    os.replace(tmp_pointer, root / LATEST_FILENAME)

    logger.info(f"Published training run {run_id} to {final_path}")

    return run_id


def latest_run_id(model_dir: str) -> Optional[str]:
    pointer = Path(model_dir) / LATEST_FILENAME
    if not pointer.exists():
        return None
    return pointer.read_text().strip() or None


def load_run(
    model_dir: str,
    run_id: Optional[str] = None,
) -> Tuple[str, Dict[str, LatentModel]]:
    """Load every model of a training run.

    Args:
        model_dir: Model store root.
        run_id: Run to load; the latest published run if None.

    Returns:
        A tuple of (run_id, mapping from algorithm name to LatentModel).

    Raises:
        ModelNotFoundError: If no such run exists.
    """
    run_id = run_id or latest_run_id(model_dir)
    if run_id is None:
        raise ModelNotFoundError(model_dir)

    run_path = Path(model_dir) / run_id
    if not run_path.is_dir():
        raise ModelNotFoundError(model_dir, run_id)

    models = {
        algo_dir.name: load_model_artifacts(str(algo_dir))
        for algo_dir in sorted(run_path.iterdir())
        if algo_dir.is_dir()
    }
    if not models:
        raise ModelNotFoundError(model_dir, run_id)

    logger.info(f"Loaded training run {run_id} with algorithms: {sorted(models)}")

    return run_id, models


def check_model_exists(model_dir: str) -> bool:
    """Check if a published training run exists.

    Args:
        model_dir: Model store root.

    Returns:
        True if the latest run pointer refers to an existing run.
    """
    run_id = latest_run_id(model_dir)
    return run_id is not None and (Path(model_dir) / run_id).is_dir()
