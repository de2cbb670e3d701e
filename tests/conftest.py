"""Shared fixtures for the SimRec test suite.

The sample data has two clear taste clusters: users u1-u3 view and like
items i1-i3 ("books"), users u4-u6 view and like items i4-i6 ("music").
A few dislikes cross the clusters, and some events reference a user and an
item that are missing from the entity store.
"""

import json
from pathlib import Path
from typing import Dict, List, Tuple

import pandas as pd
import pytest

from simrec.recommender.config import AlgorithmParams, load_engine_config
from simrec.recommender.train import train_engine

CLUSTERS: List[Tuple[List[str], List[str], str]] = [
    (["u1", "u2", "u3"], ["i1", "i2", "i3"], "books"),
    (["u4", "u5", "u6"], ["i4", "i5", "i6"], "music"),
]

TEST_PARAMS = AlgorithmParams(rank=4, iterations=10, regularization=0.01, seed=7)


def make_events() -> pd.DataFrame:
    """Events frame with columns event, user, item, timestamp."""
    rows = []
    ts = 1_000
    for users, items, _ in CLUSTERS:
        for user in users:
            for item in items:
                for _ in range(2):
                    rows.append(("view", user, item, ts))
                    ts += 1
                rows.append(("like", user, item, ts))
                ts += 1

    # Cross-cluster dislikes
    rows.append(("dislike", "u1", "i4", ts))
    rows.append(("dislike", "u4", "i1", ts + 1))
    # Changed mind: disliked first, liked later
    rows.append(("dislike", "u2", "i2", 10))
    # Not in the entity store
    rows.append(("like", "ghost", "i1", ts + 2))
    rows.append(("view", "u1", "i99", ts + 3))

    return pd.DataFrame(rows, columns=["event", "user", "item", "timestamp"])


def make_users() -> pd.DataFrame:
    return pd.DataFrame({"user_id": [u for users, _, _ in CLUSTERS for u in users]})


def make_items() -> pd.DataFrame:
    rows = [
        {"item_id": item, "categories": (category,)}
        for _, items, category in CLUSTERS
        for item in items
    ]
    return pd.DataFrame(rows)


@pytest.fixture
def events() -> pd.DataFrame:
    return make_events()


@pytest.fixture
def users() -> pd.DataFrame:
    return make_users()


@pytest.fixture
def items() -> pd.DataFrame:
    return make_items()


def write_data_source(data_dir: Path) -> Path:
    """Write users.csv, items.csv, events.csv and engine.json.

    Returns:
        Path to engine.json.
    """
    data_dir.mkdir(parents=True, exist_ok=True)

    make_users().to_csv(data_dir / "users.csv", index=False)

    items = make_items()
    items["categories"] = items["categories"].map("|".join)
    items.to_csv(data_dir / "items.csv", index=False)

    make_events().rename(columns={
        "user": "entity_id",
        "item": "target_entity_id",
        "timestamp": "event_time",
    }).to_csv(data_dir / "events.csv", index=False)

    params: Dict = TEST_PARAMS.model_dump()
    config = {
        "datasource": {
            "events_path": "events.csv",
            "users_path": "users.csv",
            "items_path": "items.csv",
        },
        "algorithms": [
            {"name": "als_view", "strategy": "frequency", "params": params},
            {"name": "als_like", "strategy": "signed", "params": params},
        ],
        "model_dir": "models",
    }
    config_path = data_dir / "engine.json"
    config_path.write_text(json.dumps(config))

    return config_path


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return write_data_source(tmp_path / "data")


@pytest.fixture(scope="module")
def trained_model_dir(tmp_path_factory) -> Path:
    """Model store holding one published run, trained once per module."""
    config_path = write_data_source(tmp_path_factory.mktemp("data"))
    model_dir = tmp_path_factory.mktemp("models")

    train_engine(load_engine_config(str(config_path)), model_dir=str(model_dir), run_id="run-1")

    return model_dir
