"""Engine configuration.

An engine config names the data source, the algorithms to train (each a
triple strategy plus hyperparameters) and the serving settings. It is read
from a JSON file, for example:

    {
        "datasource": {
            "events_path": "data/events.csv",
            "users_path": "data/users.csv",
            "items_path": "data/items.csv"
        },
        "algorithms": [
            {"name": "als_view", "strategy": "frequency",
             "params": {"rank": 10, "iterations": 20, "regularization": 0.01, "seed": 3}},
            {"name": "als_like", "strategy": "signed",
             "params": {"rank": 10, "iterations": 20, "regularization": 0.01, "seed": 3}}
        ]
    }
"""

import logging
from pathlib import Path
from typing import Dict, List, Literal, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from simrec.recommender.als import (
    DEFAULT_ALPHA,
    DEFAULT_ITERATIONS,
    DEFAULT_RANK,
    DEFAULT_REGULARIZATION,
)
from simrec.recommender.preferences import TripleStrategy, get_strategy

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_MODEL_DIR = "models"
DEFAULT_LOOKUP_TIMEOUT_MS = 200
DEFAULT_RECENT_EVENTS = 10


class AlgorithmParams(BaseModel):
    """Hyperparameters passed to the ALS trainer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    rank: int = Field(default=DEFAULT_RANK, gt=0, description="Number of latent features")
    iterations: int = Field(default=DEFAULT_ITERATIONS, gt=0, description="ALS sweeps")
    regularization: float = Field(default=DEFAULT_REGULARIZATION, ge=0, description="L2 penalty")
    alpha: float = Field(default=DEFAULT_ALPHA, gt=0, description="Confidence weight")
    seed: Optional[int] = Field(default=None, description="Random seed, time-based if unset")


class AlgorithmConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    strategy: Literal["frequency", "signed"]
    params: AlgorithmParams = Field(default_factory=AlgorithmParams)


class DataSourceConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    events_path: str = Field(..., description="CSV with event, entity_id, target_entity_id, event_time")
    users_path: str = Field(..., description="CSV with user_id")
    items_path: str = Field(..., description="CSV with item_id and optional categories")


class ServingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    lookup_timeout_ms: int = Field(default=DEFAULT_LOOKUP_TIMEOUT_MS, gt=0)
    recent_events: int = Field(default=DEFAULT_RECENT_EVENTS, ge=0)


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    datasource: DataSourceConfig
    algorithms: List[AlgorithmConfig] = Field(..., min_length=1)
    serving: ServingConfig = Field(default_factory=ServingConfig)
    model_dir: str = DEFAULT_MODEL_DIR

    @field_validator("algorithms")
    @classmethod
    def _unique_names(cls, algorithms: List[AlgorithmConfig]) -> List[AlgorithmConfig]:
        names = [algo.name for algo in algorithms]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate algorithm names: {duplicates}")
        return algorithms


class AlgorithmSpec(NamedTuple):
    """A registered algorithm: how to build triples and how to train."""

    strategy: TripleStrategy
    params: AlgorithmParams


def load_engine_config(config_path: str) -> EngineConfig:
    """Load and validate an engine config JSON file.

    Relative data source and model paths are resolved against the directory
    holding the config file.

    Raises:
        FileNotFoundError: If the config file does not exist.
        pydantic.ValidationError: If the config is invalid.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    config = EngineConfig.model_validate_json(path.read_text())
    base = path.parent

    def _resolve(value: str) -> str:
        candidate = Path(value)
        return str(candidate if candidate.is_absolute() else base / candidate)

    datasource = config.datasource.model_copy(update={
        "events_path": _resolve(config.datasource.events_path),
        "users_path": _resolve(config.datasource.users_path),
        "items_path": _resolve(config.datasource.items_path),
    })
    config = config.model_copy(update={
        "datasource": datasource,
        "model_dir": _resolve(config.model_dir),
    })

    logger.info(
        f"Loaded engine config from {config_path} "
        f"with algorithms: {[a.name for a in config.algorithms]}"
    )

    return config


def build_registry(config: EngineConfig) -> Dict[str, AlgorithmSpec]:
    """Map each configured algorithm name to its strategy and params."""
    return {
        algo.name: AlgorithmSpec(strategy=get_strategy(algo.strategy), params=algo.params)
        for algo in config.algorithms
    }
