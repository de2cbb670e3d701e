"""Query endpoints for the SimRec API.

This module provides the similar-items query endpoint and model reloading.
A query is answered by every trained algorithm and the rankings are fused
into one list.
"""

import logging
import os
import threading
from typing import Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from simrec.api.exceptions import InvalidQueryError, ModelUnavailableError
from simrec.recommender.engine import EventStoreLookup, ServingEngine
from simrec.recommender.exceptions import ModelNotFoundError, SimRecError
from simrec.recommender.model import ItemScore, Query
from simrec.recommender.utils import load_events_csv, load_run

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(tags=["queries"])

DEFAULT_MODEL_DIR = "models"
MODEL_DIR_ENV = "SIMREC_MODEL_DIR"
EVENTS_PATH_ENV = "SIMREC_EVENTS_PATH"

# Loaded engines, keyed by model directory
_engine_cache: Dict[str, ServingEngine] = {}
_cache_lock = threading.Lock()


class QueryRequest(BaseModel):
    """Request body for similar-item queries.

    Attributes:
        items: Item ids to find similar items for.
        num: Number of results to return.
        categories: Only return items in one of these categories.
        white_list: Only return these items.
        black_list: Never return these items.
        user: User whose recent items are added to the query items.
        explain: Include each algorithm's own ranking in the response.
    """

    items: List[str] = Field(default_factory=list, description="Query item ids")
    num: int = Field(default=10, ge=1, description="Number of results")
    categories: Optional[List[str]] = Field(default=None, description="Category filter")
    white_list: Optional[List[str]] = Field(default=None, description="Allowed item ids")
    black_list: Optional[List[str]] = Field(default=None, description="Excluded item ids")
    user: Optional[str] = Field(default=None, description="User for recent-item lookup")
    explain: bool = Field(default=False, description="Include per-algorithm scores")

    def to_query(self) -> Query:
        return Query(
            items=tuple(self.items),
            num=self.num,
            categories=self.categories,
            white_list=self.white_list,
            black_list=self.black_list,
            user=self.user,
        )


class ItemScoreResponse(BaseModel):
    item: str
    score: float

    @classmethod
    def from_item_score(cls, item_score: ItemScore) -> "ItemScoreResponse":
        return cls(item=item_score.item, score=item_score.score)


class PredictionResponse(BaseModel):
    """Response model for similar-item queries.

    Attributes:
        item_scores: Fused ranking, best first.
        run_id: Training run that produced the models.
        algorithms: Each algorithm's own ranking, when explain was requested.
    """

    item_scores: List[ItemScoreResponse] = Field(..., description="Fused item scores")
    run_id: Optional[str] = Field(default=None, description="Training run id")
    algorithms: Optional[Dict[str, List[ItemScoreResponse]]] = Field(
        default=None, description="Per-algorithm item scores"
    )


def resolve_model_dir(model_dir: Optional[str] = None) -> str:
    return model_dir or os.getenv(MODEL_DIR_ENV, DEFAULT_MODEL_DIR)


def _build_event_lookup() -> Optional[EventStoreLookup]:
    """Recent-item lookup over the events file named by SIMREC_EVENTS_PATH.

    An unreadable events file disables user-seeded queries instead of
    failing item queries.
    """
    events_path = os.getenv(EVENTS_PATH_ENV)
    if not events_path:
        return None

    try:
        return EventStoreLookup(load_events_csv(events_path))
    except (OSError, ValueError, SimRecError) as e:
        logger.error(
            "Event lookup unavailable, serving without recent items",
            extra={
                "events_path": events_path,
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        return None


def get_engine(model_dir: Optional[str] = None) -> ServingEngine:
    """Get the serving engine for a model directory, loading it if needed.

    Raises:
        ModelUnavailableError: If no trained run exists in the directory.
    """
    model_dir = resolve_model_dir(model_dir)

    engine = _engine_cache.get(model_dir)
    if engine is not None:
        return engine

    with _cache_lock:
        engine = _engine_cache.get(model_dir)
        if engine is None:
            try:
                engine = ServingEngine.from_model_dir(
                    model_dir, event_lookup=_build_event_lookup()
                )
            except ModelNotFoundError as e:
                logger.error(f"Model not found in {model_dir}")
                raise ModelUnavailableError(model_dir, details=e.details) from e
            _engine_cache[model_dir] = engine

    return engine


@router.post("/queries.json", response_model=PredictionResponse)
def query_similar_items(
    request: QueryRequest,
    model_dir: Optional[str] = None,
) -> PredictionResponse:
    """Get items similar to the query items.

    Example:
        POST /queries.json {"items": ["i1", "i3"], "num": 4}
        Returns the top 4 items similar to i1 and i3.
    """
    if not request.items and request.user is None:
        raise InvalidQueryError("A query needs at least one item or a user")

    engine = get_engine(model_dir)

    logger.info(
        "Answering query",
        extra={"num_items": len(request.items), "num": request.num, "user_id": request.user},
    )

    fused, breakdown = engine.predict_with_breakdown(request.to_query())

    algorithms = None
    if request.explain:
        algorithms = {
            name: [ItemScoreResponse.from_item_score(s) for s in scores]
            for name, scores in breakdown.items()
        }

    return PredictionResponse(
        item_scores=[ItemScoreResponse.from_item_score(s) for s in fused],
        run_id=engine.run_id,
        algorithms=algorithms,
    )


@router.post("/reload-model")
def reload_model(model_dir: Optional[str] = None) -> Dict[str, Optional[str]]:
    """Reload the latest training run from disk.

    The running engine's models are swapped wholesale, so requests in flight
    finish on the models they started with.
    """
    model_dir = resolve_model_dir(model_dir)
    logger.info(f"Reloading model from {model_dir}")

    engine = _engine_cache.get(model_dir)
    if engine is None:
        engine = get_engine(model_dir)
    else:
        try:
            run_id, models = load_run(model_dir)
        except ModelNotFoundError as e:
            raise ModelUnavailableError(model_dir, details=e.details) from e
        engine.replace_models(models, run_id=run_id)

    return {"status": "Model reloaded successfully", "run_id": engine.run_id}
