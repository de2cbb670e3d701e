"""Serving engine.

Runs the shared similarity predictor once per trained algorithm and fuses
the results. The engine does not know which algorithms exist: it receives
the trained models as a mapping and treats them uniformly.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import replace
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar

import pandas as pd

from simrec.recommender.config import DEFAULT_LOOKUP_TIMEOUT_MS, DEFAULT_RECENT_EVENTS
from simrec.recommender.fusion import fuse_predictions
from simrec.recommender.model import ItemScore, LatentModel, Query
from simrec.recommender.reporting import LOOKUP_TIMEOUT, ReportingSink, default_sink
from simrec.recommender.similarity import predict_similar
from simrec.recommender.utils import load_run

# Configure module logger
logger = logging.getLogger(__name__)

T = TypeVar("T")

RecentItemsLookup = Callable[[str, int], List[str]]


def fetch_with_timeout(
    fn: Callable[[], T],
    timeout_ms: int,
    default: Callable[[], T],
    sink: Optional[ReportingSink] = None,
    **details,
) -> T:
    """Run a lookup with a bounded wait.

    On timeout the default is returned and a lookup_timeout report is
    written; nothing is raised to the caller. The lookup thread is left to
    finish on its own.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout_ms / 1000.0)
    except FuturesTimeoutError:
        (sink or default_sink).report(LOOKUP_TIMEOUT, timeout_ms=timeout_ms, **details)
        return default()
    except Exception as e:
        logger.error(
            "Lookup failed, using default",
            extra={"error": str(e), "error_type": type(e).__name__, **details},
        )
        return default()
    finally:
        executor.shutdown(wait=False)


class EventStoreLookup:
    """Recent items a user interacted with, read from an events frame.

    Only positive interactions count; disliked items are never used to
    seed a similar-items query.
    """

    def __init__(
        self,
        events: pd.DataFrame,
        event_names: Iterable[str] = ("view", "like"),
    ):
        selected = events[events["event"].isin(set(event_names))]
        self._events = selected.sort_values("timestamp", ascending=False, kind="mergesort")

    def __call__(self, user_id: str, limit: int) -> List[str]:
        user_events = self._events[self._events["user"] == user_id]
        return user_events["item"].drop_duplicates().head(limit).tolist()


class ServingEngine:
    """Answers similar-item queries from a set of trained models.

    Models are never mutated. replace_models swaps the whole mapping at
    once, so a concurrent request sees either the old or the new set.
    """

    def __init__(
        self,
        models: Mapping[str, LatentModel],
        run_id: Optional[str] = None,
        event_lookup: Optional[RecentItemsLookup] = None,
        lookup_timeout_ms: int = DEFAULT_LOOKUP_TIMEOUT_MS,
        recent_events: int = DEFAULT_RECENT_EVENTS,
        sink: Optional[ReportingSink] = None,
    ):
        self._lock = threading.Lock()
        self._state: Tuple[Optional[str], Mapping[str, LatentModel]] = (
            run_id,
            MappingProxyType(dict(models)),
        )
        self.event_lookup = event_lookup
        self.lookup_timeout_ms = lookup_timeout_ms
        self.recent_events = recent_events
        self.sink = sink or default_sink

        logger.info(
            f"Initialized ServingEngine: run={run_id}, algorithms={sorted(models)}"
        )

    @classmethod
    def from_model_dir(
        cls,
        model_dir: str,
        run_id: Optional[str] = None,
        **kwargs,
    ) -> "ServingEngine":
        """Create an engine from a published training run.

        Raises:
            ModelNotFoundError: If no such run exists.
        """
        run_id, models = load_run(model_dir, run_id)
        return cls(models, run_id=run_id, **kwargs)

    @property
    def run_id(self) -> Optional[str]:
        return self._state[0]

    @property
    def models(self) -> Mapping[str, LatentModel]:
        return self._state[1]

    def replace_models(
        self,
        models: Mapping[str, LatentModel],
        run_id: Optional[str] = None,
    ) -> None:
        """Swap in a new set of models."""
        new_state = (run_id, MappingProxyType(dict(models)))
        with self._lock:
            self._state = new_state

        logger.info(f"Replaced models: run={run_id}, algorithms={sorted(models)}")

    def _query_items(self, query: Query) -> Tuple[str, ...]:
        if query.user is None or self.event_lookup is None or self.recent_events == 0:
            return query.items

        lookup = self.event_lookup
        recent = fetch_with_timeout(
            lambda: lookup(query.user, self.recent_events),
            timeout_ms=self.lookup_timeout_ms,
            default=list,
            sink=self.sink,
            user_id=query.user,
        )

        items = list(query.items)
        items.extend(item_id for item_id in recent if item_id not in query.items)
        return tuple(items)

    def predict_with_breakdown(
        self,
        query: Query,
    ) -> Tuple[List[ItemScore], Dict[str, List[ItemScore]]]:
        """Get fused recommendations plus each algorithm's own list.

        An algorithm that fails is logged and contributes an empty list
        rather than failing the request.
        """
        start_time = time.time()
        models = self.models

        resolved_query = replace(query, items=self._query_items(query))

        breakdown: Dict[str, List[ItemScore]] = {}
        for name, model in models.items():
            try:
                breakdown[name] = predict_similar(model, resolved_query)
            except Exception as e:
                logger.error(
                    "Algorithm prediction failed, continuing without it",
                    extra={
                        "algorithm": name,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
                breakdown[name] = []

        fused = fuse_predictions(query.num, list(breakdown.values()), sink=self.sink)

        logger.info(
            "Prediction generated",
            extra={
                "num_query_items": len(resolved_query.items),
                "num_results": len(fused),
                "total_time_ms": round((time.time() - start_time) * 1000, 2),
            },
        )

        return fused, breakdown

    def predict(self, query: Query) -> List[ItemScore]:
        """Get fused recommendations for a query."""
        fused, _ = self.predict_with_breakdown(query)
        return fused
