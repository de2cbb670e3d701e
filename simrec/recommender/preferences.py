"""Preference resolution and triple-production strategies.

Every algorithm shares the trainer, predictor and indexer. What differs is
how raw events become preference triples:

- FrequencyWeightedStrategy counts "view" events per (user, item) pair, so
  repeated views raise the confidence of the observation.
- SignedBooleanStrategy keeps only the latest "like"/"dislike" per pair and
  turns it into +1 or -1. Like/dislike is a boolean that can change over
  time, not a count, so repeats never accumulate.
"""

import logging
from functools import reduce
from typing import Dict, FrozenSet, Iterable, Optional, Protocol, Tuple

import pandas as pd

from simrec.recommender.index import IndexMap, map_to_triples
from simrec.recommender.reporting import ReportingSink

# Configure module logger
logger = logging.getLogger(__name__)

VIEW_EVENT = "view"
EVENT_SIGNALS = {"like": 1, "dislike": -1}

SIGNED_COLUMNS = ["user", "item", "timestamp", "signal"]
CANONICAL_COLUMNS = ["user", "item", "signal"]

PairKey = Tuple[str, str]
LatestEvent = Tuple[int, int]  # (timestamp, signal)


def latest_event(a: LatestEvent, b: LatestEvent) -> LatestEvent:
    """Keep the later of two (timestamp, signal) events.

    On equal timestamps the larger signal wins, so a like beats a dislike.
    The rule is commutative and associative, which makes it safe as a fold
    over partitions merged in any order.
    """
    return max(a, b)


def to_signed_events(events: pd.DataFrame) -> pd.DataFrame:
    """Select like/dislike events and map them to signed signals."""
    signed = events[events["event"].isin(EVENT_SIGNALS)]
    return pd.DataFrame({
        "user": signed["user"].to_numpy(),
        "item": signed["item"].to_numpy(),
        "timestamp": signed["timestamp"].astype("int64").to_numpy(),
        "signal": signed["event"].map(EVENT_SIGNALS).astype("int64").to_numpy(),
    }, columns=SIGNED_COLUMNS)


def resolve_preferences(signed_events: pd.DataFrame) -> pd.DataFrame:
    """Reduce signed events to one canonical signal per (user, item) pair.

    Within each pair the event with the largest timestamp wins; ties go to
    the larger signal, the same rule as latest_event. An empty input gives an
    empty output; the trainer reports that as an empty dataset.

    Args:
        signed_events: DataFrame with columns user, item, timestamp, signal.

    Returns:
        DataFrame with columns user, item, signal, sorted by user and item.
    """
    if signed_events.empty:
        return pd.DataFrame(columns=CANONICAL_COLUMNS)

    latest = (
        signed_events
        .sort_values(["timestamp", "signal"], kind="mergesort")
        .drop_duplicates(subset=["user", "item"], keep="last")
        .sort_values(["user", "item"])
        .reset_index(drop=True)
    )

    logger.debug(
        f"Resolved {len(signed_events)} signed events "
        f"into {len(latest)} canonical preferences"
    )

    return latest[CANONICAL_COLUMNS]


def _latest_by_pair(signed_events: pd.DataFrame) -> Dict[PairKey, LatestEvent]:
    latest: Dict[PairKey, LatestEvent] = {}
    for row in signed_events.itertuples(index=False):
        key = (row.user, row.item)
        event = (int(row.timestamp), int(row.signal))
        latest[key] = latest_event(latest[key], event) if key in latest else event
    return latest


def _merge_latest(
    left: Dict[PairKey, LatestEvent],
    right: Dict[PairKey, LatestEvent],
) -> Dict[PairKey, LatestEvent]:
    merged = dict(left)
    for key, event in right.items():
        merged[key] = latest_event(merged[key], event) if key in merged else event
    return merged


def resolve_partitions(partitions: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """Resolve signed events spread over independent partitions.

    Each partition is reduced on its own and the partial results are merged
    pairwise with latest_event. Partition order does not matter.
    """
    merged = reduce(_merge_latest, (_latest_by_pair(p) for p in partitions), {})

    if not merged:
        return pd.DataFrame(columns=CANONICAL_COLUMNS)

    rows = [
        (user, item, signal)
        for (user, item), (_, signal) in sorted(merged.items())
    ]
    return pd.DataFrame(rows, columns=CANONICAL_COLUMNS)


class TripleStrategy(Protocol):
    """Turns raw events into preference triples for the trainer."""

    name: str
    event_names: FrozenSet[str]

    def prepare(
        self,
        events: pd.DataFrame,
        user_map: IndexMap,
        item_map: IndexMap,
        sink: Optional[ReportingSink] = None,
    ) -> pd.DataFrame:
        ...


class FrequencyWeightedStrategy:
    """View events, weighted by how often each pair was observed."""

    name = "frequency"
    event_names: FrozenSet[str] = frozenset({VIEW_EVENT})

    def prepare(
        self,
        events: pd.DataFrame,
        user_map: IndexMap,
        item_map: IndexMap,
        sink: Optional[ReportingSink] = None,
    ) -> pd.DataFrame:
        views = events[events["event"].isin(self.event_names)]
        counts = views.groupby(["user", "item"]).size().reset_index(name="value")

        logger.info(f"Counted {len(views)} view events over {len(counts)} pairs")

        return map_to_triples(counts, user_map, item_map, value_col="value", sink=sink)


class SignedBooleanStrategy:
    """Like/dislike events, collapsed to the latest signal per pair."""

    name = "signed"
    event_names: FrozenSet[str] = frozenset(EVENT_SIGNALS)

    def prepare(
        self,
        events: pd.DataFrame,
        user_map: IndexMap,
        item_map: IndexMap,
        sink: Optional[ReportingSink] = None,
    ) -> pd.DataFrame:
        canonical = resolve_preferences(to_signed_events(events))

        logger.info(f"Resolved {len(canonical)} like/dislike preferences")

        return map_to_triples(
            canonical, user_map, item_map, value_col="signal", sink=sink
        )


STRATEGIES = {
    FrequencyWeightedStrategy.name: FrequencyWeightedStrategy,
    SignedBooleanStrategy.name: SignedBooleanStrategy,
}


def get_strategy(name: str) -> TripleStrategy:
    """Instantiate a triple strategy by name.

    Raises:
        ValueError: If the name is not a known strategy.
    """
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown strategy '{name}'. Expected one of: {sorted(STRATEGIES)}"
        ) from None
