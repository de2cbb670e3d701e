"""Tests for preference resolution and the triple strategies."""

import itertools

import pandas as pd
import pytest

from simrec.recommender.index import build_index_maps
from simrec.recommender.preferences import (
    FrequencyWeightedStrategy,
    SignedBooleanStrategy,
    get_strategy,
    latest_event,
    resolve_partitions,
    resolve_preferences,
    to_signed_events,
)
from simrec.recommender.reporting import UNMAPPABLE_IDENTIFIER, LoggingSink


def _signed(rows):
    return pd.DataFrame(rows, columns=["user", "item", "timestamp", "signal"])


def _signal_of(resolved: pd.DataFrame, user: str, item: str) -> int:
    match = resolved[(resolved["user"] == user) & (resolved["item"] == item)]
    assert len(match) == 1
    return int(match["signal"].iloc[0])


# ===== latest_event =====


def test_latest_event_keeps_larger_timestamp():
    """The later event wins whatever its signal."""
    assert latest_event((5, -1), (3, 1)) == (5, -1)
    assert latest_event((3, 1), (5, -1)) == (5, -1)


def test_latest_event_tie_goes_to_like():
    """On equal timestamps the like wins."""
    assert latest_event((5, -1), (5, 1)) == (5, 1)
    assert latest_event((5, 1), (5, -1)) == (5, 1)


def test_latest_event_is_commutative_and_associative():
    """The reduction can be used as a fold in any order."""
    events = [(1, 1), (1, -1), (2, -1), (3, 1), (3, -1)]
    for a, b, c in itertools.product(events, repeat=3):
        assert latest_event(a, b) == latest_event(b, a)
        assert latest_event(latest_event(a, b), c) == latest_event(a, latest_event(b, c))


# ===== resolve_preferences =====


def test_resolve_keeps_latest_signal_regardless_of_order():
    """The max-timestamp event decides the signal for every input order."""
    rows = [
        ("u1", "i1", 100, 1),
        ("u1", "i1", 300, -1),
        ("u1", "i1", 200, 1),
    ]
    for permutation in itertools.permutations(rows):
        resolved = resolve_preferences(_signed(list(permutation)))
        assert len(resolved) == 1
        assert _signal_of(resolved, "u1", "i1") == -1


def test_resolve_one_row_per_pair():
    """Each (user, item) pair is resolved on its own."""
    resolved = resolve_preferences(_signed([
        ("u1", "i1", 1, 1),
        ("u1", "i2", 1, -1),
        ("u2", "i1", 5, -1),
        ("u2", "i1", 9, 1),
    ]))

    assert list(resolved.columns) == ["user", "item", "signal"]
    assert len(resolved) == 3
    assert _signal_of(resolved, "u1", "i1") == 1
    assert _signal_of(resolved, "u1", "i2") == -1
    assert _signal_of(resolved, "u2", "i1") == 1


def test_resolve_single_event_passes_through():
    """A pair with one event keeps that event's signal."""
    resolved = resolve_preferences(_signed([("u1", "i1", 42, -1)]))

    assert resolved.to_dict("records") == [{"user": "u1", "item": "i1", "signal": -1}]


def test_resolve_tie_matches_latest_event_rule():
    """Equal timestamps resolve to the like, in either order."""
    for rows in ([("u1", "i1", 7, -1), ("u1", "i1", 7, 1)],
                 [("u1", "i1", 7, 1), ("u1", "i1", 7, -1)]):
        assert _signal_of(resolve_preferences(_signed(rows)), "u1", "i1") == 1


def test_resolve_empty_input_gives_empty_output():
    """No events means no preferences."""
    resolved = resolve_preferences(_signed([]))

    assert resolved.empty
    assert list(resolved.columns) == ["user", "item", "signal"]


def test_resolve_partitions_matches_single_pass():
    """Partitioned resolution equals resolving everything at once."""
    rows = [
        ("u1", "i1", 100, 1),
        ("u1", "i1", 300, -1),
        ("u2", "i1", 50, -1),
        ("u1", "i1", 200, 1),
        ("u2", "i1", 60, 1),
        ("u2", "i2", 10, -1),
    ]
    expected = resolve_preferences(_signed(rows)).reset_index(drop=True)

    partitions = [_signed(rows[:2]), _signed(rows[2:4]), _signed(rows[4:])]
    for ordering in itertools.permutations(partitions):
        resolved = resolve_partitions(ordering)
        pd.testing.assert_frame_equal(resolved, expected, check_dtype=False)


def test_resolve_partitions_empty():
    """No partitions resolve to an empty frame."""
    assert resolve_partitions([]).empty


def test_to_signed_events_maps_like_and_dislike(events):
    """Likes become +1, dislikes -1 and views are dropped."""
    signed = to_signed_events(events)

    assert set(signed["signal"]) == {1, -1}
    assert len(signed) == (events["event"] != "view").sum()


# ===== Strategies =====


def test_frequency_strategy_counts_views(events, users, items):
    """Repeated views add up to the triple value."""
    user_map, item_map = build_index_maps(users["user_id"], items["item_id"])
    sink = LoggingSink()

    triples = FrequencyWeightedStrategy().prepare(events, user_map, item_map, sink=sink)

    assert list(triples.columns) == ["user_index", "item_index", "value"]
    assert set(triples["value"]) == {2.0}
    # 18 in-cluster pairs; the view of i99 is unmapped
    assert len(triples) == 18
    assert sink.counts == {UNMAPPABLE_IDENTIFIER: 1}


def test_signed_strategy_resolves_latest_signal(events, users, items):
    """Likes and dislikes collapse to one signed triple per pair."""
    user_map, item_map = build_index_maps(users["user_id"], items["item_id"])
    sink = LoggingSink()

    triples = SignedBooleanStrategy().prepare(events, user_map, item_map, sink=sink)

    assert set(triples["value"]) == {1.0, -1.0}
    # 18 likes + 2 cross dislikes; the ghost user's like is unmapped
    assert len(triples) == 20
    assert sink.counts == {UNMAPPABLE_IDENTIFIER: 1}

    # u2 disliked i2 early and liked it later
    u2, i2 = user_map.index("u2"), item_map.index("i2")
    value = triples[(triples["user_index"] == u2) & (triples["item_index"] == i2)]["value"]
    assert value.tolist() == [1.0]


def test_signed_strategy_repeats_do_not_accumulate(users, items):
    """Liking the same item three times is still a single +1."""
    user_map, item_map = build_index_maps(users["user_id"], items["item_id"])
    events = pd.DataFrame(
        [("like", "u1", "i1", t) for t in (1, 2, 3)],
        columns=["event", "user", "item", "timestamp"],
    )

    triples = SignedBooleanStrategy().prepare(events, user_map, item_map)

    assert triples["value"].tolist() == [1.0]


def test_get_strategy():
    """Strategies are looked up by name."""
    assert isinstance(get_strategy("frequency"), FrequencyWeightedStrategy)
    assert isinstance(get_strategy("signed"), SignedBooleanStrategy)

    with pytest.raises(ValueError, match="Unknown strategy"):
        get_strategy("rating")
