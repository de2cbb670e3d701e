"""Tests for entity-id indexing."""

import pandas as pd
import pytest

from simrec.recommender.index import IndexMap, build_index_maps, map_to_triples
from simrec.recommender.reporting import UNMAPPABLE_IDENTIFIER, LoggingSink


def test_from_ids_is_sorted_and_contiguous():
    """Distinct ids are sorted and mapped onto 0..n-1."""
    index_map = IndexMap.from_ids(["c", "a", "b", "a"])

    assert len(index_map) == 3
    assert index_map.ids == ["a", "b", "c"]
    assert index_map.to_dict() == {"a": 0, "b": 1, "c": 2}


def test_round_trip():
    """id(index(x)) == x for every id, and index(id(i)) == i for every index."""
    index_map = IndexMap.from_ids(["u10", "u2", "u3"])

    for entity_id in index_map:
        assert index_map.id(index_map.index(entity_id)) == entity_id
    for idx in range(len(index_map)):
        assert index_map.index(index_map.id(idx)) == idx


def test_unknown_id_has_no_index():
    """Ids outside the population map to None."""
    index_map = IndexMap.from_ids(["a"])

    assert index_map.index("z") is None
    assert "z" not in index_map
    assert "a" in index_map


def test_id_out_of_range():
    index_map = IndexMap.from_ids(["a", "b"])

    with pytest.raises(IndexError):
        index_map.id(2)
    with pytest.raises(IndexError):
        index_map.id(-1)


def test_rejects_non_contiguous_indices():
    """A mapping with gaps or duplicates is not a bijection onto 0..n-1."""
    with pytest.raises(ValueError, match="contiguous"):
        IndexMap({"a": 0, "b": 2})
    with pytest.raises(ValueError, match="contiguous"):
        IndexMap({"a": 1, "b": 1})


def test_dict_round_trip():
    index_map = IndexMap.from_ids(["x", "y"])

    assert IndexMap.from_dict(index_map.to_dict()) == index_map


def test_from_partitions_order_independent():
    """Partition order does not change the map."""
    partitions = [["c", "a"], ["b", "a"], ["d"]]

    expected = IndexMap.from_ids(["a", "b", "c", "d"])
    assert IndexMap.from_partitions(partitions) == expected
    assert IndexMap.from_partitions(reversed(partitions)) == expected


def test_ids_are_stringified():
    """Numeric ids share a key space with their string form."""
    index_map = IndexMap.from_ids([3, 1, 2])

    assert index_map.index("1") == 0


def test_build_index_maps_are_independent():
    """User and item spaces are indexed separately."""
    user_map, item_map = build_index_maps(["u1", "u2"], ["i1", "i2", "i3"])

    assert len(user_map) == 2
    assert len(item_map) == 3
    assert user_map.index("u1") == 0
    assert item_map.index("i1") == 0


def test_map_to_triples_filters_and_reports_unmapped():
    """Unknown users and items are dropped and reported, never raised."""
    user_map, item_map = build_index_maps(["u1", "u2"], ["i1", "i2"])
    preferences = pd.DataFrame({
        "user": ["u1", "u2", "ghost", "u1"],
        "item": ["i1", "i2", "i1", "i99"],
        "value": [3, 1, 1, 1],
    })
    sink = LoggingSink()

    triples = map_to_triples(preferences, user_map, item_map, sink=sink)

    assert list(triples.columns) == ["user_index", "item_index", "value"]
    assert triples.values.tolist() == [[0, 0, 3.0], [1, 1, 1.0]]
    assert sink.counts == {UNMAPPABLE_IDENTIFIER: 2}


def test_map_to_triples_empty():
    user_map, item_map = build_index_maps(["u1"], ["i1"])

    triples = map_to_triples(
        pd.DataFrame(columns=["user", "item", "value"]), user_map, item_map
    )

    assert triples.empty
    assert list(triples.columns) == ["user_index", "item_index", "value"]
