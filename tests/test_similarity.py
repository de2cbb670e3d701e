"""Tests for item-to-item similarity prediction."""

import numpy as np
import pytest

from simrec.recommender.index import IndexMap
from simrec.recommender.model import Item, LatentModel, Query
from simrec.recommender.similarity import predict_similar

# Hand-picked 2-D vectors, so cosines are easy to check:
# a and b point the same way as q, c is at cos 0.6 from q,
# d is opposite, e is the zero vector, f is orthogonal.
VECTORS = {
    "a": [1.0, 0.0],
    "b": [2.0, 0.0],
    "c": [0.6, 0.8],
    "d": [-1.0, 0.0],
    "e": [0.0, 0.0],
    "f": [0.0, 1.0],
    "q": [1.0, 0.0],
}
CATEGORIES = {"a": ("x",), "b": ("y",), "c": ("x", "y")}


@pytest.fixture
def model() -> LatentModel:
    item_index = IndexMap.from_ids(VECTORS)
    factors = np.array([VECTORS[item_id] for item_id in item_index])
    items = {
        item_index.index(item_id): Item(item_id=item_id, categories=CATEGORIES.get(item_id))
        for item_id in item_index
    }
    return LatentModel(item_factors=factors, item_index=item_index, items=items)


def _ranking(scores):
    return [(s.item, pytest.approx(s.score)) for s in scores]


def test_ranks_by_cosine(model):
    """Non-positive scores are dropped; equal scores are ordered by id."""
    result = predict_similar(model, Query(items=("q",)))

    assert _ranking(result) == [("a", 1.0), ("b", 1.0), ("c", 0.6)]


def test_scores_sum_over_query_items(model):
    """Each candidate's score is its summed similarity to all query items."""
    result = predict_similar(model, Query(items=("q", "f")))

    assert _ranking(result) == [("c", 1.4), ("a", 1.0), ("b", 1.0)]


def test_query_items_are_never_returned(model):
    result = predict_similar(model, Query(items=("q", "a")))

    assert [s.item for s in result] == ["b", "c"]
    assert result[0].score == pytest.approx(2.0)


def test_repeated_query_item_counts_once(model):
    assert predict_similar(model, Query(items=("q", "q"))) == predict_similar(
        model, Query(items=("q",))
    )


def test_num_truncates(model):
    result = predict_similar(model, Query(items=("q",), num=1))

    assert [s.item for s in result] == ["a"]


def test_unknown_query_items_are_skipped(model):
    """Unknown items are ignored; with no known item the result is empty."""
    assert predict_similar(model, Query(items=("zzz",))) == []
    assert predict_similar(model, Query(items=("zzz", "q"))) == predict_similar(
        model, Query(items=("q",))
    )


def test_empty_query(model):
    assert predict_similar(model, Query()) == []


def test_category_filter(model):
    """Only items sharing at least one category pass; uncategorized items never do."""
    result = predict_similar(model, Query(items=("q",), categories={"y"}))

    assert [s.item for s in result] == ["b", "c"]


def test_white_list(model):
    result = predict_similar(model, Query(items=("q",), white_list={"c", "d", "unknown"}))

    assert [s.item for s in result] == ["c"]


def test_black_list(model):
    result = predict_similar(model, Query(items=("q",), black_list={"a"}))

    assert [s.item for s in result] == ["b", "c"]


def test_filters_combine(model):
    result = predict_similar(
        model,
        Query(items=("q",), categories={"x"}, white_list={"a", "b", "c"}, black_list={"c"}),
    )

    assert [s.item for s in result] == ["a"]


def test_query_rejects_non_positive_num():
    with pytest.raises(ValueError):
        Query(items=("q",), num=0)


def test_model_is_read_only(model):
    """Factors cannot be modified in place after construction."""
    with pytest.raises(ValueError):
        model.item_factors[0, 0] = 5.0
    with pytest.raises(TypeError):
        model.items[0] = Item(item_id="zz")


def test_model_rejects_mismatched_index():
    with pytest.raises(ValueError, match="rows"):
        LatentModel(item_factors=np.zeros((3, 2)), item_index=IndexMap.from_ids(["a", "b"]))
