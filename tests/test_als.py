"""Tests for the implicit ALS trainer."""

import numpy as np
import pandas as pd
import pytest

from simrec.recommender.als import build_value_matrix, train_implicit_als
from simrec.recommender.exceptions import EmptyDatasetError


def _triples(rows):
    return pd.DataFrame(rows, columns=["user_index", "item_index", "value"])


def _block_triples() -> pd.DataFrame:
    """Users 0-2 like items 0-2, users 3-5 like items 3-5."""
    rows = []
    for users, items in ((range(0, 3), range(0, 3)), (range(3, 6), range(3, 6))):
        for u in users:
            for i in items:
                rows.append((u, i, 1.0))
    return _triples(rows)


def _cosine(a: np.ndarray, b: np.ndarray) -> float:
    return float(a @ b / (np.linalg.norm(a) * np.linalg.norm(b)))


def test_factor_shapes():
    """Factors cover the whole index space, not only observed rows."""
    user_factors, item_factors = train_implicit_als(
        _block_triples(), n_users=8, n_items=7, rank=3, iterations=2, seed=1
    )

    assert user_factors.shape == (8, 3)
    assert item_factors.shape == (7, 3)


def test_unobserved_rows_are_zero():
    """Users and items without observations get zero vectors."""
    user_factors, item_factors = train_implicit_als(
        _block_triples(), n_users=7, n_items=7, rank=3, iterations=3, seed=1
    )

    assert np.allclose(user_factors[6], 0.0)
    assert np.allclose(item_factors[6], 0.0)


def test_same_seed_same_model():
    """Training twice with the same seed gives identical factors."""
    first = train_implicit_als(_block_triples(), 6, 6, rank=3, iterations=4, seed=42)
    second = train_implicit_als(_block_triples(), 6, 6, rank=3, iterations=4, seed=42)

    np.testing.assert_array_equal(first[0], second[0])
    np.testing.assert_array_equal(first[1], second[1])


def test_block_structure_is_recovered():
    """Items liked by the same users end up more similar than other items."""
    _, item_factors = train_implicit_als(
        _block_triples(), 6, 6, rank=4, iterations=15, regularization=0.01, seed=3
    )

    within = _cosine(item_factors[0], item_factors[1])
    across = _cosine(item_factors[0], item_factors[4])

    assert within > 0.9
    assert within > across


def test_negative_only_item_is_pushed_to_zero():
    """An item that only received dislikes has no positive preference to fit."""
    triples = pd.concat([
        _block_triples(),
        _triples([(0, 6, -1.0), (3, 6, -1.0)]),
    ], ignore_index=True)

    _, item_factors = train_implicit_als(triples, 6, 7, rank=3, iterations=5, seed=0)

    assert np.allclose(item_factors[6], 0.0)


def test_empty_triples_raise():
    with pytest.raises(EmptyDatasetError) as exc_info:
        train_implicit_als(_triples([]), 3, 3)

    assert exc_info.value.dataset == "triples"


@pytest.mark.parametrize("kwargs", [
    {"rank": 0},
    {"iterations": 0},
    {"regularization": -0.1},
    {"alpha": 0.0},
])
def test_invalid_hyperparameters(kwargs):
    with pytest.raises(ValueError):
        train_implicit_als(_block_triples(), 6, 6, **kwargs)


def test_value_matrix_keeps_sign():
    """Negative values survive in the sparse matrix."""
    values = build_value_matrix(_triples([(0, 0, -1.0), (1, 1, 2.0)]), 2, 2)

    assert values.shape == (2, 2)
    assert values[0, 0] == -1.0
    assert values[1, 1] == 2.0
