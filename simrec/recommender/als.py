"""Implicit-feedback matrix factorization via Alternating Least Squares.

Follows "Collaborative Filtering for Implicit Feedback Datasets" (Hu, Koren
and Volinsky, 2008). Each observed triple with value r contributes

    confidence  c = 1 + alpha * |r|
    preference  p = 1 if r > 0 else 0

so a positive value pulls the pair toward affinity and a negative value
pushes it toward zero with the same confidence. Unobserved cells have
c = 1 and p = 0. For view counts |r| grows with repetition; for signed
like/dislike triples |r| is always 1.
"""

import logging
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix

from simrec.recommender.exceptions import EmptyDatasetError

# Configure module logger
logger = logging.getLogger(__name__)

# Model configuration constants
DEFAULT_RANK = 10
DEFAULT_ITERATIONS = 10
DEFAULT_REGULARIZATION = 0.01
DEFAULT_ALPHA = 1.0
INIT_SCALE = 0.1


def build_value_matrix(
    triples: pd.DataFrame,
    n_users: int,
    n_items: int,
) -> csr_matrix:
    """Build the sparse user-item matrix of raw triple values.

    Confidence and preference are derived from these values inside each
    solve, so the sign of a value is never lost to zero elimination.
    """
    return csr_matrix(
        (
            triples["value"].to_numpy(dtype=np.float64),
            (
                triples["user_index"].to_numpy(dtype=np.int64),
                triples["item_index"].to_numpy(dtype=np.int64),
            ),
        ),
        shape=(n_users, n_items),
        dtype=np.float64,
    )


def _als_step(
    values: csr_matrix,
    fixed_factors: np.ndarray,
    regularization: float,
    alpha: float,
) -> np.ndarray:
    """Solve every row of one side with the other side held fixed.

    Closed-form solution per row u:
        x_u = (Y^T Y + Y^T (C^u - I) Y + lambda I)^-1  Y^T C^u p(u)

    Rows are independent of each other. A row with no observations solves
    to the zero vector.
    """
    n_rows = values.shape[0]
    rank = fixed_factors.shape[1]
    solved = np.zeros((n_rows, rank), dtype=np.float64)

    # Precompute Y^T Y (same for all rows)
    YtY = fixed_factors.T @ fixed_factors
    reg_matrix = regularization * np.eye(rank)

    for u in range(n_rows):
        start, end = values.indptr[u], values.indptr[u + 1]
        if start == end:
            continue

        indices = values.indices[start:end]
        r = values.data[start:end]
        confidence = 1.0 + alpha * np.abs(r)
        preference = (r > 0).astype(np.float64)

        Y_u = fixed_factors[indices]
        A = YtY + Y_u.T @ ((confidence - 1.0)[:, None] * Y_u) + reg_matrix
        b = Y_u.T @ (confidence * preference)

        try:
            solved[u] = np.linalg.solve(A, b)
        except np.linalg.LinAlgError:
            # Singular system (only possible with zero regularization)
            solved[u] = np.linalg.lstsq(A, b, rcond=None)[0]

    return solved


def observed_loss(
    values: csr_matrix,
    user_factors: np.ndarray,
    item_factors: np.ndarray,
    alpha: float,
) -> float:
    """Mean confidence-weighted squared error over observed cells."""
    coo = values.tocoo()
    if coo.nnz == 0:
        return 0.0

    predicted = np.einsum("ij,ij->i", user_factors[coo.row], item_factors[coo.col])
    confidence = 1.0 + alpha * np.abs(coo.data)
    preference = (coo.data > 0).astype(np.float64)

    return float(np.mean(confidence * (preference - predicted) ** 2))


def train_implicit_als(
    triples: pd.DataFrame,
    n_users: int,
    n_items: int,
    rank: int = DEFAULT_RANK,
    iterations: int = DEFAULT_ITERATIONS,
    regularization: float = DEFAULT_REGULARIZATION,
    alpha: float = DEFAULT_ALPHA,
    seed: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Fit user and item latent factors from preference triples.

    Args:
        triples: DataFrame with columns user_index, item_index, value.
        n_users: Size of the user index space.
        n_items: Size of the item index space.
        rank: Number of latent features.
        iterations: Number of alternating sweeps.
        regularization: L2 penalty (lambda).
        alpha: Confidence weight applied to |value|.
        seed: Seed for the factor initialisation. Equal seeds give equal
            models.

    Returns:
        A tuple of (user_factors, item_factors) with shapes
        (n_users, rank) and (n_items, rank).

    Raises:
        EmptyDatasetError: If there are no triples.
        ValueError: If a hyperparameter is out of range.
    """
    if triples.empty:
        raise EmptyDatasetError("triples")
    if rank <= 0:
        raise ValueError(f"rank must be positive, got {rank}")
    if iterations <= 0:
        raise ValueError(f"iterations must be positive, got {iterations}")
    if regularization < 0:
        raise ValueError(f"regularization must be non-negative, got {regularization}")
    if alpha <= 0:
        raise ValueError(f"alpha must be positive, got {alpha}")

    values = build_value_matrix(triples, n_users, n_items)
    values_t = values.T.tocsr()

    logger.info(
        f"Training implicit ALS: rank={rank}, iterations={iterations}, "
        f"regularization={regularization}, alpha={alpha}, seed={seed}"
    )
    logger.info(
        f"Matrix shape: {values.shape}, observations: {values.nnz}, "
        f"density: {values.nnz / (n_users * n_items):.4%}"
    )

    rng = np.random.default_rng(seed)
    user_factors = rng.normal(0.0, INIT_SCALE, size=(n_users, rank))
    item_factors = rng.normal(0.0, INIT_SCALE, size=(n_items, rank))

    for iteration in range(iterations):
        # Fix item factors, solve for user factors
        user_factors = _als_step(values, item_factors, regularization, alpha)
        # Fix user factors, solve for item factors
        item_factors = _als_step(values_t, user_factors, regularization, alpha)

        logger.debug(
            f"Iteration {iteration + 1}/{iterations}, "
            f"loss: {observed_loss(values, user_factors, item_factors, alpha):.4f}"
        )

    logger.info("ALS training completed")

    return user_factors, item_factors
