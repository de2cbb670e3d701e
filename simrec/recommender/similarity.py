"""Item-to-item similarity prediction.

Uses the trained item factors to find items similar to the query items.
The same predictor serves every algorithm; algorithms only differ in which
events fed the trainer.
"""

import logging
from typing import List

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from simrec.recommender.model import ItemScore, LatentModel, Query

# Configure module logger
logger = logging.getLogger(__name__)


def _candidate_mask(model: LatentModel, query: Query, query_indices: List[int]) -> np.ndarray:
    """Boolean mask of items allowed by the query filters."""
    mask = np.ones(model.n_items, dtype=bool)
    mask[query_indices] = False

    if query.white_list is not None:
        allowed = np.zeros(model.n_items, dtype=bool)
        for item_id in query.white_list:
            idx = model.item_index.index(item_id)
            if idx is not None:
                allowed[idx] = True
        mask &= allowed

    if query.black_list:
        for item_id in query.black_list:
            idx = model.item_index.index(item_id)
            if idx is not None:
                mask[idx] = False

    if query.categories is not None:
        for idx in np.flatnonzero(mask):
            item = model.items.get(int(idx))
            categories = item.categories if item is not None else None
            if not categories or query.categories.isdisjoint(categories):
                mask[idx] = False

    return mask


def predict_similar(model: LatentModel, query: Query) -> List[ItemScore]:
    """Get the items most similar to the query items.

    The score of a candidate is the sum of its cosine similarity to each
    query item known to the model; a repeated query item counts once.
    Query items missing from the model are skipped; if none is known the
    result is empty. Only candidates with a positive score are returned.

    Args:
        model: Trained latent model.
        query: Query with items, num and optional filters.

    Returns:
        Up to query.num ItemScores, sorted by score descending and then by
        item id ascending.
    """
    query_indices = []
    for item_id in query.items:
        idx = model.item_index.index(item_id)
        if idx is None:
            logger.info(
                "Query item not in model, skipping",
                extra={"item_id": item_id},
            )
            continue
        if idx not in query_indices:
            query_indices.append(idx)

    if not query_indices:
        logger.debug("No known query items, returning empty prediction")
        return []

    # Zero-norm vectors have cosine 0 with everything
    scores = cosine_similarity(
        model.item_factors, model.item_factors[query_indices]
    ).sum(axis=1)

    mask = _candidate_mask(model, query, query_indices) & (scores > 0)
    candidates = np.flatnonzero(mask)

    ranked = sorted(
        ((model.item_index.id(int(idx)), float(scores[idx])) for idx in candidates),
        key=lambda pair: (-pair[1], pair[0]),
    )

    return [ItemScore(item=item_id, score=score) for item_id, score in ranked[:query.num]]
