"""Score fusion across algorithms.

Raw scores from different algorithms live on different scales, so each
algorithm's list is z-score standardized before the lists are summed. No
single algorithm then dominates purely because of its scale.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

import numpy as np

from simrec.recommender.model import ItemScore
from simrec.recommender.reporting import (
    DEGENERATE_SCORE_DISTRIBUTION,
    ReportingSink,
    default_sink,
)

# Configure module logger
logger = logging.getLogger(__name__)


def standardize(
    scores: Sequence[ItemScore],
    sink: Optional[ReportingSink] = None,
) -> List[ItemScore]:
    """Replace each score by its z-score within the list.

    Uses the population mean and population standard deviation. A list with
    zero standard deviation carries no ranking signal; every score becomes
    0.0 and the condition is reported.
    """
    if not scores:
        return []

    values = np.array([s.score for s in scores], dtype=np.float64)
    mean = values.mean()
    std = values.std()

    # Equal floats can still give a tiny non-zero std from rounding in the mean
    if np.all(values == values[0]):
        (sink or default_sink).report(
            DEGENERATE_SCORE_DISTRIBUTION, num_scores=len(scores)
        )
        return [ItemScore(item=s.item, score=0.0) for s in scores]

    return [
        ItemScore(item=s.item, score=float((s.score - mean) / std))
        for s in scores
    ]


def fuse_predictions(
    num: int,
    predictions: Sequence[Sequence[ItemScore]],
    sink: Optional[ReportingSink] = None,
) -> List[ItemScore]:
    """Combine one ranked list per algorithm into a single ranked list.

    Args:
        num: Requested number of results (at least 1). With num == 1 the raw
            scores are summed without standardization.
        predictions: One ItemScore list per algorithm, in any order.
        sink: Reporting sink for zero-variance lists.

    Returns:
        Up to num ItemScores with summed scores, sorted by score descending
        and then by item id ascending.

    Example:
        >>> a = [ItemScore("i1", 4.0), ItemScore("i2", 2.0)]
        >>> b = [ItemScore("i1", 1.0), ItemScore("i2", 5.0)]
        >>> fuse_predictions(2, [a, b])
        [ItemScore(item='i1', score=0.0), ItemScore(item='i2', score=0.0)]
    """
    if num < 1:
        raise ValueError(f"num must be at least 1, got {num}")

    if num == 1:
        standardized: Sequence[Sequence[ItemScore]] = predictions
    else:
        standardized = [standardize(scores, sink) for scores in predictions]

    combined: Dict[str, float] = defaultdict(float)
    for scores in standardized:
        for item_score in scores:
            combined[item_score.item] += item_score.score

    ranked = sorted(combined.items(), key=lambda pair: (-pair[1], pair[0]))

    logger.debug(
        f"Fused {len(predictions)} predictions into {len(ranked)} items, "
        f"returning top {num}"
    )

    return [ItemScore(item=item_id, score=score) for item_id, score in ranked[:num]]
