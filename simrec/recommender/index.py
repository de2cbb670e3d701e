"""Identity indexing between entity ids and dense matrix indices.

Matrix factorization works on contiguous integer rows and columns, while
events and the entity store use opaque string ids. An IndexMap is the
bijection between the two, built once per training run from the
authoritative user or item population.
"""

import logging
from functools import reduce
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import pandas as pd

from simrec.recommender.reporting import UNMAPPABLE_IDENTIFIER, ReportingSink, default_sink

# Configure module logger
logger = logging.getLogger(__name__)

TRIPLE_COLUMNS = ["user_index", "item_index", "value"]


class IndexMap:
    """Bijection between entity ids and the integer range 0..n-1."""

    def __init__(self, id_to_idx: Dict[str, int]):
        """Initialize from an id -> index mapping.

        Raises:
            ValueError: If the indices are not exactly 0..n-1.
        """
        n = len(id_to_idx)
        if sorted(id_to_idx.values()) != list(range(n)):
            raise ValueError(
                "IndexMap indices must be contiguous and start at zero"
            )

        self._id_to_idx = dict(id_to_idx)
        self._idx_to_id: List[str] = [""] * n
        for entity_id, idx in self._id_to_idx.items():
            self._idx_to_id[idx] = entity_id

    @classmethod
    def from_ids(cls, ids: Iterable) -> "IndexMap":
        """Build a map over the sorted distinct ids."""
        unique_ids = sorted({str(entity_id) for entity_id in ids})
        return cls({entity_id: idx for idx, entity_id in enumerate(unique_ids)})

    @classmethod
    def from_partitions(cls, partitions: Iterable[Iterable]) -> "IndexMap":
        """Build a map from ids spread over several partitions.

        Each partition is reduced to a set on its own and the sets are merged
        pairwise, so the result does not depend on partition order.
        """
        partials = ({str(entity_id) for entity_id in part} for part in partitions)
        return cls.from_ids(reduce(set.union, partials, set()))

    @classmethod
    def from_dict(cls, id_to_idx: Dict[str, int]) -> "IndexMap":
        return cls(id_to_idx)

    def to_dict(self) -> Dict[str, int]:
        return dict(self._id_to_idx)

    def index(self, entity_id: str) -> Optional[int]:
        """Index of an id, or None if the id is not in the population."""
        return self._id_to_idx.get(entity_id)

    def id(self, index: int) -> str:
        """Id stored at an index.

        Raises:
            IndexError: If the index is outside 0..n-1.
        """
        if not 0 <= index < len(self._idx_to_id):
            raise IndexError(f"Index {index} out of range for {len(self)} ids")
        return self._idx_to_id[index]

    @property
    def ids(self) -> List[str]:
        """All ids in index order."""
        return list(self._idx_to_id)

    def __len__(self) -> int:
        return len(self._idx_to_id)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._id_to_idx

    def __iter__(self) -> Iterator[str]:
        return iter(self._idx_to_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexMap):
            return NotImplemented
        return self._id_to_idx == other._id_to_idx

    def __repr__(self) -> str:
        return f"IndexMap(size={len(self)})"


def build_index_maps(
    user_ids: Iterable,
    item_ids: Iterable,
) -> Tuple[IndexMap, IndexMap]:
    """Build the user-space and item-space maps independently."""
    user_map = IndexMap.from_ids(user_ids)
    item_map = IndexMap.from_ids(item_ids)

    logger.info(f"Indexed {len(user_map)} users and {len(item_map)} items")

    return user_map, item_map


def map_to_triples(
    preferences: pd.DataFrame,
    user_map: IndexMap,
    item_map: IndexMap,
    value_col: str = "value",
    sink: Optional[ReportingSink] = None,
) -> pd.DataFrame:
    """Convert per-pair preferences to index triples.

    Rows whose user or item is absent from the population are reported to
    the sink and dropped. Partial linkage between the event stream and the
    entity store is expected, so this is never fatal.

    Args:
        preferences: DataFrame with columns user, item and value_col.
        user_map: User-space IndexMap.
        item_map: Item-space IndexMap.
        value_col: Column holding the preference value.
        sink: Reporting sink for unmapped identifiers.

    Returns:
        DataFrame with columns user_index, item_index, value.
    """
    sink = sink or default_sink

    if preferences.empty:
        return pd.DataFrame(columns=TRIPLE_COLUMNS).astype(
            {"user_index": "int64", "item_index": "int64", "value": "float64"}
        )

    user_idx = preferences["user"].map(user_map.to_dict())
    item_idx = preferences["item"].map(item_map.to_dict())

    unmapped_users = user_idx.isna()
    unmapped_items = item_idx.isna()

    for entity_id in preferences.loc[unmapped_users, "user"]:
        sink.report(UNMAPPABLE_IDENTIFIER, entity_type="user", entity_id=entity_id)
    for entity_id in preferences.loc[unmapped_items, "item"]:
        sink.report(UNMAPPABLE_IDENTIFIER, entity_type="item", entity_id=entity_id)

    keep = ~(unmapped_users | unmapped_items)
    dropped = int((~keep).sum())
    if dropped:
        logger.warning(f"Filtered {dropped} preferences with unmapped identifiers")

    triples = pd.DataFrame({
        "user_index": user_idx[keep].astype("int64").to_numpy(),
        "item_index": item_idx[keep].astype("int64").to_numpy(),
        "value": preferences.loc[keep, value_col].astype("float64").to_numpy(),
    })

    return triples
