"""Data types shared by training and serving."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

import numpy as np

from simrec.recommender.index import IndexMap


@dataclass(frozen=True)
class Item:
    """Item metadata from the entity store."""

    item_id: str
    categories: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class LatentModel:
    """Trained item-side factors plus the item index and metadata.

    Immutable once built: the factor array is read-only and the item
    metadata is exposed through a read-only mapping. Retraining produces a
    new model instead of updating this one.

    Attributes:
        item_factors: Array of shape (n_items, rank); row i is the vector of
            the item at index i.
        item_index: IndexMap of the item population.
        items: Mapping from item index to Item metadata.
    """

    item_factors: np.ndarray
    item_index: IndexMap
    items: Mapping[int, Item] = field(default_factory=dict)

    def __post_init__(self) -> None:
        factors = np.array(self.item_factors, dtype=np.float64, copy=True)
        if factors.ndim != 2:
            raise ValueError("item_factors must be a 2-D array")
        if factors.shape[0] != len(self.item_index):
            raise ValueError(
                f"item_factors has {factors.shape[0]} rows but the item index "
                f"has {len(self.item_index)} entries"
            )
        factors.setflags(write=False)

        object.__setattr__(self, "item_factors", factors)
        object.__setattr__(self, "items", MappingProxyType(dict(self.items)))

    @property
    def rank(self) -> int:
        return self.item_factors.shape[1]

    @property
    def n_items(self) -> int:
        return self.item_factors.shape[0]

    def vector(self, item_id: str) -> Optional[np.ndarray]:
        """Latent vector of an item, or None if it was not in training."""
        idx = self.item_index.index(item_id)
        if idx is None:
            return None
        return self.item_factors[idx]


@dataclass(frozen=True)
class ItemScore:
    item: str
    score: float


@dataclass(frozen=True)
class Query:
    """A similar-items query.

    Attributes:
        items: Ids of the items to find similar items for.
        num: Maximum number of results (at least 1).
        categories: If set, only items in at least one of these categories.
        white_list: If set, only these items.
        black_list: Items never to return.
        user: Optional user whose recent items are added to the query items.
    """

    items: Tuple[str, ...] = ()
    num: int = 10
    categories: Optional[FrozenSet[str]] = None
    white_list: Optional[FrozenSet[str]] = None
    black_list: Optional[FrozenSet[str]] = None
    user: Optional[str] = None

    def __post_init__(self) -> None:
        if self.num < 1:
            raise ValueError(f"num must be at least 1, got {self.num}")

        object.__setattr__(self, "items", tuple(str(i) for i in self.items))
        for name in ("categories", "white_list", "black_list"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, frozenset(str(v) for v in value))
