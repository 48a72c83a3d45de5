"""
Space (Spatial Index)
=====================
A Space is a triple of features interpreted as 3D coordinates, backed by a
KD-tree so a picked coordinate can be resolved back to its point index.

Why is this file needed?
------------------------
1. Picking: The rendering engine only reports the coordinate of a picked
   point. The KD-tree turns it back into the index of the point in its cloud.
2. Exactness: Only a perfect match is accepted. Two clouds drawn in the same
   viewport can have points very close to each other, a "nearest" answer would
   confuse them.
3. Freshness: The tree is rebuilt on the next query if one of its three
   features was overwritten after the tree was built.
"""
from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING

import numpy as np
from scipy.spatial import cKDTree

from pointcloudvisualizer.config import NOT_FOUND, PICK_EPSILON
from pointcloudvisualizer.exceptions import FeatureLengthError

if TYPE_CHECKING:
    import numpy.typing as npt
    from pointcloudvisualizer.model.features import FeatureStore

logger = logging.getLogger(__name__)


class Space:
    def __init__(self, store: FeatureStore, u1: str, u2: str, u3: str) -> None:
        """
        Build the spatial index over the current values of three features.

        Args:
            store: Feature store of the owning cloud. Must contain u1, u2 and u3.
            u1: Feature used as the first ('x') dimension.
            u2: Feature used as the second ('y') dimension.
            u3: Feature used as the third ('z') dimension.

        Raises:
            FeatureLengthError: If the three features do not have the same length.
        """
        self._store = store
        self.u1 = u1
        self.u2 = u2
        self.u3 = u3
        self._tree: Optional[cKDTree] = None
        self._n_points: int = 0
        self._built_revisions: tuple[int, int, int] = (-1, -1, -1)
        self._build()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.u1}, {self.u2}, {self.u3}, n_points={self._n_points})"

    @property
    def name(self) -> str:
        return self.u1 + self.u2 + self.u3

    @property
    def feature_names(self) -> tuple[str, str, str]:
        return self.u1, self.u2, self.u3

    @property
    def n_points(self) -> int:
        return self._n_points

    @property
    def is_stale(self) -> bool:
        """True if one of the three features was overwritten since the tree was built."""
        return self._current_revisions() != self._built_revisions

    def coordinates(self) -> npt.NDArray[np.float32]:
        """(N, 3) float32 array, one row per point."""
        va, vb, vc = (self._store.get(name) for name in self.feature_names)
        return np.column_stack((va, vb, vc)).astype(np.float32, copy=False)

    def find_picked_point_index(self, a: float, b: float, c: float) -> int:
        """
        Resolve a picked coordinate to the index of the point that produced it.

        Returns:
            The point index, or NOT_FOUND (-1) if no point sits exactly at (a, b, c)
            or the three features no longer have the same length.
        """
        if self.is_stale:
            logger.debug(f"Space [{self.name}] features changed since last build, rebuilding index.")
            try:
                self._build()
            except FeatureLengthError:
                # Already logged by _build, the old tree no longer matches the data
                self._tree = None
                self._n_points = 0
                return NOT_FOUND

        if self._tree is None:
            return NOT_FOUND

        # Query with float32 precision, same as the indexed data
        query = np.array([a, b, c], dtype=np.float32).astype(np.float64)
        dist, idx = self._tree.query(query, k=1)

        # Must be a perfect pick, to avoid confusion between clouds in same viewport
        if dist * dist < PICK_EPSILON:
            return int(idx)
        return NOT_FOUND

    def _current_revisions(self) -> tuple[int, int, int]:
        return (
            self._store.revision(self.u1),
            self._store.revision(self.u2),
            self._store.revision(self.u3),
        )

    def _build(self) -> None:
        va, vb, vc = (self._store.get(name) for name in self.feature_names)

        n = va.shape[0]
        if vb.shape[0] != n or vc.shape[0] != n:
            msg = (f"All features of space [{self.name}] must have the same size, "
                   f"got {n}, {vb.shape[0]}, {vc.shape[0]}.")
            logger.error(msg)
            raise FeatureLengthError(msg)

        self._built_revisions = self._current_revisions()
        self._n_points = n

        if n == 0:
            # Empty index: every query is a miss
            self._tree = None
            return

        data = np.column_stack((va, vb, vc)).astype(np.float64)
        self._tree = cKDTree(data)
