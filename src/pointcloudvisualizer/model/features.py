"""
Feature Store
=============
Ordered collection of named scalar arrays owned by one Cloud.

Rules:
1. Insertion order is preserved (it becomes the FIELDS order on disk).
2. Re-adding a name overwrites the values in place, the position is kept.
3. Every stored array is a read-only float32 copy, so the only way to change
   the data is through `set`, which bumps the feature revision.
4. All features have the same length. `set` refuses any other length.
"""
from __future__ import annotations

import logging
from typing import Iterator, Sequence, TYPE_CHECKING

import numpy as np

from pointcloudvisualizer.exceptions import FeatureLengthError, FeatureNotFoundError

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


def as_feature_data(values: Sequence[float] | npt.ArrayLike) -> npt.NDArray[np.float32]:
    """Copy any numeric sequence into a flat, read-only float32 array."""
    data = np.array(values, dtype=np.float32).reshape(-1)
    data.setflags(write=False)
    return data


class FeatureStore:
    def __init__(self) -> None:
        # dict keeps insertion order, overwriting a key keeps its slot
        self._features: dict[str, npt.NDArray[np.float32]] = {}
        self._revisions: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, name: object) -> bool:
        return name in self._features

    def __iter__(self) -> Iterator[tuple[str, npt.NDArray[np.float32]]]:
        return iter(list(self._features.items()))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(names={self.names}, n_points={self.point_count()})"

    @property
    def names(self) -> list[str]:
        return list(self._features)

    def set(self, name: str, values: Sequence[float] | npt.ArrayLike) -> None:
        """
        Append a new feature, or overwrite the values of an existing one in place.

        Raises:
            FeatureLengthError: If the other features hold a different number of points.
        """
        data = as_feature_data(values)

        other = next((arr for key, arr in self._features.items() if key != name), None)
        if other is not None and data.shape[0] != other.shape[0]:
            raise FeatureLengthError(
                f"Feature '{name}' has {data.shape[0]} values, but the other features have {other.shape[0]}."
            )

        self._features[name] = data
        self._revisions[name] = self._revisions.get(name, -1) + 1

    def get(self, name: str) -> npt.NDArray[np.float32]:
        try:
            return self._features[name]
        except KeyError:
            raise FeatureNotFoundError(name) from None

    def has(self, name: str) -> bool:
        return name in self._features

    def revision(self, name: str) -> int:
        """Number of overwrites of a feature since it was first added (0 for a fresh one)."""
        if name not in self._revisions:
            raise FeatureNotFoundError(name)
        return self._revisions[name]

    def point_count(self) -> int:
        """Length of the first feature ever added, 0 for an empty store."""
        if not self._features:
            return 0
        first = next(iter(self._features.values()))
        return int(first.shape[0])

    def reorder(self, names_first: Sequence[str]) -> None:
        """
        Move the given features to the front, in the given order.
        All other features keep their relative order. Unknown names are skipped.
        """
        front = []
        for name in names_first:
            if name not in self._features:
                logger.warning(f"Cannot reorder unknown feature '{name}', skipping it.")
                continue
            if name not in front:
                front.append(name)
        rest = [name for name in self._features if name not in front]
        self._features = {name: self._features[name] for name in front + rest}
