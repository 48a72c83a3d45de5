"""
Point Records
=============
Typed point record shapes and their explicit decomposition into features.

Each supported record type has one RecordLayout: the list of features it
produces (name + accessor) and the spaces that are natural for it. Adding a new
record shape means adding a dataclass and one entry in RECORD_LAYOUTS.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, Iterator, Sequence, TypeVar, TYPE_CHECKING

import numpy as np

from pointcloudvisualizer.exceptions import UnsupportedRecordError

if TYPE_CHECKING:
    import numpy.typing as npt


# ------------------------------------------------------------------------------
# Record shapes
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class PointXYZ:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class Normal:
    normal_x: float
    normal_y: float
    normal_z: float
    curvature: float = 0.0


@dataclass(frozen=True)
class PointNormal:
    x: float
    y: float
    z: float
    normal_x: float
    normal_y: float
    normal_z: float
    curvature: float = 0.0


@dataclass(frozen=True)
class PrincipalCurvatures:
    principal_curvature_x: float
    principal_curvature_y: float
    principal_curvature_z: float
    pc1: float
    pc2: float


T = TypeVar("T")


@dataclass
class PointCloud(Generic[T]):
    """A typed collection of point records (one record type per cloud)."""
    record_type: type[T]
    points: list[T] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[T]:
        return iter(self.points)

    def __getitem__(self, i: int) -> T:
        return self.points[i]

    def select(self, indices: Sequence[int]) -> PointCloud[T]:
        """New cloud holding only the points at the given indices, in the given order."""
        return PointCloud(self.record_type, [self.points[i] for i in indices])

    @classmethod
    def from_array(cls, record_type: type[T], array: npt.ArrayLike) -> PointCloud[T]:
        """
        Build a cloud from a (N, k) array, one column per record field in declaration order.
        """
        rows = np.asarray(array, dtype=np.float32)
        if rows.ndim == 1:
            rows = rows.reshape(1, -1) if rows.size else rows.reshape(0, 0)
        return cls(record_type, [record_type(*(float(v) for v in row)) for row in rows])


# ------------------------------------------------------------------------------
# Decompositions
# ------------------------------------------------------------------------------
Accessor = Callable[[T], float]


@dataclass(frozen=True)
class RecordLayout:
    features: tuple[tuple[str, Accessor], ...]
    spaces: tuple[tuple[str, str, str], ...]


RECORD_LAYOUTS: dict[type, RecordLayout] = {
    PointXYZ: RecordLayout(
        features=(
            ("x", lambda p: p.x),
            ("y", lambda p: p.y),
            ("z", lambda p: p.z),
        ),
        spaces=(("x", "y", "z"),),
    ),
    Normal: RecordLayout(
        features=(
            ("normal_x", lambda p: p.normal_x),
            ("normal_y", lambda p: p.normal_y),
            ("normal_z", lambda p: p.normal_z),
            ("curvature", lambda p: p.curvature),
        ),
        spaces=(("normal_x", "normal_y", "normal_z"),),
    ),
    PointNormal: RecordLayout(
        features=(
            ("x", lambda p: p.x),
            ("y", lambda p: p.y),
            ("z", lambda p: p.z),
            ("normal_x", lambda p: p.normal_x),
            ("normal_y", lambda p: p.normal_y),
            ("normal_z", lambda p: p.normal_z),
            ("curvature", lambda p: p.curvature),
        ),
        spaces=(("x", "y", "z"), ("normal_x", "normal_y", "normal_z")),
    ),
    PrincipalCurvatures: RecordLayout(
        features=(
            ("principal_curvature_x", lambda p: p.principal_curvature_x),
            ("principal_curvature_y", lambda p: p.principal_curvature_y),
            ("principal_curvature_z", lambda p: p.principal_curvature_z),
            ("pc1", lambda p: p.pc1),
            ("pc2", lambda p: p.pc2),
        ),
        # TODO: pc1/pc2 only make sense in a 2D view, add one once viewports support it
        spaces=(("principal_curvature_x", "principal_curvature_y", "principal_curvature_z"),),
    ),
}


def get_layout(record_type: type) -> RecordLayout:
    try:
        return RECORD_LAYOUTS[record_type]
    except KeyError:
        raise UnsupportedRecordError(
            f"No decomposition registered for point records of type '{record_type.__name__}'."
        ) from None
