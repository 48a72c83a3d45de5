"""
Cloud (Data Model)
==================
A named collection of per-point features, the spaces declared over them,
render attributes and per-point attached child clouds.

Why is this file needed?
------------------------
1. State: It holds everything the render-preparation pass needs to serialize
   one cloud (features in insertion order, color, viewport, size, opacity).
2. Validation: Every feature of a cloud has exactly one value per point.
   Spaces only reference existing features.
3. Hierarchy: A point can carry its own named child clouds ("indexed clouds").
   Children are owned by the registry, the cloud only stores their ids.

All mutators return the cloud itself, so calls can be chained:

    cloud.add_cloud(xyz).set_color(1, 0, 0).set_size(3)
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Sequence, TYPE_CHECKING

import numpy as np

from pointcloudvisualizer.config import (
    DEFAULT_OPACITY,
    DEFAULT_POINT_SIZE,
    DEFAULT_VIEWPORT,
    KEEP_VIEWPORT,
    NO_COLOR,
    RGB_FEATURE,
    UNLABELED,
)
from pointcloudvisualizer.exceptions import FeatureLengthError
from pointcloudvisualizer.model.features import FeatureStore
from pointcloudvisualizer.model.io import create_timestamp_string
from pointcloudvisualizer.model.records import PointCloud, get_layout
from pointcloudvisualizer.model.space import Space

if TYPE_CHECKING:
    import numpy.typing as npt
    from pointcloudvisualizer.controller.registry import CloudRegistry

module_logger = logging.getLogger(__name__)

CloudId = int


def pack_rgb(r: float, g: float, b: float) -> int:
    """Pack three 0-1 channels into one 24-bit integer (r << 16) | (g << 8) | b."""
    r8, g8, b8 = (int(np.clip(channel, 0.0, 1.0) * 255) for channel in (r, g, b))
    return (r8 << 16) | (g8 << 8) | b8


class Cloud:
    def __init__(self, cloud_id: CloudId = 0, logger: Optional[logging.Logger] = None) -> None:
        self.cloud_id = cloud_id
        self._logger = logger or module_logger

        self.viewport: int = DEFAULT_VIEWPORT
        self.size: int = DEFAULT_POINT_SIZE
        self.opacity: float = DEFAULT_OPACITY
        self.rgb: tuple[float, float, float] = (NO_COLOR, NO_COLOR, NO_COLOR)

        self.features = FeatureStore()
        # list instead of dict to keep order of insertion and allow duplicates
        self.spaces: list[Space] = []
        # point index -> child cloud name -> child cloud id
        self.indexed_clouds: dict[int, dict[str, CloudId]] = {}

        self.timestamp: str = create_timestamp_string()

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(id={self.cloud_id}, n_points={self.n_points}, "
                f"features={self.features.names}, spaces={[s.name for s in self.spaces]})")

    # ------------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------------

    @property
    def n_points(self) -> int:
        return self.features.point_count()

    @property
    def n_features(self) -> int:
        return len(self.features)

    def has_feature(self, name: str) -> bool:
        return self.features.has(name)

    def get_feature_data(self, name: str) -> npt.NDArray[np.float32]:
        return self.features.get(name)

    def has_rgb(self) -> bool:
        """True if the packed color feature exists (synthesized or added by the caller)."""
        return self.features.has(RGB_FEATURE)

    def has_color(self) -> bool:
        return all(channel >= 0.0 for channel in self.rgb)

    def indexed_cloud_ids(self, index: int) -> dict[str, CloudId]:
        return dict(self.indexed_clouds.get(index, {}))

    # ------------------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------------------

    def add_feature(
        self,
        name: str,
        values: Sequence[float] | npt.ArrayLike,
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        """
        Add a feature, or overwrite the values of an existing one.

        Args:
            name: Feature name, unique within the cloud.
            values: One value per point. Cast to float32.
            viewport (optional): Viewport index (0 based) in which to render.

        Raises:
            FeatureLengthError: If the other features of the cloud hold a different
                number of points.
        """
        try:
            self.features.set(name, values)
        except FeatureLengthError as e:
            self._logger.error(f"[add_feature] {e}")
            raise
        self.set_viewport(viewport)
        return self

    def add_feature_from(
        self,
        data: Iterable[Any],
        name: str,
        func: Callable[[Any], float],
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        """
        Add a feature from a generic container and a function that extracts
        the feature value from one element of the container.
        """
        values = [func(element) for element in data]
        return self.add_feature(name, values, viewport)

    def add_labels_feature(
        self,
        component_groups: Sequence[Sequence[int]],
        name: str,
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        """
        Add a label feature from groups of point indices.

        Group k (0 based, input order) labels its points with k.
        Points in no group are labelled -1. Out of range indices are skipped.
        """
        n_points = self.n_points
        if n_points <= 0:
            self._logger.error(
                "[add_labels_feature] No points in the cloud, add_labels_feature must be "
                "called after at least one feature was added."
            )
            return self

        labels = np.full(n_points, UNLABELED, dtype=np.float32)
        for label, component_indices in enumerate(component_groups):
            for i in component_indices:
                if 0 <= i < n_points:
                    labels[i] = label
                else:
                    self._logger.error(
                        f"[add_labels_feature] Index {i} of group {label} is out of bounds "
                        f"[0, {n_points}), skipping it."
                    )

        return self.add_feature(name, labels, viewport)

    # ------------------------------------------------------------------------------
    # Spaces
    # ------------------------------------------------------------------------------

    def add_space(self, a: str, b: str, c: str) -> Cloud:
        """
        Declare three existing features as a 3D coordinate space.
        Logs an error and leaves the spaces unchanged if one feature is missing.
        """
        for feature_name in (a, b, c):
            if not self.features.has(feature_name):
                self._logger.error(f"[add_space] Following feature does not exist: {feature_name}")
                return self

        self.spaces.append(Space(self.features, a, b, c))
        return self

    # ------------------------------------------------------------------------------
    # Typed point clouds
    # ------------------------------------------------------------------------------

    def add_cloud(
        self,
        data: PointCloud,
        indices: Optional[Sequence[int]] = None,
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        """
        Decompose a typed point cloud into features and declare its natural spaces.

        Args:
            data: Typed point cloud (PointXYZ, Normal, PointNormal, PrincipalCurvatures).
            indices (optional): Only consider the points at these indices.
            viewport (optional): Viewport index (0 based) in which to render.

        Raises:
            UnsupportedRecordError: If the record type has no registered decomposition.
        """
        layout = get_layout(data.record_type)

        if indices is not None:
            data = data.select(indices)

        for feature_name, accessor in layout.features:
            self.add_feature_from(data, feature_name, accessor, viewport)
        for space in layout.spaces:
            self.add_space(*space)

        self.set_viewport(viewport)
        self.timestamp = create_timestamp_string()
        return self

    def add_cloud_indexed(
        self,
        data: PointCloud,
        index: int,
        name: str,
        registry: CloudRegistry,
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        """
        Attach a child cloud to the point at `index`, under `name`.

        The child is created in (and owned by) the registry. An out of range
        index is logged, the child is attached anyway but will never be shown.

        Returns:
            The child cloud.
        """
        if index < 0 or index >= self.n_points:
            self._logger.error(
                f"[add_cloud_indexed] Index {index} out of range [0, {self.n_points}). "
                f"Adding the cloud '{name}' anyway, but it will never be rendered."
            )

        children = self.indexed_clouds.setdefault(index, {})
        if name in children:
            child = registry.get_cloud_by_id(children[name])
        else:
            child = registry.create_cloud()
            children[name] = child.cloud_id

        return child.add_cloud(data, viewport=viewport)

    # ------------------------------------------------------------------------------
    # Render attributes
    # ------------------------------------------------------------------------------

    def set_viewport(self, viewport: int) -> Cloud:
        # Continue using already set viewport if KEEP_VIEWPORT (-1)
        if viewport >= 0:
            self.viewport = viewport
        return self

    def set_size(self, size: int) -> Cloud:
        if size < 1:
            self._logger.error(f"[set_size] Point size must be >= 1, got {size}. Keeping {self.size}.")
            return self
        self.size = int(size)
        return self

    def set_opacity(self, opacity: float) -> Cloud:
        if not 0.0 <= opacity <= 1.0:
            self._logger.error(f"[set_opacity] Opacity must be in [0, 1], got {opacity}. Keeping {self.opacity}.")
            return self
        self.opacity = float(opacity)
        return self

    def set_color(self, r: float, g: float, b: float) -> Cloud:
        """Uniform color, each channel in [0, 1]."""
        rgb = (float(r), float(g), float(b))
        if not all(0.0 <= channel <= 1.0 for channel in rgb):
            self._logger.error(f"[set_color] Color channels must be in [0, 1], got {rgb}. Keeping {self.rgb}.")
            return self
        self.rgb = rgb
        return self

    def packed_rgb(self) -> Optional[int]:
        if not self.has_color():
            return None
        return pack_rgb(*self.rgb)

    def render(self, registry: CloudRegistry) -> None:
        """Render the whole registry this cloud belongs to (blocks until the window closes)."""
        registry.render()
