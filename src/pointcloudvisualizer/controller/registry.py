"""
Cloud Registry (Controller)
===========================
The single mutation/query surface of a visualization session.

Why is this file needed?
------------------------
1. Ownership: Every Cloud of the session lives here, keyed by a generated id.
   The top-level name table and the per-point child maps of parent clouds only
   store ids, so a child reachable both ways is one object.
2. Render preparation: It validates each cloud, synthesizes the packed color
   feature, serializes the cloud to a point-record file and reads it back in the
   form the viewer consumes. One broken cloud never blocks the others.
3. Picking: It resolves a picked coordinate to (cloud, point index) through the
   active Space of every cloud shown in the picked viewport.
"""
from __future__ import annotations

import itertools
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, Sequence, TYPE_CHECKING

import numpy as np

from pointcloudvisualizer.config import KEEP_VIEWPORT, NOT_FOUND, OUTPUT_FOLDER, RGB_FEATURE
from pointcloudvisualizer.model.cloud import Cloud, CloudId
from pointcloudvisualizer.model.io import PcdIO, PointRecordData, cloud_filename

if TYPE_CHECKING:
    import numpy.typing as npt
    from pointcloudvisualizer.model.records import PointCloud
    from pointcloudvisualizer.view.viewer import CloudViewer

module_logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Results
# ------------------------------------------------------------------------------
@dataclass
class PreparedCloud:
    """A cloud that went through the preparation pass and can be handed to the viewer."""
    name: str
    cloud: Cloud
    filepath: str
    records: PointRecordData


@dataclass
class RenderReport:
    prepared: list[PreparedCloud] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)  # cloud name -> reason
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return not self.aborted and not self.skipped


@dataclass(frozen=True)
class PickResult:
    cloud_name: str
    point_index: int
    space_name: str
    values: dict[str, float]


@dataclass(frozen=True)
class Basis:
    """Three vectors (drawn red, green, blue) anchored at an origin."""
    name: str
    u1: tuple[float, float, float]
    u2: tuple[float, float, float]
    u3: tuple[float, float, float]
    origin: tuple[float, float, float]
    scale: float = 1.0
    viewport: int = 0


def _as_vec3(v: Sequence[float] | npt.ArrayLike) -> tuple[float, float, float]:
    arr = np.asarray(v, dtype=np.float64).reshape(3)
    return float(arr[0]), float(arr[1]), float(arr[2])


class CloudRegistry:
    def __init__(
        self,
        name: str,
        n_rows: int = 1,
        n_cols: int = 1,
        logger: Optional[logging.Logger] = None,
        output_folder: str | os.PathLike = OUTPUT_FOLDER,
    ) -> None:
        """
        Args:
            name: Session name, part of every serialized file name.
            n_rows: Number of viewport rows of the render window.
            n_cols: Number of viewport columns of the render window.
            logger (optional): Logger receiving every invariant violation.
                Defaults to this module's logger.
            output_folder (optional): Folder where serialized clouds are written.
        """
        self.name = name
        self.n_rows = max(1, int(n_rows))
        self.n_cols = max(1, int(n_cols))
        self.logger = logger or module_logger
        self.output_folder = str(output_folder)

        self._clouds: dict[CloudId, Cloud] = {}
        self._names: dict[str, CloudId] = {}
        self._ids = itertools.count()
        self.bases: list[Basis] = []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, clouds={self.cloud_names})"

    # ------------------------------------------------------------------------------
    # Cloud ownership
    # ------------------------------------------------------------------------------

    @property
    def cloud_names(self) -> list[str]:
        return sorted(self._names)

    @property
    def n_viewports(self) -> int:
        return self.n_rows * self.n_cols

    def create_cloud(self) -> Cloud:
        """Create a cloud owned by this registry, without binding it to a top-level name."""
        cloud = Cloud(cloud_id=next(self._ids), logger=self.logger)
        self._clouds[cloud.cloud_id] = cloud
        return cloud

    def get_cloud_by_id(self, cloud_id: CloudId) -> Cloud:
        return self._clouds[cloud_id]

    def has_cloud(self, name: str) -> bool:
        return name in self._names

    def get_cloud(self, name: str) -> Cloud:
        """Get a cloud by name, creating it on first reference."""
        if name not in self._names:
            self._names[name] = self.create_cloud().cloud_id
        return self._clouds[self._names[name]]

    def items(self) -> list[tuple[str, Cloud]]:
        return [(name, self._clouds[self._names[name]]) for name in self.cloud_names]

    def indexed_children(self, parent: Cloud, index: int) -> list[tuple[str, Cloud]]:
        """Child clouds attached to point `index` of `parent`, by child name."""
        return [(child_name, self._clouds[child_id])
                for child_name, child_id in sorted(parent.indexed_cloud_ids(index).items())]

    def is_named(self, cloud: Cloud) -> bool:
        """True if the cloud is bound to a top-level name."""
        return cloud.cloud_id in self._names.values()

    # ------------------------------------------------------------------------------
    # Mutation surface (by cloud name)
    # ------------------------------------------------------------------------------

    def add_cloud(
        self,
        cloud_name: str,
        data: PointCloud,
        indices: Optional[Sequence[int]] = None,
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        return self.get_cloud(cloud_name).add_cloud(data, indices=indices, viewport=viewport)

    def add_cloud_indexed(
        self,
        parent_name: str,
        index: int,
        child_name: str,
        data: PointCloud,
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        """
        Attach a child cloud to point `index` of cloud `parent_name`, and bind it to
        the top-level name `child_name` as well. Both names refer to the same cloud.
        """
        if not self.has_cloud(parent_name):
            self.logger.error(
                f"[add_cloud_indexed] Must add an indexed cloud in an existing cloud. "
                f"[{parent_name}] does not exist."
            )

        parent = self.get_cloud(parent_name)
        child = parent.add_cloud_indexed(data, index, child_name, self, viewport)

        previous = self._names.get(child_name)
        if previous is not None and previous != child.cloud_id:
            self.logger.warning(f"[add_cloud_indexed] Top-level name [{child_name}] now refers to the indexed cloud.")
        self._names[child_name] = child.cloud_id
        return child

    def add_feature(
        self,
        cloud_name: str,
        name: str,
        values: Sequence[float] | npt.ArrayLike,
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        return self.get_cloud(cloud_name).add_feature(name, values, viewport)

    def add_feature_from(
        self,
        cloud_name: str,
        data: Iterable,
        name: str,
        func: Callable[[object], float],
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        return self.get_cloud(cloud_name).add_feature_from(data, name, func, viewport)

    def add_labels_feature(
        self,
        cloud_name: str,
        component_groups: Sequence[Sequence[int]],
        name: str,
        viewport: int = KEEP_VIEWPORT
    ) -> Cloud:
        return self.get_cloud(cloud_name).add_labels_feature(component_groups, name, viewport)

    def add_space(self, cloud_name: str, a: str, b: str, c: str) -> Cloud:
        return self.get_cloud(cloud_name).add_space(a, b, c)

    def add_basis(
        self,
        u1: Sequence[float],
        u2: Sequence[float],
        u3: Sequence[float],
        origin: Sequence[float],
        name: str,
        scale: float = 1.0,
        viewport: int = 0
    ) -> Basis:
        """Add a 3D basis (u1 red, u2 green, u3 blue) drawn at `origin`."""
        basis = Basis(
            name=name,
            u1=_as_vec3(u1),
            u2=_as_vec3(u2),
            u3=_as_vec3(u3),
            origin=_as_vec3(origin),
            scale=float(scale),
            viewport=viewport,
        )
        self.bases = [b for b in self.bases if b.name != name] + [basis]
        return basis

    def set_features_order(self, names: Sequence[str]) -> None:
        """Put the given features first (in the given order) in every registered cloud."""
        for cloud_name, cloud in self.items():
            missing = [n for n in names if not cloud.has_feature(n)]
            if missing:
                self.logger.warning(f"[set_features_order] Cloud [{cloud_name}] has no features {missing}.")
            cloud.features.reorder([n for n in names if cloud.has_feature(n)])

    # ------------------------------------------------------------------------------
    # Viewports
    # ------------------------------------------------------------------------------

    def is_in_grid(self, viewport: int) -> bool:
        return 0 <= viewport < self.n_viewports

    def resolve_viewport(self, viewport: int) -> int:
        """Viewport a cloud is actually drawn in: viewports outside the grid fall back to 0."""
        return viewport if self.is_in_grid(viewport) else 0

    def subplot_of_viewport(self, viewport: int) -> tuple[int, int]:
        """(row, col) of a viewport index, falling back to (0, 0) outside the grid."""
        if not self.is_in_grid(viewport):
            self.logger.error(
                f"Viewport {viewport} is outside the {self.n_rows}x{self.n_cols} grid, using viewport 0."
            )
        return divmod(self.resolve_viewport(viewport), self.n_cols)

    # ------------------------------------------------------------------------------
    # Render preparation
    # ------------------------------------------------------------------------------

    def prepare_cloud(self, name: str, cloud: Cloud) -> tuple[Optional[PreparedCloud], Optional[str]]:
        """
        Validate, augment and serialize one cloud.

        Returns:
            (prepared cloud, None) on success, (None, reason) if the cloud was skipped.
        """
        if not cloud.spaces:
            reason = f"[render] No space set for [{name}]. Must call add_space()."
            self.logger.error(reason)
            return None, reason

        packed = cloud.packed_rgb()
        if packed is not None:
            cloud.add_feature(RGB_FEATURE, np.full(cloud.n_points, packed, dtype=np.float32), cloud.viewport)

        filepath = cloud_filename(cloud, name, self.name, self.output_folder)
        try:
            PcdIO.save_cloud(cloud, filepath)
            records = PcdIO.load(filepath)
        except (OSError, ValueError) as e:
            reason = f"[render] Could not serialize [{name}] to '{filepath}': {e}"
            self.logger.error(reason)
            return None, reason

        return PreparedCloud(name=name, cloud=cloud, filepath=str(filepath), records=records), None

    def prepare_clouds_for_render(self) -> RenderReport:
        """Run the preparation pass over every top-level cloud."""
        report = RenderReport()

        if not PcdIO.ensure_folder(self.output_folder):
            self.logger.error(f"[render] Output folder '{self.output_folder}' is unusable, render aborted.")
            report.aborted = True
            report.skipped = {name: "output folder unusable" for name in self.cloud_names}
            return report

        for name, cloud in self.items():
            prepared, reason = self.prepare_cloud(name, cloud)
            if prepared is None:
                report.skipped[name] = reason or ""
            else:
                report.prepared.append(prepared)

        self.logger.info(
            f"Prepared {len(report.prepared)} clouds for render, skipped {len(report.skipped)}."
        )
        return report

    def render(self, viewer: Optional[CloudViewer] = None) -> RenderReport:
        """
        Prepare every cloud and open the interactive window.
        Blocks until the window is closed.
        """
        report = self.prepare_clouds_for_render()
        if report.aborted:
            return report
        if not report.prepared:
            self.logger.warning("[render] Nothing to render.")
            return report

        if viewer is None:
            from pointcloudvisualizer.view.viewer import CloudViewer
            viewer = CloudViewer(self)

        viewer.show(report)
        return report

    def clear_saved_data(self, last_hours_to_keep: int) -> list[Path]:
        """Delete this registry's saved clouds older than `last_hours_to_keep` hours."""
        return PcdIO.clear_saved_data(last_hours_to_keep, self.output_folder)

    # ------------------------------------------------------------------------------
    # Picking
    # ------------------------------------------------------------------------------

    def find_picked_points(
        self,
        a: float,
        b: float,
        c: float,
        viewport: Optional[int] = None,
        active_spaces: Optional[Mapping[str, int]] = None
    ) -> list[PickResult]:
        """
        Resolve a picked coordinate against every top-level cloud.

        Args:
            a, b, c: Picked coordinate.
            viewport (optional): Only consider clouds drawn in this viewport. Clouds
                whose viewport is outside the grid are drawn in viewport 0.
            active_spaces (optional): Cloud name -> index of the space currently
                used as geometry. Defaults to the first space.

        Returns:
            One result per cloud having a point exactly at (a, b, c).
        """
        active_spaces = active_spaces or {}
        results: list[PickResult] = []

        for name, cloud in self.items():
            if not cloud.spaces:
                continue
            if viewport is not None and self.resolve_viewport(cloud.viewport) != viewport:
                continue

            space_idx = active_spaces.get(name, 0)
            if not 0 <= space_idx < len(cloud.spaces):
                space_idx = 0
            space = cloud.spaces[space_idx]

            point_index = space.find_picked_point_index(a, b, c)
            if point_index == NOT_FOUND:
                continue

            values = {feat_name: float(data[point_index]) for feat_name, data in cloud.features}
            results.append(PickResult(name, point_index, space.name, values))

        return results
