"""
3D Visualization Window (PyVista Wrapper)
=========================================
Displays the prepared clouds of a CloudRegistry in a grid of viewports and
wires the keyboard and point-picking callbacks back to the registry.

Keys:
    h       print the help
    i / o   identify clouds forward / backward (show one cloud at a time)
    n       next space (geometry) of the identified cloud
    m       next color feature of the identified cloud
    p       pick the point under the cursor
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

import numpy as np
import pyvista as pv

from pointcloudvisualizer.config import RGB_FEATURE
from pointcloudvisualizer.controller.registry import PickResult, PreparedCloud, RenderReport
from pointcloudvisualizer.view.vtk_utils import RGB_COLORS_ARRAY, VtkUtils

if TYPE_CHECKING:
    from pointcloudvisualizer.controller.registry import CloudRegistry

logger = logging.getLogger(__name__)

BASIS_COLORS = ("red", "green", "blue")
IDENTIFY_TEXT_NAME = "identified_cloud"

HELP_TEXT = """
| Help:
-------
    h       : print this help
    i / o   : identify clouds forward / backward (show one cloud at a time)
    n       : next space (geometry) of the identified cloud
    m       : next color feature of the identified cloud
    p       : pick the point under the cursor, shows its indexed clouds
    q       : close the window
"""


@dataclass
class InteractionState:
    identified_cloud_idx: int = -1
    last_pick: Optional[PickResult] = None
    # cloud name -> index of the space used as geometry
    active_space: dict[str, int] = field(default_factory=dict)
    # cloud name -> index in the cloud's color options
    active_color: dict[str, int] = field(default_factory=dict)


class CloudViewer:
    def __init__(
        self,
        registry: CloudRegistry,
        plotter: Optional[pv.Plotter] = None,
        off_screen: bool = False
    ) -> None:
        """
        Args:
            registry: Registry whose clouds are displayed and which resolves picks.
            plotter (optional): Plotter to draw into. By default a new window with
                one subplot per viewport of the registry grid.
            off_screen (optional): Create the default plotter off screen.
        """
        self.registry = registry
        self.plotter = plotter or pv.Plotter(
            shape=(registry.n_rows, registry.n_cols),
            title=registry.name,
            off_screen=off_screen,
        )
        self.state = InteractionState()

        self._prepared: dict[str, PreparedCloud] = {}
        self._actors: dict[str, pv.Actor] = {}
        self._indexed_actors: list[pv.Actor] = []

    # ------------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------------

    def show(self, report: RenderReport) -> None:
        """Add every prepared cloud, wire the callbacks and block until the window closes."""
        for prepared in report.prepared:
            self.add_prepared_cloud(prepared)

        self._draw_bases()
        self._attach_callbacks()

        logger.info(f"Rendering {len(self._prepared)} clouds in {self.registry.n_viewports} viewports.")
        self.print_help()
        self.plotter.show()

    def add_prepared_cloud(self, prepared: PreparedCloud) -> None:
        self._prepared[prepared.name] = prepared
        self.state.active_space.setdefault(prepared.name, 0)
        self.state.active_color.setdefault(prepared.name, 0)
        self._draw_cloud(prepared.name)

    @staticmethod
    def print_help() -> None:
        print(HELP_TEXT)

    # ------------------------------------------------------------------------------
    # Internal: Layer Management
    # ------------------------------------------------------------------------------

    def _select_subplot(self, viewport: int) -> None:
        row, col = self.registry.subplot_of_viewport(viewport)
        self.plotter.subplot(row, col)

    def _draw_cloud(self, name: str) -> None:
        """(Re)creates the actor of one cloud with its active space and color."""
        prepared = self._prepared[name]
        cloud = prepared.cloud

        old_actor = self._actors.pop(name, None)
        if old_actor is not None:
            self.plotter.remove_actor(old_actor)

        space = cloud.spaces[self.state.active_space[name] % len(cloud.spaces)]
        try:
            mesh = VtkUtils.records_to_polydata(prepared.records, space.feature_names)
        except ValueError as e:
            logger.error(f"Cannot draw cloud [{name}]: {e}")
            return
        if mesh.n_points == 0:
            logger.warning(f"Cloud [{name}] has no points, nothing to draw.")
            return

        self._select_subplot(cloud.viewport)
        self._actors[name] = self._add_points(mesh, prepared, self.state.active_color[name], f"cloud:{name}")

    def _add_points(self, mesh: pv.PolyData, prepared: PreparedCloud, color_idx: int, actor_name: str) -> pv.Actor:
        cloud = prepared.cloud
        options = VtkUtils.color_options(prepared.records)
        color_by = options[color_idx % len(options)]

        kwargs = dict(
            point_size=cloud.size,
            opacity=cloud.opacity,
            render_points_as_spheres=False,
            pickable=True,
            name=actor_name,
            show_scalar_bar=False,
        )
        if color_by == RGB_FEATURE:
            return self.plotter.add_mesh(mesh, scalars=RGB_COLORS_ARRAY, rgb=True, **kwargs)
        if color_by is not None:
            return self.plotter.add_mesh(mesh, scalars=color_by, cmap="viridis", **kwargs)
        return self.plotter.add_mesh(mesh, color="white", **kwargs)

    def _draw_bases(self) -> None:
        for basis in self.registry.bases:
            self._select_subplot(basis.viewport)
            arrows = VtkUtils.basis_arrows(basis.origin, (basis.u1, basis.u2, basis.u3), basis.scale)
            for i, (arrow, color) in enumerate(zip(arrows, BASIS_COLORS)):
                self.plotter.add_mesh(arrow, color=color, pickable=False, name=f"basis:{basis.name}:{i}")

    def _clear_indexed_clouds(self) -> None:
        for actor in self._indexed_actors:
            self.plotter.remove_actor(actor)
        self._indexed_actors.clear()

    def _draw_indexed_clouds(self, parent_name: str, index: int) -> None:
        """Shows the child clouds attached to the picked point (replacing the previous ones)."""
        self._clear_indexed_clouds()

        parent = self._prepared[parent_name].cloud
        for child_name, child in self.registry.indexed_children(parent, index):
            if self.registry.is_named(child):
                # Already drawn as a top-level cloud
                continue

            label = f"{parent_name}.{index}.{child_name}"
            prepared, reason = self.registry.prepare_cloud(label, child)
            if prepared is None:
                logger.warning(f"Indexed cloud [{label}] not shown: {reason}")
                continue

            mesh = VtkUtils.records_to_polydata(prepared.records, child.spaces[0].feature_names)
            if mesh.n_points == 0:
                continue
            self._select_subplot(child.viewport)
            self._indexed_actors.append(self._add_points(mesh, prepared, 0, f"indexed:{label}"))

    # ------------------------------------------------------------------------------
    # Internal: Interaction
    # ------------------------------------------------------------------------------

    def _attach_callbacks(self) -> None:
        self.plotter.add_key_event("h", self.print_help)
        self.plotter.add_key_event("i", lambda: self.identify_clouds(back=False))
        self.plotter.add_key_event("o", lambda: self.identify_clouds(back=True))
        self.plotter.add_key_event("n", self.next_space)
        self.plotter.add_key_event("m", self.next_color)
        self.plotter.enable_point_picking(
            callback=self._on_point_pick,
            use_picker=True,
            show_message=False,
            show_point=True,
            color="yellow",
            point_size=10,
        )

    def _viewport_of_renderer(self, renderer) -> Optional[int]:
        for i, candidate in enumerate(self.plotter.renderers):
            if candidate is renderer:
                return i
        return None

    def _on_point_pick(self, point: np.ndarray, picker=None) -> None:
        if point is None or len(point) < 3:
            return

        viewport = self._viewport_of_renderer(picker.GetRenderer()) if picker is not None else None
        a, b, c = (float(v) for v in point[:3])
        results = self.registry.find_picked_points(a, b, c, viewport, self.state.active_space)
        self.handle_pick_results(results)

    def handle_pick_results(self, results: list[PickResult]) -> None:
        if not results:
            logger.info("Picked point does not belong to any cloud.")
            return

        for result in results:
            values = ", ".join(f"{k}={v:g}" for k, v in result.values.items())
            logger.info(f"Picked point {result.point_index} of [{result.cloud_name}] ({values})")

        pick = results[0]
        self.state.last_pick = pick
        self._draw_indexed_clouds(pick.cloud_name, pick.point_index)
        self.plotter.render()

    def _names(self) -> list[str]:
        return list(self._prepared)

    def _identified_name(self) -> Optional[str]:
        names = self._names()
        idx = self.state.identified_cloud_idx
        return names[idx] if 0 <= idx < len(names) else None

    def identify_clouds(self, back: bool = False) -> None:
        """
        Cycle through the clouds showing one at a time. The cycle includes -1,
        meaning every cloud is shown again.
        """
        names = self._names()
        if not names:
            return

        n_states = len(names) + 1  # -1 and one per cloud
        current = self.state.identified_cloud_idx + 1
        current = (current + (-1 if back else 1)) % n_states
        self.state.identified_cloud_idx = current - 1

        identified = self._identified_name()
        for name, actor in self._actors.items():
            actor.SetVisibility(identified is None or name == identified)

        # Indexed clouds on screen belong to the parent of the last pick
        parent = self.state.last_pick.cloud_name if self.state.last_pick is not None else None
        for actor in self._indexed_actors:
            actor.SetVisibility(identified is None or parent == identified)

        self.plotter.subplot(0, 0)
        if identified is None:
            self.plotter.remove_actor(IDENTIFY_TEXT_NAME)
        else:
            self.plotter.add_text(f"Cloud: {identified}", position="upper_left", font_size=12, name=IDENTIFY_TEXT_NAME)
            logger.info(f"Identified cloud [{identified}] ({self.state.identified_cloud_idx + 1}/{len(names)})")
        self.plotter.render()

    def next_space(self) -> None:
        name = self._identified_name()
        if name is None:
            logger.warning("Identify a cloud first (key 'i') to change its space.")
            return

        cloud = self._prepared[name].cloud
        self.state.active_space[name] = (self.state.active_space[name] + 1) % len(cloud.spaces)
        logger.info(f"Cloud [{name}] now uses space [{cloud.spaces[self.state.active_space[name]].name}]")
        self._draw_cloud(name)
        self.plotter.render()

    def next_color(self) -> None:
        name = self._identified_name()
        if name is None:
            logger.warning("Identify a cloud first (key 'i') to change its color.")
            return

        options = VtkUtils.color_options(self._prepared[name].records)
        self.state.active_color[name] = (self.state.active_color[name] + 1) % len(options)
        logger.info(f"Cloud [{name}] now colored by [{options[self.state.active_color[name]] or 'uniform'}]")
        self._draw_cloud(name)
        self.plotter.render()
