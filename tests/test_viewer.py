import numpy as np
import pytest

from pointcloudvisualizer.controller.registry import CloudRegistry
from pointcloudvisualizer.model.records import PointCloud, PointNormal, PointXYZ
from pointcloudvisualizer.view.viewer import CloudViewer


class FakeActor:
    def __init__(self, name):
        self.name = name
        self.visible = True

    def SetVisibility(self, visible):
        self.visible = bool(visible)


class FakePlotter:
    """Records what the viewer draws, no window involved."""

    def __init__(self):
        self.actors = {}
        self.kwargs = {}
        self.subplots = []
        self.key_events = {}
        self.picking = None
        self.texts = []
        self.renderers = []
        self.shown = False

    def subplot(self, row, col):
        self.subplots.append((row, col))

    def add_mesh(self, mesh, **kwargs):
        actor = FakeActor(kwargs["name"])
        self.actors[actor.name] = actor
        self.kwargs[actor.name] = kwargs
        return actor

    def remove_actor(self, actor):
        name = actor if isinstance(actor, str) else actor.name
        self.actors.pop(name, None)

    def add_text(self, text, **kwargs):
        self.texts.append(text)

    def add_key_event(self, key, callback):
        self.key_events[key] = callback

    def enable_point_picking(self, callback, **kwargs):
        self.picking = callback

    def render(self):
        pass

    def show(self):
        self.shown = True


@pytest.fixture
def scene(registry):
    data = np.array([
        [0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0],
        [1.0, 1.0, 1.0, 1.0, 0.0, 0.0, 0.0],
    ])
    registry.add_cloud("normals", PointCloud.from_array(PointNormal, data), viewport=0)
    registry.add_cloud("red", PointCloud.from_array(PointXYZ, [[5.0, 5.0, 5.0]]), viewport=1).set_color(1, 0, 0)

    ring = PointCloud.from_array(PointXYZ, [[0.0, 0.0, 2.0], [0.0, 0.1, 2.0]])
    registry.get_cloud("normals").add_cloud_indexed(ring, 1, "ring", registry)
    registry.add_basis((1, 0, 0), (0, 1, 0), (0, 0, 1), (0, 0, 0), "frame")

    plotter = FakePlotter()
    viewer = CloudViewer(registry, plotter=plotter)
    viewer.show(registry.prepare_clouds_for_render())
    return viewer, plotter


def test_show_draws_clouds_bases_and_callbacks(scene):
    viewer, plotter = scene

    assert {"cloud:normals", "cloud:red"} <= set(plotter.actors)
    assert len([n for n in plotter.actors if n.startswith("basis:frame")]) == 3
    assert {"h", "i", "o", "n", "m"} <= set(plotter.key_events)
    assert plotter.picking is not None
    assert plotter.shown


def test_cloud_attributes_reach_the_plotter(scene):
    viewer, plotter = scene

    red = plotter.kwargs["cloud:red"]
    assert red["rgb"] is True
    assert red["point_size"] == 1
    assert (0, 1) in plotter.subplots


def test_pick_shows_indexed_clouds(scene):
    viewer, plotter = scene

    plotter.picking(np.array([1.0, 1.0, 1.0]))

    assert viewer.state.last_pick.cloud_name == "normals"
    assert viewer.state.last_pick.point_index == 1
    assert "indexed:normals.1.ring" in plotter.actors


def test_next_pick_replaces_indexed_clouds(scene):
    viewer, plotter = scene

    plotter.picking(np.array([1.0, 1.0, 1.0]))
    plotter.picking(np.array([0.0, 0.0, 0.0]))

    assert viewer.state.last_pick.point_index == 0
    assert not any(name.startswith("indexed:") for name in plotter.actors)


def test_pick_miss_keeps_state(scene):
    viewer, plotter = scene

    plotter.picking(np.array([9.0, 9.0, 9.0]))

    assert viewer.state.last_pick is None


def test_identify_cycles_through_clouds(scene):
    viewer, plotter = scene

    viewer.identify_clouds()
    assert viewer.state.identified_cloud_idx == 0
    assert plotter.actors["cloud:normals"].visible
    assert not plotter.actors["cloud:red"].visible

    viewer.identify_clouds()
    viewer.identify_clouds()
    assert viewer.state.identified_cloud_idx == -1
    assert plotter.actors["cloud:red"].visible

    viewer.identify_clouds(back=True)
    assert viewer.state.identified_cloud_idx == 1


def test_next_space_switches_geometry_and_picking(scene):
    viewer, plotter = scene

    viewer.identify_clouds()
    viewer.next_space()

    assert viewer.state.active_space["normals"] == 1
    plotter.picking(np.array([1.0, 0.0, 0.0]))
    assert viewer.state.last_pick.point_index == 1


def test_next_color_requires_identified_cloud(scene):
    viewer, plotter = scene

    viewer.next_color()
    assert viewer.state.active_color["normals"] == 0

    viewer.identify_clouds()
    viewer.next_color()
    assert viewer.state.active_color["normals"] == 1
    assert plotter.kwargs["cloud:normals"]["scalars"] == "y"


def test_named_children_are_not_drawn_twice(output_folder):
    registry = CloudRegistry("s", output_folder=output_folder)
    registry.add_cloud("parent", PointCloud.from_array(PointXYZ, [[0.0, 0.0, 0.0]]))
    registry.add_cloud_indexed("parent", 0, "child", PointCloud.from_array(PointXYZ, [[3.0, 3.0, 3.0]]))

    plotter = FakePlotter()
    viewer = CloudViewer(registry, plotter=plotter)
    viewer.show(registry.prepare_clouds_for_render())
    plotter.picking(np.array([0.0, 0.0, 0.0]))

    assert "cloud:child" in plotter.actors
    assert not any(name.startswith("indexed:") for name in plotter.actors)


def test_identify_hides_indexed_clouds_of_other_clouds(scene):
    viewer, plotter = scene
    plotter.picking(np.array([1.0, 1.0, 1.0]))
    ring = plotter.actors["indexed:normals.1.ring"]

    viewer.identify_clouds()
    assert viewer.state.identified_cloud_idx == 0
    assert ring.visible

    viewer.identify_clouds()
    assert not ring.visible

    viewer.identify_clouds()
    assert ring.visible
