"""
Demo session: run with `python -m pointcloudvisualizer`.

Builds a sphere with its normals in viewport 0 (press n on it to switch to
normal space) and labels its hemispheres. The northern hemisphere alone goes
to viewport 1 in a flat color. A small ring is attached to the north pole and
shown when that point is picked.
"""
import logging

import numpy as np

from pointcloudvisualizer.config import DEFAULT_CLEANUP_HOURS
from pointcloudvisualizer.controller.registry import CloudRegistry
from pointcloudvisualizer.logging_config import setup_logging
from pointcloudvisualizer.model.records import PointCloud, PointNormal, PointXYZ


def sphere(n_points: int, radius: float = 1.0, seed: int = 0) -> np.ndarray:
    """(N, 7) array of x, y, z, normal_x, normal_y, normal_z, curvature."""
    rng = np.random.default_rng(seed)
    normals = rng.normal(size=(n_points, 3))
    normals /= np.linalg.norm(normals, axis=1, keepdims=True)
    # Point 0 is the north pole
    normals[0] = (0.0, 0.0, 1.0)
    points = normals * radius
    curvature = np.full((n_points, 1), 1.0 / radius)
    return np.hstack((points, normals, curvature))


def main() -> None:
    logger = setup_logging(level=logging.INFO)

    registry = CloudRegistry("demo", n_rows=1, n_cols=2, logger=logger)
    registry.clear_saved_data(DEFAULT_CLEANUP_HOURS)

    data = sphere(2000)
    cloud = PointCloud.from_array(PointNormal, data)

    registry.add_cloud("sphere", cloud, viewport=0).set_size(3)
    north = np.flatnonzero(data[:, 2] >= 0.0)
    south = np.flatnonzero(data[:, 2] < 0.0)
    registry.add_labels_feature("sphere", [north.tolist(), south.tolist()], "hemisphere")

    registry.add_cloud("north_only", cloud, indices=north.tolist(), viewport=1)
    registry.get_cloud("north_only").set_color(1.0, 0.5, 0.0).set_opacity(0.8)

    # Small ring attached to the north pole
    angles = np.linspace(0.0, 2.0 * np.pi, 32, endpoint=False)
    ring = np.column_stack((0.2 * np.cos(angles), 0.2 * np.sin(angles), np.full_like(angles, 1.2)))
    registry.get_cloud("sphere").add_cloud_indexed(
        PointCloud.from_array(PointXYZ, ring), 0, "pole_ring", registry, viewport=0
    ).set_color(0.0, 1.0, 0.0).set_size(5)

    registry.add_basis((1, 0, 0), (0, 1, 0), (0, 0, 1), (0, 0, 0), "origin", scale=0.5, viewport=0)

    registry.render()


if __name__ == "__main__":
    main()
