import logging

import numpy as np
import pytest

from pointcloudvisualizer.controller.registry import CloudRegistry
from pointcloudvisualizer.model.cloud import Cloud
from pointcloudvisualizer.model.records import PointCloud, PointNormal, PointXYZ


@pytest.fixture
def output_folder(tmp_path):
    return tmp_path / "VisualizerData"


@pytest.fixture
def registry(output_folder):
    return CloudRegistry("session", n_rows=1, n_cols=2, output_folder=output_folder)


@pytest.fixture
def diagonal_cloud():
    """3 points on the diagonal: (0,0,0), (1,1,1), (2,2,2)."""
    cloud = Cloud()
    cloud.add_feature("x", [0, 1, 2])
    cloud.add_feature("y", [0, 1, 2])
    cloud.add_feature("z", [0, 1, 2])
    return cloud


@pytest.fixture
def xyz_points():
    return PointCloud.from_array(PointXYZ, [[0.0, 0.0, 0.0], [1.0, 2.0, 3.0], [-1.0, 0.5, 0.25], [4.0, 4.0, 4.0]])


@pytest.fixture
def point_normals():
    data = np.array([
        [0.0, 0.0, 1.0, 0.0, 0.0, 1.0, 0.1],
        [1.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.2],
    ])
    return PointCloud.from_array(PointNormal, data)


@pytest.fixture
def errors(caplog):
    """Returns a callable listing the error messages logged so far."""
    caplog.set_level(logging.WARNING)

    def _errors():
        return [r.getMessage() for r in caplog.records if r.levelno >= logging.ERROR]

    return _errors
