import re

import numpy as np
import pytest

from pointcloudvisualizer.model.cloud import Cloud
from pointcloudvisualizer.model.io import PcdIO, cloud_filename, create_timestamp_string


def read_lines(path):
    with open(path, encoding="utf-8") as f:
        return f.read().splitlines()


@pytest.fixture
def colored_cloud(diagonal_cloud):
    diagonal_cloud.add_feature("rgb", [16711680, 65280, 255])
    return diagonal_cloud


def test_header_layout(colored_cloud, tmp_path):
    path = tmp_path / "cloud.pcd"
    PcdIO.save_cloud(colored_cloud, path)

    assert read_lines(path)[:11] == [
        "# .PCD v.7 - Point Cloud Data file format",
        "VERSION .7",
        "FIELDS x y z rgb",
        "SIZE 4 4 4 4",
        "TYPE F F F U",
        "COUNT 1 1 1 1",
        "WIDTH 3",
        "HEIGHT 1",
        "VIEWPOINT 0 0 0 1 0 0 0",
        "POINTS 3",
        "DATA ascii",
    ]


def test_data_lines_print_rgb_as_unsigned(colored_cloud, tmp_path):
    path = tmp_path / "cloud.pcd"
    PcdIO.save_cloud(colored_cloud, path)

    assert read_lines(path)[11:] == [
        "0 0 0 16711680",
        "1 1 1 65280",
        "2 2 2 255",
    ]


def test_float32_values_survive_the_file(tmp_path):
    values = np.array([0.1, 1.0 / 3.0, 123456.789, -2.5e-7], dtype=np.float32)
    cloud = Cloud().add_feature("v", values)
    path = tmp_path / "cloud.pcd"

    PcdIO.save_cloud(cloud, path)
    records = PcdIO.load(path)

    assert records.fields == ["v"]
    np.testing.assert_array_equal(records.columns["v"], values)


def test_load_round_trips_fields_and_count(colored_cloud, tmp_path):
    path = tmp_path / "cloud.pcd"
    PcdIO.save_cloud(colored_cloud, path)

    records = PcdIO.load(path)

    assert records.fields == ["x", "y", "z", "rgb"]
    assert records.n_points == 3
    np.testing.assert_array_equal(records.columns["rgb"], [16711680, 65280, 255])


def test_empty_cloud(tmp_path):
    cloud = Cloud().add_feature("x", [])
    path = tmp_path / "empty.pcd"

    PcdIO.save_cloud(cloud, path)
    records = PcdIO.load(path)

    assert "POINTS 0" in read_lines(path)
    assert records.n_points == 0


def test_load_rejects_binary_data(tmp_path):
    path = tmp_path / "binary.pcd"
    path.write_text("VERSION .7\nFIELDS x\nPOINTS 1\nDATA binary\n")

    with pytest.raises(ValueError):
        PcdIO.load(path)


def test_load_rejects_truncated_data(tmp_path):
    path = tmp_path / "short.pcd"
    path.write_text("VERSION .7\nFIELDS x\nPOINTS 2\nDATA ascii\n1\n")

    with pytest.raises(ValueError):
        PcdIO.load(path)


def test_timestamp_layout():
    assert re.fullmatch(r"20\d{6}\.\d{6}\.\d{3}", create_timestamp_string())
    assert create_timestamp_string(hours_back=2) < create_timestamp_string()


def test_cloud_filename(tmp_path):
    cloud = Cloud().set_viewport(2)
    cloud.timestamp = "20240102.030405.006"

    path = cloud_filename(cloud, "scan", "session", tmp_path)

    assert path == tmp_path / "visualizer.20240102.030405.006.session.2-view.scan.pcd"
