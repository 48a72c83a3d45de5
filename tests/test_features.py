import numpy as np
import pytest

from pointcloudvisualizer.exceptions import FeatureLengthError, FeatureNotFoundError
from pointcloudvisualizer.model.features import FeatureStore


def test_empty_store_has_no_points():
    store = FeatureStore()
    assert store.point_count() == 0
    assert len(store) == 0
    assert store.names == []


def test_set_appends_in_insertion_order():
    store = FeatureStore()
    store.set("b", [1, 2])
    store.set("a", [3, 4])
    store.set("c", [5, 6])
    assert store.names == ["b", "a", "c"]


def test_overwrite_keeps_position_and_count():
    store = FeatureStore()
    store.set("x", [1, 1, 1])
    store.set("y", [2, 2, 2])
    store.set("x", [9, 9, 9])

    assert store.names == ["x", "y"]
    np.testing.assert_array_equal(store.get("x"), [9, 9, 9])


def test_values_are_float32_copies():
    values = [1, 2, 3]
    store = FeatureStore()
    store.set("x", values)
    values[0] = 100

    data = store.get("x")
    assert data.dtype == np.float32
    assert data[0] == 1.0
    with pytest.raises(ValueError):
        data[0] = 5.0


def test_get_missing_raises_not_found():
    store = FeatureStore()
    with pytest.raises(FeatureNotFoundError):
        store.get("missing")
    assert store.has("missing") is False


def test_point_count_is_length_of_first_feature():
    store = FeatureStore()
    store.set("first", [0.0] * 5)
    assert store.point_count() == 5


def test_revision_bumps_on_overwrite():
    store = FeatureStore()
    store.set("x", [1.0])
    assert store.revision("x") == 0
    store.set("x", [2.0])
    assert store.revision("x") == 1
    with pytest.raises(FeatureNotFoundError):
        store.revision("y")


def test_reorder_moves_given_names_first(caplog):
    store = FeatureStore()
    for name in ("x", "y", "z", "rgb"):
        store.set(name, [0.0])

    store.reorder(["rgb", "unknown", "y"])

    assert store.names == ["rgb", "y", "x", "z"]
    assert "unknown" in caplog.text


def test_set_refuses_length_other_than_point_count():
    store = FeatureStore()
    store.set("x", [0, 1, 2])
    store.set("y", [0, 1, 2])

    with pytest.raises(FeatureLengthError):
        store.set("z", [0, 1])
    with pytest.raises(FeatureLengthError):
        store.set("x", [0, 1, 2, 3])

    assert store.names == ["x", "y"]
    assert store.revision("x") == 0
    np.testing.assert_array_equal(store.get("x"), [0, 1, 2])


def test_single_feature_can_change_length():
    store = FeatureStore()
    store.set("x", [0, 1, 2])
    store.set("x", [0, 1])
    assert store.point_count() == 2
