"""
Point cloud visualizer: named clouds of per-point features, 3D spaces over
feature triples and exact point picking.

    registry = CloudRegistry("session")
    registry.add_cloud("scan", PointCloud.from_array(PointXYZ, xyz)).set_color(1, 0, 0)
    registry.render()
"""
from pointcloudvisualizer.config import KEEP_VIEWPORT, NOT_FOUND
from pointcloudvisualizer.controller.registry import CloudRegistry, PickResult, RenderReport
from pointcloudvisualizer.exceptions import FeatureLengthError, FeatureNotFoundError, UnsupportedRecordError
from pointcloudvisualizer.model.cloud import Cloud
from pointcloudvisualizer.model.features import FeatureStore
from pointcloudvisualizer.model.records import Normal, PointCloud, PointNormal, PointXYZ, PrincipalCurvatures
from pointcloudvisualizer.model.space import Space

__all__ = [
    "KEEP_VIEWPORT",
    "NOT_FOUND",
    "Cloud",
    "CloudRegistry",
    "FeatureLengthError",
    "FeatureNotFoundError",
    "FeatureStore",
    "Normal",
    "PickResult",
    "PointCloud",
    "PointNormal",
    "PointXYZ",
    "PrincipalCurvatures",
    "RenderReport",
    "Space",
    "UnsupportedRecordError",
]
