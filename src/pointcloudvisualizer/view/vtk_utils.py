"""
VTK and Geometry Utilities
Helper functions converting point-record data into PyVista objects.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt
import pyvista as pv

from pointcloudvisualizer.config import RGB_FEATURE
from pointcloudvisualizer.model.io import PointRecordData

logger = logging.getLogger(__name__)

RGB_COLORS_ARRAY = "rgb_colors"


class VtkUtils:
    @staticmethod
    def unpack_rgb(packed: npt.ArrayLike) -> npt.NDArray[np.uint8]:
        """
        Converts packed 24-bit colors (r << 16 | g << 8 | b) into an (N, 3) uint8 array.
        """
        values = np.asarray(packed, dtype=np.float64).reshape(-1).astype(np.uint32)
        r = (values >> 16) & 0xFF
        g = (values >> 8) & 0xFF
        b = values & 0xFF
        return np.column_stack((r, g, b)).astype(np.uint8)

    @staticmethod
    def records_to_polydata(
        records: PointRecordData,
        space: Sequence[str],
    ) -> pv.PolyData:
        """
        Build a vertex-only PolyData whose points are the three `space` fields and
        whose point data holds every field of the records.

        Args:
            records: Content of a point-record file.
            space: Names of the three fields used as X, Y, Z.

        Raises:
            ValueError: If one of the space fields is missing from the records.
        """
        missing = [name for name in space if name not in records.columns]
        if len(space) != 3 or missing:
            raise ValueError(f"Space {tuple(space)} cannot be built from fields {records.fields}.")

        # Keep float32: picked coordinates are then bit-identical to the stored values
        points = np.column_stack([records.columns[name] for name in space]).astype(np.float32)
        if points.shape[0] == 0:
            return pv.PolyData()

        pd = pv.PolyData(points)
        for name in records.fields:
            pd.point_data[name] = records.columns[name]

        if RGB_FEATURE in records.columns:
            pd.point_data[RGB_COLORS_ARRAY] = VtkUtils.unpack_rgb(records.columns[RGB_FEATURE])

        return pd

    @staticmethod
    def color_options(records: PointRecordData) -> list[Optional[str]]:
        """
        Available color handlers: the packed color first (if any), then every other
        field as scalars, then None (plain uniform color).
        """
        options: list[Optional[str]] = []
        if RGB_FEATURE in records.columns:
            options.append(RGB_FEATURE)
        options.extend(name for name in records.fields if name != RGB_FEATURE)
        options.append(None)
        return options

    @staticmethod
    def basis_arrows(
        origin: Sequence[float],
        vectors: Sequence[Sequence[float]],
        scale: float = 1.0,
    ) -> list[pv.PolyData]:
        """One arrow mesh per vector, starting at `origin`. Zero vectors are skipped."""
        arrows: list[pv.PolyData] = []
        for v in vectors:
            direction = np.asarray(v, dtype=np.float64)
            length = float(np.linalg.norm(direction)) * scale
            if length <= 0.0:
                logger.warning(f"Skipping zero-length basis vector {tuple(direction)}.")
                continue
            arrows.append(pv.Arrow(start=origin, direction=direction, scale=length))
        return arrows
