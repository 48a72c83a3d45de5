"""
Input/Output Manager (PCD ascii)
Handles saving clouds to point-record files, reading them back, naming them
and cleaning old ones from the export folder.

File layout (one header line per entry, then one line per point):

    # .PCD v.7 - Point Cloud Data file format
    VERSION .7
    FIELDS x y z rgb
    SIZE 4 4 4 4
    TYPE F F F U
    COUNT 1 1 1 1
    WIDTH 3
    HEIGHT 1
    VIEWPOINT 0 0 0 1 0 0 0
    POINTS 3
    DATA ascii
    0 0 0 16711680
    ...
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from pointcloudvisualizer.config import (
    FILE_EXTENSION,
    FILE_PREFIX,
    OUTPUT_FOLDER,
    RGB_FEATURE,
    TIMESTAMP_FORMAT,
    TIMESTAMP_LENGTH,
)

if TYPE_CHECKING:
    import numpy.typing as npt
    from pointcloudvisualizer.model.cloud import Cloud

logger = logging.getLogger(__name__)

PCD_HEADER_COMMENT = "# .PCD v.7 - Point Cloud Data file format"
PCD_VERSION = ".7"
PCD_VIEWPOINT = "0 0 0 1 0 0 0"

# 9 significant digits round-trip any float32 exactly, so picks stay exact
FLOAT_FORMAT = "%.9g"
UINT_FORMAT = "%d"


@dataclass
class PointRecordData:
    """Content of a point-record file: field names and one (N,) array per field."""
    fields: list[str]
    columns: dict[str, npt.NDArray[np.float32]]

    @property
    def n_points(self) -> int:
        if not self.fields:
            return 0
        return int(self.columns[self.fields[0]].shape[0])


def create_timestamp_string(hours_back: int = 0) -> str:
    """Local time as 'YYYYMMDD.HHMMSS.mmm', optionally `hours_back` hours ago."""
    now = datetime.now() - timedelta(hours=hours_back)
    return f"{now.strftime(TIMESTAMP_FORMAT)}.{now.microsecond // 1000:03d}"


def cloud_filename(
    cloud: Cloud,
    cloud_name: str,
    session_name: str,
    folder: str | os.PathLike = OUTPUT_FOLDER
) -> Path:
    """
    visualizer.<timestamp>.<session>.<viewport>-view.<cloud>.pcd

    The timestamp comes first so files sort chronologically by name.
    """
    filename = (f"{FILE_PREFIX}{cloud.timestamp}.{session_name}."
                f"{cloud.viewport}-view.{cloud_name}{FILE_EXTENSION}")
    return Path(folder) / filename


class PcdIO:
    @staticmethod
    def save_cloud(cloud: Cloud, filepath: str | os.PathLike) -> None:
        """Write all features of a cloud, in insertion order, as an ascii point-record file."""
        fields = cloud.features.names
        n_points = cloud.n_points
        logger.debug(f"Saving {n_points} points with fields {fields} to: {filepath}")

        header = [
            PCD_HEADER_COMMENT,
            f"VERSION {PCD_VERSION}",
            "FIELDS " + " ".join(fields),
            "SIZE " + " ".join("4" for _ in fields),
            "TYPE " + " ".join("U" if name == RGB_FEATURE else "F" for name in fields),
            "COUNT " + " ".join("1" for _ in fields),
            f"WIDTH {n_points}",
            "HEIGHT 1",
            f"VIEWPOINT {PCD_VIEWPOINT}",
            f"POINTS {n_points}",
            "DATA ascii",
        ]

        with open(filepath, "w", encoding="utf-8") as f:
            f.write("\n".join(header) + "\n")
            if not fields or n_points == 0:
                return

            # float64 holds every float32 and every 24-bit packed color exactly
            data = np.column_stack([cloud.features.get(name).astype(np.float64) for name in fields])
            fmt = [UINT_FORMAT if name == RGB_FEATURE else FLOAT_FORMAT for name in fields]
            np.savetxt(f, data, fmt=fmt, delimiter=" ")

    @staticmethod
    def load(filepath: str | os.PathLike) -> PointRecordData:
        """
        Read an ascii point-record file written by `save_cloud`.

        Raises:
            ValueError: If the header is incomplete or the data is not ascii.
        """
        logger.debug(f"Loading point records from: {filepath}")
        header: dict[str, list[str]] = {}
        rows: list[str] = []

        with open(filepath, "r", encoding="utf-8") as f:
            for line in f:
                stripped = line.strip()
                if not stripped or stripped.startswith("#"):
                    continue
                key, _, rest = stripped.partition(" ")
                header[key] = rest.split()
                if key == "DATA":
                    rows = [row for row in f if row.strip()]
                    break

        if header.get("DATA") != ["ascii"]:
            msg = f"File '{filepath}' is not an ascii point-record file."
            logger.error(msg)
            raise ValueError(msg)
        if "FIELDS" not in header or "POINTS" not in header:
            msg = f"File '{filepath}' has an incomplete header."
            logger.error(msg)
            raise ValueError(msg)

        fields = header["FIELDS"]
        n_points = int(header["POINTS"][0])
        if len(rows) != n_points:
            msg = f"File '{filepath}' declares {n_points} points but contains {len(rows)}."
            logger.error(msg)
            raise ValueError(msg)

        if n_points == 0:
            columns = {name: np.empty(0, dtype=np.float32) for name in fields}
            return PointRecordData(fields=fields, columns=columns)

        table = np.loadtxt(rows, dtype=np.float64, ndmin=2)
        columns = {name: table[:, i].astype(np.float32) for i, name in enumerate(fields)}
        return PointRecordData(fields=fields, columns=columns)

    @staticmethod
    def ensure_folder(folder: str | os.PathLike) -> bool:
        """Create the export folder if needed. Returns False if it cannot be created."""
        try:
            os.makedirs(folder, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create folder '{folder}': {e}")
            return False
        return True

    @staticmethod
    def clear_saved_data(last_hours_to_keep: int, folder: str | os.PathLike = OUTPUT_FOLDER) -> list[Path]:
        """
        Delete saved clouds older than `last_hours_to_keep` hours from the export folder.

        Only 'visualizer.20YYMMDD.HHMMSS.mmm...' files are considered. The timestamp
        layout allows comparing the name prefix as a plain string.

        Returns:
            Paths of the deleted files.
        """
        folder_path = Path(folder)
        if not folder_path.exists():
            return []

        time_limit = create_timestamp_string(last_hours_to_keep)
        removed: list[Path] = []

        for path in sorted(folder_path.iterdir()):
            if not path.is_file():
                continue
            name = path.name
            if not name.startswith(FILE_PREFIX + "20"):
                continue

            file_time = name[len(FILE_PREFIX):len(FILE_PREFIX) + TIMESTAMP_LENGTH]
            if file_time < time_limit:
                try:
                    path.unlink()
                    removed.append(path)
                    logger.debug(f"Deleted old saved cloud: {path}")
                except OSError as e:
                    logger.warning(f"Could not delete saved cloud '{path}': {e}")

        logger.info(f"Cleared {len(removed)} saved clouds older than {last_hours_to_keep} h from '{folder_path}'.")
        return removed
