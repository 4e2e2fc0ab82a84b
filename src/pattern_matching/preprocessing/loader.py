"""
Point Cloud Data Loader

This module handles loading and initial validation of reference patterns and
recorded scans. Supported formats:
- PLY meshes/clouds (vertex element) via plyfile
- LAS/LAZ via laspy
- NumPy .npy arrays
- Whitespace or comma separated XYZ text (.xyz, .txt, .csv)

A reference pattern that cannot be loaded is fatal for the application;
the loader therefore raises instead of returning an empty cloud.
"""

from pathlib import Path
from typing import Union

import laspy
from laspy.errors import LaspyException
import numpy as np
from plyfile import PlyData, PlyParseError

from ..utils.logging import setup_logger

logger = setup_logger(__name__)

SUPPORTED_SUFFIXES = ('.ply', '.las', '.laz', '.npy', '.xyz', '.txt', '.csv')


class PointCloudLoader:
    """
    A class for loading XYZ point data from files.

    Features:
    - Format dispatch on file suffix
    - Validation of shape, finiteness and non-emptiness
    - Basic metadata (point count, bounds, source format)
    """

    def __init__(self, *, allow_empty: bool = False):
        """
        Args:
            allow_empty: If False (default), a file without points is rejected
        """
        self.allow_empty = allow_empty

    def load(self, file_path: Union[str, Path]) -> dict:
        """
        Load a point cloud file and return its points and metadata.

        Args:
            file_path: Path to the point cloud file

        Returns:
            dict with 'points' (N x 3 float64) and 'metadata'

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the format is unsupported, the content is malformed,
                or the file holds no points while allow_empty is False
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        suffix = file_path.suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise ValueError(f"Unsupported file format: {file_path.suffix}")

        logger.info(f"Loading point cloud data from {file_path}")

        try:
            if suffix == '.ply':
                points = self._read_ply(file_path)
            elif suffix in ('.las', '.laz'):
                points = self._read_las(file_path)
            elif suffix == '.npy':
                points = np.load(file_path, allow_pickle=False)
            else:
                delimiter = ',' if suffix == '.csv' else None
                points = np.loadtxt(file_path, delimiter=delimiter, usecols=(0, 1, 2), ndmin=2)
        except (OSError, ValueError, KeyError, PlyParseError, LaspyException) as e:
            logger.error(f"Error loading point cloud data from {file_path}: {e}")
            raise ValueError(f"Could not read point cloud from {file_path}: {e}") from e

        points = self._validate(np.asarray(points, dtype=np.float64), file_path)

        metadata = self.get_metadata(points)
        metadata['file_path'] = str(file_path)
        metadata['format'] = suffix.lstrip('.')

        logger.info(f"Loaded {metadata['point_count']} points from {file_path.name}")
        return {
            'points': points,
            'metadata': metadata,
        }

    def _validate(self, points: np.ndarray, file_path: Path) -> np.ndarray:
        if points.size == 0:
            if not self.allow_empty:
                raise ValueError(f"No points found in file: {file_path}")
            return np.empty((0, 3), dtype=np.float64)

        if points.ndim != 2 or points.shape[1] < 3:
            raise ValueError(f"Expected Nx3 coordinates in {file_path}, got shape {points.shape}")
        points = np.ascontiguousarray(points[:, :3])

        if not np.isfinite(points).all():
            raise ValueError(f"Invalid (non-finite) coordinates in file: {file_path}")
        return points

    @staticmethod
    def _read_ply(file_path: Path) -> np.ndarray:
        ply = PlyData.read(str(file_path))
        vertex = ply['vertex']
        return np.column_stack([
            np.asarray(vertex['x'], dtype=np.float64),
            np.asarray(vertex['y'], dtype=np.float64),
            np.asarray(vertex['z'], dtype=np.float64),
        ])

    @staticmethod
    def _read_las(file_path: Path) -> np.ndarray:
        las = laspy.read(file_path)
        return np.column_stack([
            np.array(las.x, dtype=np.float64),
            np.array(las.y, dtype=np.float64),
            np.array(las.z, dtype=np.float64),
        ])

    @staticmethod
    def get_metadata(points: np.ndarray) -> dict:
        """Point count and axis-aligned bounds of a point array."""
        if len(points) == 0:
            return {'point_count': 0, 'bounds': None}
        mins = points.min(axis=0)
        maxs = points.max(axis=0)
        return {
            'point_count': int(len(points)),
            'bounds': {
                'min_x': float(mins[0]), 'max_x': float(maxs[0]),
                'min_y': float(mins[1]), 'max_y': float(maxs[1]),
                'min_z': float(mins[2]), 'max_z': float(maxs[2]),
            },
        }


def load_point_cloud(file_path: Union[str, Path], *, allow_empty: bool = False) -> np.ndarray:
    """Load only the (N x 3) points of a file. See PointCloudLoader.load."""
    return PointCloudLoader(allow_empty=allow_empty).load(file_path)['points']
