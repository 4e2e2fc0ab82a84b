"""
Export utilities for pattern matching inputs and results.

Provides functions to write:
- Point clouds to PLY (plyfile) and LAS/LAZ (laspy)
- Registration transforms to plain text
"""

from pathlib import Path
from typing import Union

import laspy
import numpy as np
from plyfile import PlyData, PlyElement

from .logging import setup_logger

logger = setup_logger(__name__)


def _check_points(points: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64)
    if points.size == 0:
        return np.empty((0, 3), dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"points must be (N, 3), got {points.shape}")
    return points


def export_points_to_ply(
    points: np.ndarray,
    output_path: Union[str, Path],
    *,
    text: bool = False,
) -> str:
    """
    Export points to a PLY file with a double precision vertex element.

    Args:
        points: (N, 3) array of point coordinates
        output_path: Path for the output file
        text: Write ASCII PLY instead of binary

    Returns:
        Path to created file
    """
    points = _check_points(points)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    vertex = np.empty(len(points), dtype=[('x', 'f8'), ('y', 'f8'), ('z', 'f8')])
    vertex['x'] = points[:, 0]
    vertex['y'] = points[:, 1]
    vertex['z'] = points[:, 2]

    PlyData([PlyElement.describe(vertex, 'vertex')], text=text).write(str(output_path))
    logger.info(f"Exported {len(points):,} points to {output_path}")
    return str(output_path)


def export_points_to_laz(
    points: np.ndarray,
    output_path: Union[str, Path],
    *,
    scale: float = 1e-4,
) -> str:
    """
    Export points to a LAS/LAZ file (extension determines format).

    Coordinates are stored as scaled integers, so `scale` bounds the
    round-trip precision.

    Args:
        points: (N, 3) array of point coordinates
        output_path: Path for output file
        scale: Coordinate quantisation step

    Returns:
        Path to created file
    """
    points = _check_points(points)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    header = laspy.LasHeader(point_format=3, version="1.2")
    header.scales = np.array([scale, scale, scale])
    header.offsets = points.min(axis=0) if len(points) else np.zeros(3)

    las = laspy.LasData(header)
    las.x = points[:, 0]
    las.y = points[:, 1]
    las.z = points[:, 2]

    las.write(str(output_path))
    logger.info(f"Exported {len(points):,} points to {output_path}")
    return str(output_path)


def save_transform_matrix(transform: np.ndarray, output_file: Union[str, Path]) -> None:
    """Save a transformation matrix to a text file.

    Args:
        transform: 4x4 transformation matrix
        output_file: Path to output file
    """
    transform = np.asarray(transform, dtype=np.float64)
    if transform.shape != (4, 4):
        raise ValueError(f"Transform must be 4x4 matrix, got {transform.shape}")
    np.savetxt(output_file, transform, fmt='%.18e', header='4x4 transformation matrix')
    logger.info(f"Saved transformation matrix to {output_file}")


def load_transform_matrix(input_file: Union[str, Path]) -> np.ndarray:
    """Load a transformation matrix from a text file.

    Args:
        input_file: Path to input file

    Returns:
        4x4 transformation matrix
    """
    transform = np.loadtxt(input_file)
    if transform.shape != (4, 4):
        raise ValueError(f"Expected 4x4 matrix, got shape {transform.shape}")
    logger.info(f"Loaded transformation matrix from {input_file}")
    return transform
