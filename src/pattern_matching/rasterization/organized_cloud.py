"""
Organized Point Clouds and Occupancy Images

Converts an unordered point cloud into a regular 2D grid centred on the
origin. Each cell keeps the highest point that falls into it (a max-height
projection, i.e. the surface visible from above). The grid can further be
turned into a binary occupancy image for image-based comparison.

Cells carry an explicit occupancy flag, so a genuine point at the origin is
distinguishable from an empty cell.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..utils.logging import setup_logger
from ..utils.point_cloud_filters import as_point_cloud

logger = setup_logger(__name__)

OCCUPIED_VALUE = 255


class RasterizationError(ValueError):
    """Raised when a cloud cannot be converted to an occupancy image."""


@dataclass(frozen=True)
class OrganizedPointCloud:
    """
    Point cloud laid out on a fixed rows x cols grid.

    Attributes:
        points: (rows, cols, 3) array; empty cells hold (0, 0, 0)
        occupied: (rows, cols) boolean array, True where a point was stored
        resolution: Grid cells per unit length
        width: Requested grid extent along X (units)
        height: Requested grid extent along Y (units)
    """

    points: np.ndarray
    occupied: np.ndarray
    resolution: float
    width: float
    height: float

    def __post_init__(self):
        if self.points.shape[:2] != self.occupied.shape or self.points.shape[2:] != (3,):
            raise ValueError(
                f"Inconsistent organized cloud: points {self.points.shape}, occupied {self.occupied.shape}"
            )

    @property
    def rows(self) -> int:
        return int(self.occupied.shape[0])

    @property
    def cols(self) -> int:
        return int(self.occupied.shape[1])

    @property
    def size(self) -> int:
        """Number of grid cells (rows * cols)."""
        return self.rows * self.cols

    @property
    def is_organized(self) -> bool:
        return True

    @property
    def occupied_count(self) -> int:
        return int(self.occupied.sum())

    @property
    def is_empty(self) -> bool:
        return self.occupied_count == 0

    @property
    def offsets(self) -> Tuple[int, int]:
        """(offset_x, offset_y) that centre the grid on the origin."""
        return grid_offsets(self.cols, self.rows)

    def to_cloud(self) -> np.ndarray:
        """Occupied points in row-major cell order (M x 3)."""
        return self.points[self.occupied]


def _round_half_away(values: np.ndarray) -> np.ndarray:
    # Half-away-from-zero; np.round would round half to even
    values = np.asarray(values, dtype=np.float64)
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def grid_shape(resolution: float, width: float, height: float) -> Tuple[int, int]:
    """(rows, cols) of the grid for the given resolution and extents."""
    if resolution <= 0 or width <= 0 or height <= 0:
        raise ValueError(
            f"resolution, width and height must be positive "
            f"(got resolution={resolution}, width={width}, height={height})"
        )
    cols = int(_round_half_away(width * resolution))
    rows = int(_round_half_away(height * resolution))
    if cols < 1 or rows < 1:
        raise ValueError(
            f"Grid of {rows} x {cols} cells is empty for resolution={resolution}, "
            f"width={width}, height={height}"
        )
    return rows, cols


def grid_offsets(cols: int, rows: int) -> Tuple[int, int]:
    return int(_round_half_away(cols / 2.0)), int(_round_half_away(rows / 2.0))


class PatternRasterizer:
    """Max-height rasterization of point clouds and occupancy image conversion."""

    @staticmethod
    def cell_indices(
        cloud: np.ndarray,
        resolution: float,
        cols: int,
        rows: int,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Grid cell of every point: col = round(x * res) + offset_x, row = round(y * res) + offset_y.

        Indices are returned as int64 and may fall outside the grid.
        """
        points = as_point_cloud(cloud)
        offset_x, offset_y = grid_offsets(cols, rows)
        col = _round_half_away(points[:, 0] * resolution).astype(np.int64) + offset_x
        row = _round_half_away(points[:, 1] * resolution).astype(np.int64) + offset_y
        return col, row

    @classmethod
    def organize(
        cls,
        cloud: np.ndarray,
        resolution: float = 20.0,
        width: float = 100.0,
        height: float = 100.0,
    ) -> OrganizedPointCloud:
        """
        Organize an unordered cloud on a (height*resolution) x (width*resolution) grid.

        Points that map outside the grid are dropped. When several points fall
        into one cell, the point with the greatest z is kept; among equal z the
        first point in input order wins.

        Args:
            cloud: Input points (N x 3)
            resolution: Grid cells per unit length
            width: Grid extent along X (units)
            height: Grid extent along Y (units)

        Returns:
            OrganizedPointCloud

        Raises:
            ValueError: If resolution, width or height is not positive
        """
        rows, cols = grid_shape(resolution, width, height)
        points = as_point_cloud(cloud)

        grid = np.zeros((rows, cols, 3), dtype=np.float64)
        occupied = np.zeros((rows, cols), dtype=bool)

        if len(points) == 0:
            return OrganizedPointCloud(grid, occupied, float(resolution), float(width), float(height))

        col, row = cls.cell_indices(points, resolution, cols, rows)
        in_grid = (col >= 0) & (col < cols) & (row >= 0) & (row < rows)
        n_dropped = int(len(points) - in_grid.sum())

        idx = np.flatnonzero(in_grid)
        flat = row[idx] * cols + col[idx]
        z = points[idx, 2]

        # Sort by cell, then z ascending, then input order descending:
        # the last entry of each cell run is the highest, earliest point.
        order = np.lexsort((-idx, z, flat))
        flat_sorted = flat[order]
        is_last = np.ones(len(order), dtype=bool)
        is_last[:-1] = flat_sorted[:-1] != flat_sorted[1:]
        winners = idx[order[is_last]]
        winner_cells = flat_sorted[is_last]

        grid.reshape(-1, 3)[winner_cells] = points[winners]
        occupied.reshape(-1)[winner_cells] = True

        logger.debug(
            "Organized %d points into %d x %d grid: %d cells occupied, %d points outside grid.",
            len(points),
            rows,
            cols,
            len(winner_cells),
            n_dropped,
        )
        return OrganizedPointCloud(grid, occupied, float(resolution), float(width), float(height))

    @staticmethod
    def to_occupancy_image(organized: OrganizedPointCloud) -> np.ndarray:
        """
        Convert an organized cloud to a binary (rows x cols) uint8 image.

        Occupied cells are OCCUPIED_VALUE (255), empty cells 0.

        A grid with no occupied cells raises instead of returning an
        all-black image. This includes a non-empty cloud whose points all
        fall outside the grid, so callers can tell "nothing seen" apart
        from a valid image.

        Raises:
            RasterizationError: If the input is not organized or has no occupied cells
        """
        if not isinstance(organized, OrganizedPointCloud):
            logger.error("Cannot convert an unorganized point cloud to an occupancy image.")
            raise RasterizationError(
                f"Expected an OrganizedPointCloud, got {type(organized).__name__}"
            )
        if organized.is_empty:
            logger.info("Organized cloud is empty; no occupancy image produced.")
            raise RasterizationError("Cannot build an occupancy image from an empty organized cloud")

        image = np.zeros(organized.occupied.shape, dtype=np.uint8)
        image[organized.occupied] = OCCUPIED_VALUE
        return image
