"""
Point Cloud Filtering Utilities

Shared utilities for validating point arrays and building filter masks.
These functions are used by preprocessing, registration and the pipeline.
"""

from typing import Optional

import numpy as np


def as_point_cloud(points, *, name: str = "cloud") -> np.ndarray:
    """Validate and convert input to an (N, 3) float64 array.

    Empty inputs of any 1D/2D shape are normalised to shape (0, 3).

    Args:
        points: Array-like of XYZ coordinates
        name: Name used in error messages

    Returns:
        (N, 3) float64 array

    Raises:
        ValueError: If the input cannot be interpreted as Nx3 coordinates

    Examples:
        >>> as_point_cloud([[1, 2, 3]]).dtype
        dtype('float64')
        >>> as_point_cloud([]).shape
        (0, 3)
    """
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return np.empty((0, 3), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"Expected Nx3 array for {name}, got shape {arr.shape}")
    return arr


def create_box_mask(
    points: np.ndarray,
    min_bound: np.ndarray,
    max_bound: np.ndarray,
) -> np.ndarray:
    """Create a boolean mask of points inside a closed axis-aligned box.

    Bounds are inclusive on every axis.

    Args:
        points: Nx3 array of point coordinates [X, Y, Z]
        min_bound: (3,) lower corner
        max_bound: (3,) upper corner

    Returns:
        Boolean array indicating which points lie inside the box (True = keep)

    Examples:
        >>> pts = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0], [2.0, 0.0, 0.0]])
        >>> create_box_mask(pts, np.zeros(3), np.ones(3))
        array([ True,  True, False])
    """
    if len(points) == 0:
        return np.zeros(0, dtype=bool)
    return np.all((points >= min_bound) & (points <= max_bound), axis=1)


def get_filter_statistics(
    total_points: int,
    filtered_points: int,
    filter_description: Optional[str] = None,
) -> dict:
    """Generate statistics about point filtering results.

    Useful for logging and validation of filtering operations.

    Args:
        total_points: Total number of points before filtering
        filtered_points: Number of points after filtering
        filter_description: Human readable name of the applied filter

    Returns:
        Dictionary with counts, kept percentage and filter description
    """
    percentage = (filtered_points / total_points * 100.0) if total_points > 0 else 0.0

    return {
        "total_points": total_points,
        "filtered_points": filtered_points,
        "removed_points": total_points - filtered_points,
        "percentage": percentage,
        "filter_description": filter_description or "no filter",
    }
