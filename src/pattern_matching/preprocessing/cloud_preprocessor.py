"""
Scan Preprocessing

Crops a raw scan to the volume of interest, removes statistical outliers
and optionally demeans it before registration. All operations are pure:
they return new arrays and never modify their input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..utils.config import CropConfig, PatternMatchingParameters
from ..utils.logging import setup_logger
from ..utils.point_cloud_filters import as_point_cloud, create_box_mask, get_filter_statistics

logger = setup_logger(__name__)


@dataclass(frozen=True)
class PreprocessedScan:
    """
    Result of the preprocessing chain.

    Attributes:
        points: Preprocessed (N x 3) points
        centroid: Centroid subtracted from the points, or None if not demeaned
        input_count: Number of points in the raw scan
    """

    points: np.ndarray
    centroid: Optional[np.ndarray] = None
    input_count: int = 0


class CloudPreprocessor:
    """Box cropping, statistical outlier removal and demeaning of point clouds."""

    @staticmethod
    def crop(
        cloud: np.ndarray,
        min_x: float,
        max_x: float,
        min_y: float,
        max_y: float,
        min_z: float,
        max_z: float,
    ) -> np.ndarray:
        """
        Keep only the points inside a closed axis-aligned box.

        Bounds are inclusive and the source order of retained points is preserved,
        so cropping twice with the same box is a no-op.

        Args:
            cloud: Input points (N x 3)
            min_x, max_x: Horizontal X bounds
            min_y, max_y: Horizontal Y bounds
            min_z, max_z: Vertical bounds

        Returns:
            Cropped points (M x 3), M <= N

        Raises:
            ValueError: If a lower bound exceeds its upper bound
        """
        points = as_point_cloud(cloud)
        min_bound = np.array([min_x, min_y, min_z], dtype=np.float64)
        max_bound = np.array([max_x, max_y, max_z], dtype=np.float64)
        if np.any(min_bound > max_bound):
            raise ValueError(
                f"Invalid crop box: min {min_bound.tolist()} exceeds max {max_bound.tolist()}"
            )

        if len(points) == 0:
            return points.copy()

        mask = create_box_mask(points, min_bound, max_bound)
        cropped = points[mask]

        stats = get_filter_statistics(len(points), len(cropped), "box filter")
        logger.debug(
            f"Crop kept {stats['filtered_points']} of {stats['total_points']} points "
            f"({stats['percentage']:.1f}%)"
        )
        return cropped

    @staticmethod
    def remove_outliers(
        cloud: np.ndarray,
        neighbor_count: int,
        stddev_multiplier: float,
    ) -> np.ndarray:
        """
        Statistical outlier removal.

        For each point, the mean distance to its `neighbor_count` nearest
        neighbours (the point itself excluded) is computed. Points whose mean
        distance exceeds `global_mean + stddev_multiplier * global_stddev` are
        discarded.

        Clouds with no more points than `neighbor_count` cannot provide a full
        neighbourhood and are passed through unchanged, as is any cloud when
        `neighbor_count < 1` (filter disabled).

        Args:
            cloud: Input points (N x 3)
            neighbor_count: Number of nearest neighbours per point
            stddev_multiplier: Standard deviation multiplier for the threshold

        Returns:
            Filtered points (M x 3) in source order

        Raises:
            ValueError: If stddev_multiplier is negative
        """
        points = as_point_cloud(cloud)
        if stddev_multiplier < 0:
            raise ValueError(f"stddev_multiplier must be non-negative, got {stddev_multiplier}")

        if neighbor_count < 1:
            logger.debug("Outlier filter disabled (neighbor_count=%d).", neighbor_count)
            return points.copy()
        if len(points) <= neighbor_count:
            logger.debug(
                "Outlier filter skipped: %d points cannot provide %d neighbours each.",
                len(points),
                neighbor_count,
            )
            return points.copy()

        # Query k + 1 neighbours; the first is the point itself at distance 0
        nbrs = NearestNeighbors(n_neighbors=neighbor_count + 1, algorithm="kd_tree").fit(points)
        distances, _ = nbrs.kneighbors(points)
        mean_distances = distances[:, 1:].mean(axis=1)

        global_mean = float(np.mean(mean_distances))
        global_std = float(np.std(mean_distances, ddof=1))
        threshold = global_mean + stddev_multiplier * global_std

        mask = mean_distances <= threshold
        filtered = points[mask]

        stats = get_filter_statistics(len(points), len(filtered), "statistical outlier removal")
        logger.debug(
            f"Outlier removal (k={neighbor_count}, std_mul={stddev_multiplier}) removed "
            f"{stats['removed_points']} of {stats['total_points']} points; threshold={threshold:.6f}"
        )
        return filtered

    @staticmethod
    def demean(cloud: np.ndarray, centroid: np.ndarray) -> np.ndarray:
        """Subtract `centroid` from every point. Empty input is returned unchanged."""
        points = as_point_cloud(cloud)
        if len(points) == 0:
            return points.copy()
        centroid = np.asarray(centroid, dtype=np.float64).reshape(-1)[:3]
        return points - centroid

    @staticmethod
    def compute_centroid(cloud: np.ndarray) -> np.ndarray:
        """
        Compute the centroid of a point cloud.

        Raises:
            ValueError: If the cloud is empty
        """
        points = as_point_cloud(cloud)
        if len(points) == 0:
            raise ValueError("Cannot compute centroid from empty point cloud")
        return points.mean(axis=0)

    @classmethod
    def preprocess(
        cls,
        cloud: np.ndarray,
        params: PatternMatchingParameters,
        crop: CropConfig,
        *,
        demean: bool = False,
    ) -> PreprocessedScan:
        """
        Run crop -> outlier removal -> optional demean with configured values.

        An empty result at any step is not an error; the remaining steps are
        skipped and an empty scan is returned.

        Args:
            cloud: Raw scan (N x 3)
            params: Hot parameters (crop heights, outlier filter)
            crop: Horizontal crop bounds
            demean: If True, subtract the centroid of the filtered scan

        Returns:
            PreprocessedScan with the filtered points and the centroid used
        """
        points = as_point_cloud(cloud, name="scan")
        input_count = len(points)

        cropped = cls.crop(
            points,
            crop.min_x,
            crop.max_x,
            crop.min_y,
            crop.max_y,
            params.min_crop_height,
            params.max_crop_height,
        )
        if len(cropped) == 0:
            logger.info("Scan with %d points is empty after cropping.", input_count)
            return PreprocessedScan(points=cropped, centroid=None, input_count=input_count)

        filtered = cls.remove_outliers(
            cropped,
            params.outlier_filter_mean,
            params.outlier_filter_stddev,
        )

        centroid = None
        if demean and len(filtered) > 0:
            centroid = cls.compute_centroid(filtered)
            filtered = cls.demean(filtered, centroid)

        logger.debug(
            "Preprocessed scan: %d -> %d (cropped) -> %d (filtered) points.",
            input_count,
            len(cropped),
            len(filtered),
        )
        return PreprocessedScan(points=filtered, centroid=centroid, input_count=input_count)
