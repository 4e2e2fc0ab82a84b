"""
Reference Pattern Densification

Synthetic reference patterns are typically much sparser than sensor scans,
which leaves ICP with too few correspondences. The densifier stacks a scaled
copy of the pattern with a regular lattice of slightly offset copies.
"""

import numpy as np

from ..utils.logging import setup_logger
from ..utils.point_cloud_filters import as_point_cloud

logger = setup_logger(__name__)


class PatternDensifier:
    """Generates a denser, regularly offset copy of a reference pattern."""

    def __init__(
        self,
        scaling_factor: float = 1.0,
        increment: float = 0.01,
        offset: float = -0.02,
        iterations: int = 4,
    ):
        """
        Args:
            scaling_factor: Every coordinate is divided by this value
            increment: Step between consecutive offset copies (after scaling)
            offset: XY offset of the first copy (after scaling)
            iterations: Number of copies per axis; iterations^2 offset copies in total
        """
        if scaling_factor == 0:
            raise ValueError("scaling_factor must be non-zero")
        if iterations < 0:
            raise ValueError(f"iterations must be non-negative, got {iterations}")
        self.scaling_factor = float(scaling_factor)
        self.increment = float(increment)
        self.offset = float(offset)
        self.iterations = int(iterations)

    def densify(self, cloud: np.ndarray) -> np.ndarray:
        """
        Densify a point cloud.

        The output starts with the scaled input (x/s, y/s, z/s). For i in
        [0, iterations) and j in [0, iterations) (j varying fastest) a further
        copy (x/s + offset + i*increment, y/s + offset + j*increment, z/s)
        follows, giving (1 + iterations^2) * N points.

        Args:
            cloud: Reference points (N x 3)

        Returns:
            Densified points ((1 + iterations^2) * N x 3)
        """
        points = as_point_cloud(cloud, name="reference")
        scaled = points / self.scaling_factor
        if len(points) == 0 or self.iterations == 0:
            return scaled

        steps = self.offset + np.arange(self.iterations) * self.increment
        # (iterations^2, 2) XY shifts, j (the Y step) varying fastest
        shift_x, shift_y = np.meshgrid(steps, steps, indexing="ij")
        shifts = np.zeros((self.iterations * self.iterations, 1, 3))
        shifts[:, 0, 0] = shift_x.ravel()
        shifts[:, 0, 1] = shift_y.ravel()

        copies = (scaled[np.newaxis, :, :] + shifts).reshape(-1, 3)
        densified = np.vstack([scaled, copies])

        logger.debug(
            "Densified reference from %d to %d points (%d layers).",
            len(points),
            len(densified),
            1 + self.iterations * self.iterations,
        )
        return densified


def densify(
    cloud: np.ndarray,
    scaling_factor: float,
    increment: float,
    offset: float,
    iterations: int,
) -> np.ndarray:
    """Functional form of PatternDensifier.densify."""
    return PatternDensifier(scaling_factor, increment, offset, iterations).densify(cloud)
