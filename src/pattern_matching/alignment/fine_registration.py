"""
ICP Registration Implementation

This module implements the Iterative Closest Point (ICP) algorithm that
aligns a preprocessed scan (source) to the densified reference pattern
(target). A failure to converge is reported in the result, never raised:
an absent pattern is an expected outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import time

import numpy as np
from sklearn.neighbors import NearestNeighbors

from .coarse_registration import CoarseRegistration
from ..utils.config import RegistrationConfig
from ..utils.logging import setup_logger
from ..utils.point_cloud_filters import as_point_cloud

logger = setup_logger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    """
    Result of a registration run.

    Attributes:
        transform: 4x4 rigid transform mapping source points onto the target
        converged: Whether ICP terminated on a convergence criterion
        fitness_score: Mean squared nearest-neighbour distance after alignment
            (inf when no correspondence was available)
        aligned_cloud: Source points with `transform` applied
        n_iterations: Number of ICP iterations performed
    """

    transform: np.ndarray
    converged: bool
    fitness_score: float
    aligned_cloud: np.ndarray
    n_iterations: int = 0

    @property
    def translation(self) -> np.ndarray:
        return self.transform[:3, 3]

    @property
    def rotation(self) -> np.ndarray:
        return self.transform[:3, :3]


class RegistrationEngine:
    """
    Point-to-point ICP on a k-d tree.

    Each iteration pairs every scan point with its nearest reference point,
    solves the rigid transform for the pairs in range and accumulates it.
    Iteration ends on a stalled mean squared pair distance or a negligible
    step; otherwise after `max_iterations`.

    The engine holds only parameters, so one instance can serve concurrent
    `align` calls.
    """

    def __init__(
        self,
        max_iterations: int = 50,
        tolerance: float = 1e-8,
        max_correspondence_distance: Optional[float] = None,
        convergence_translation_epsilon: float = 1e-6,
        convergence_rotation_epsilon_deg: float = 0.01,
        initial_alignment: str = "centroid",
        fail_after_max_iterations: bool = False,
    ):
        """
        Initialize ICP parameters.

        Args:
            max_iterations: Maximum number of ICP iterations.
            tolerance: Convergence tolerance on change in mean squared error.
            max_correspondence_distance: Maximum distance for point correspondences
                (None = unlimited).
            convergence_translation_epsilon: Minimum translation step below
                which the algorithm is considered converged.
            convergence_rotation_epsilon_deg: Minimum rotation step (degrees) below
                which the algorithm is considered converged.
            initial_alignment: Coarse method used to initialize ICP
                ('centroid', 'pca' or 'none').
            fail_after_max_iterations: If True, exhausting the iteration budget
                is reported as non-convergence.
        """
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.max_correspondence_distance = (
            float("inf") if max_correspondence_distance is None else float(max_correspondence_distance)
        )
        self.convergence_translation_epsilon = convergence_translation_epsilon
        self.convergence_rotation_epsilon_rad = np.deg2rad(convergence_rotation_epsilon_deg)
        self.coarse = CoarseRegistration(method=initial_alignment)
        self.fail_after_max_iterations = fail_after_max_iterations

    @classmethod
    def from_config(cls, config: RegistrationConfig) -> "RegistrationEngine":
        return cls(
            max_iterations=config.max_iterations,
            tolerance=config.tolerance,
            max_correspondence_distance=config.max_correspondence_distance,
            convergence_translation_epsilon=config.convergence_translation_epsilon,
            convergence_rotation_epsilon_deg=config.convergence_rotation_epsilon_deg,
            initial_alignment=config.initial_alignment,
            fail_after_max_iterations=config.fail_after_max_iterations,
        )

    def align(
        self,
        source: np.ndarray,
        target: np.ndarray,
        initial_transform: Optional[np.ndarray] = None,
    ) -> RegistrationResult:
        """
        Align source point cloud to target using ICP.

        Args:
            source: Source point cloud (N x 3), e.g. the preprocessed scan.
            target: Target point cloud (M x 3), e.g. the densified reference.
            initial_transform: Initial transformation matrix (4 x 4). If None,
                the configured coarse alignment is used.

        Returns:
            RegistrationResult. An empty source or target yields a
            non-converged result with identity transform, infinite fitness
            and an empty aligned cloud.
        """
        source = as_point_cloud(source, name="source")
        target = as_point_cloud(target, name="target")
        n_src = len(source)
        n_tgt = len(target)

        if n_src == 0 or n_tgt == 0:
            logger.warning(
                "ICP called with empty source or target (source=%d, target=%d); "
                "reporting non-convergence.",
                n_src,
                n_tgt,
            )
            return RegistrationResult(
                transform=np.eye(4),
                converged=False,
                fitness_score=float("inf"),
                aligned_cloud=np.empty((0, 3), dtype=np.float64),
                n_iterations=0,
            )

        logger.debug(
            "Starting ICP alignment with %d source points and %d target points.",
            n_src,
            n_tgt,
        )

        if initial_transform is None:
            transform = self.coarse.compute_initial_transform(source, target)
        else:
            transform = np.asarray(initial_transform, dtype=np.float64).copy()
            if transform.shape != (4, 4):
                raise ValueError(f"initial_transform must be 4x4, got {transform.shape}")

        current_source = self.apply_transformation(source, transform)
        previous_error = float("inf")

        # One k-d tree per call; the target does not move
        nbrs = NearestNeighbors(n_neighbors=1, algorithm="kd_tree").fit(target)

        icp_start = time.time()
        n_iterations = 0
        converged = False

        for iteration in range(self.max_iterations):
            n_iterations = iteration + 1
            matches, distances = self.find_correspondences(current_source, nbrs)

            in_range = distances <= self.max_correspondence_distance
            if np.count_nonzero(in_range) < 3:
                logger.warning(
                    "Only %d correspondences within range at iteration %d; stopping ICP.",
                    int(np.count_nonzero(in_range)),
                    n_iterations,
                )
                break

            step = self.estimate_transformation(current_source[in_range], target[matches[in_range]])
            transform = step @ transform
            # Re-apply the accumulated transform to the input points so rounding does not pile up
            current_source = self.apply_transformation(source, transform)

            current_error = float(np.mean(distances[in_range] ** 2))
            trans_step, rot_step = self._step_size(step)
            logger.debug(
                "Iteration %d: MSE=%.6e, |dt|=%.6e, dtheta=%.6e rad",
                n_iterations,
                current_error,
                trans_step,
                rot_step,
            )

            if abs(previous_error - current_error) < self.tolerance:
                converged = True
                logger.debug("ICP converged at iteration %d: MSE change below %.3e.", n_iterations, self.tolerance)
                break
            if (
                trans_step < self.convergence_translation_epsilon
                and rot_step < self.convergence_rotation_epsilon_rad
            ):
                converged = True
                logger.debug("ICP converged at iteration %d: step below motion thresholds.", n_iterations)
                break

            previous_error = current_error
        else:
            converged = not self.fail_after_max_iterations
            logger.info(
                "ICP reached the iteration limit (%d); reported as %s.",
                self.max_iterations,
                "converged" if converged else "not converged",
            )

        fitness = self.compute_fitness_score(current_source, nbrs)

        logger.info(
            "ICP finished in %.4f s (%d iterations, converged=%s). Fitness score: %.6e",
            time.time() - icp_start,
            n_iterations,
            converged,
            fitness,
        )

        return RegistrationResult(
            transform=transform,
            converged=converged,
            fitness_score=fitness,
            aligned_cloud=current_source,
            n_iterations=n_iterations,
        )

    @staticmethod
    def _step_size(step: np.ndarray) -> Tuple[float, float]:
        """Translation length and rotation angle (radians) of a 4x4 step."""
        cos_theta = np.clip((np.trace(step[:3, :3]) - 1.0) * 0.5, -1.0, 1.0)
        return float(np.linalg.norm(step[:3, 3])), float(np.arccos(cos_theta))

    @staticmethod
    def find_correspondences(
        source: np.ndarray,
        nbrs: NearestNeighbors,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Nearest target point for every source point.

        Args:
            source: Source point cloud (N x 3).
            nbrs: NearestNeighbors (k=1) fitted on the target.

        Returns:
            (indices into the target, Euclidean distances), both of length N.
        """
        distances, indices = nbrs.kneighbors(source)
        return indices[:, 0], distances[:, 0]

    @staticmethod
    def estimate_transformation(
        source_points: np.ndarray,
        target_points: np.ndarray,
    ) -> np.ndarray:
        """
        Least-squares rigid transform between paired points (Kabsch / SVD).

        Args:
            source_points: (N x 3) points to move.
            target_points: (N x 3) points they should land on, row-paired.

        Returns:
            4x4 transform with a proper rotation (det = +1).
        """
        mu_src = source_points.mean(axis=0)
        mu_tgt = target_points.mean(axis=0)

        cross_cov = (source_points - mu_src).T @ (target_points - mu_tgt)
        U, _, Vt = np.linalg.svd(cross_cov)

        # Flip the weakest axis when the SVD yields a reflection
        D = np.eye(3)
        D[2, 2] = np.sign(np.linalg.det(Vt.T @ U.T)) or 1.0
        R = Vt.T @ D @ U.T

        transform = np.eye(4)
        transform[:3, :3] = R
        transform[:3, 3] = mu_tgt - R @ mu_src
        return transform

    @staticmethod
    def apply_transformation(points: np.ndarray, transform: np.ndarray) -> np.ndarray:
        """Apply a 4x4 rigid transform to (N x 3) points."""
        if points.size == 0:
            return points
        return points @ transform[:3, :3].T + transform[:3, 3]

    def compute_fitness_score(self, source: np.ndarray, nbrs: NearestNeighbors) -> float:
        """
        Mean squared nearest-neighbour distance of aligned source points.

        Only pairs within the maximum correspondence distance contribute;
        returns inf when there is no such pair.
        """
        if source.size == 0:
            return float("inf")
        _, distances = self.find_correspondences(source, nbrs)

        in_range = distances[distances <= self.max_correspondence_distance]
        if in_range.size == 0:
            logger.warning("No correspondences within range for the fitness score.")
            return float("inf")
        return float(np.mean(in_range ** 2))
