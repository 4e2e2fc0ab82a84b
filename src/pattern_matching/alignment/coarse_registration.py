"""
Coarse Registration Methods

Brings a scan near the reference pattern before ICP. Closest-point
matching on a sparse, regular pattern is easily trapped when the initial
offset is comparable to the pattern spacing.

Methods implemented:
- centroid: translation-only alignment by centroids
- pca: principal-axes rotation plus centroid translation. The sign of each
  principal axis is ambiguous (a planar marker looks the same from both
  sides), so all proper sign combinations are scored by nearest-neighbour
  RMSE against the target and the best one is kept. The centroid transform
  competes as well, so pca is never worse than centroid.
- none: identity

All methods return a 4x4 transform suitable for initializing ICP.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from typing import List

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..utils.logging import setup_logger

logger = setup_logger(__name__)

# Sign flips of the principal axes that keep a right-handed frame
_AXIS_SIGNS: List[np.ndarray] = [
    np.array(signs, dtype=float)
    for signs in product((1.0, -1.0), repeat=3)
    if np.prod(signs) > 0
]


@dataclass
class CoarseRegistration:
    method: str = "centroid"  # centroid | pca | none
    max_score_points: int = 3000

    def compute_initial_transform(self, source: np.ndarray, target: np.ndarray) -> np.ndarray:
        """
        Compute a coarse initial transform aligning source -> target.

        Args:
            source: Nx3 array (scan)
            target: Mx3 array (reference pattern)

        Returns:
            4x4 transform matrix
        """
        method = self.method.lower()
        if method == "none":
            return np.eye(4)

        if source.size == 0 or target.size == 0:
            logger.warning("CoarseRegistration: empty inputs; returning identity transform.")
            return np.eye(4)

        if method == "centroid":
            return self._centroid_transform(source, target)
        if method == "pca":
            return self._best_pca_transform(source, target)

        logger.warning(f"Unknown coarse registration method '{self.method}', using identity.")
        return np.eye(4)

    # ------------------------ Methods ------------------------
    @staticmethod
    def _centroid_transform(src: np.ndarray, dst: np.ndarray) -> np.ndarray:
        T = np.eye(4)
        T[:3, 3] = dst.mean(axis=0) - src.mean(axis=0)
        return T

    @staticmethod
    def _principal_axes(points: np.ndarray) -> np.ndarray:
        """Eigenvectors of the covariance as columns, largest variance first."""
        centered = points - points.mean(axis=0)
        # Regularized so a perfectly planar pattern still yields a basis
        cov = (centered.T @ centered) / max(1, len(points)) + 1e-12 * np.eye(3)
        eigvals, eigvecs = np.linalg.eigh(cov)
        axes = eigvecs[:, np.argsort(eigvals)[::-1]]
        if np.linalg.det(axes) < 0:
            axes[:, -1] *= -1
        return axes

    def _pca_candidates(self, src: np.ndarray, dst: np.ndarray) -> List[np.ndarray]:
        axes_src = self._principal_axes(src)
        axes_dst = self._principal_axes(dst)
        c_src = src.mean(axis=0)
        c_dst = dst.mean(axis=0)

        candidates = []
        for signs in _AXIS_SIGNS:
            R = (axes_dst * signs) @ axes_src.T
            T = np.eye(4)
            T[:3, :3] = R
            T[:3, 3] = c_dst - R @ c_src
            candidates.append(T)
        return candidates

    def _best_pca_transform(self, src: np.ndarray, dst: np.ndarray) -> np.ndarray:
        nbrs = NearestNeighbors(n_neighbors=1, algorithm="kd_tree").fit(dst)
        sample = self._score_sample(src)

        best = self._centroid_transform(src, dst)
        best_rmse = self._score_rmse(sample, best, nbrs)
        for T in self._pca_candidates(src, dst):
            rmse = self._score_rmse(sample, T, nbrs)
            if rmse < best_rmse:
                best, best_rmse = T, rmse

        logger.debug("CoarseRegistration (pca): best candidate RMSE %.6f", best_rmse)
        return best

    def _score_sample(self, src: np.ndarray) -> np.ndarray:
        if len(src) <= self.max_score_points:
            return src
        rng = np.random.default_rng(0)
        return src[rng.choice(len(src), self.max_score_points, replace=False)]

    def _score_rmse(self, sample: np.ndarray, T: np.ndarray, nbrs: NearestNeighbors) -> float:
        d, _ = nbrs.kneighbors(self.apply_transformation(sample, T))
        return float(np.sqrt(np.mean(d ** 2)))

    @staticmethod
    def apply_transformation(points: np.ndarray, transform: np.ndarray) -> np.ndarray:
        if points.size == 0:
            return points
        return points @ transform[:3, :3].T + transform[:3, 3]
