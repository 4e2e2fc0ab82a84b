"""
Match Evaluation

Turns a registration result into a found / not-found decision.

A match requires all of:
- the registration converged,
- the aligned cloud holds at least `min_point_count` points,
- the fitness score is within `max_fitness_score * dilation_factor`.

The tolerance grows linearly with the dilation factor, so a larger factor
accepts noisier (more dilated) matches and a factor of 0 only accepts a
perfect fit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..alignment.fine_registration import RegistrationResult
from ..utils.config import EvaluationConfig
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of evaluating one scan against the reference pattern.

    Attributes:
        matched: Whether the pattern is considered found
        registration: The registration result the decision is based on
        matched_point_count: Number of aligned scan points
        fitness_tolerance: Fitness threshold used for the decision
        occupancy_image: Optional occupancy image of the aligned scan
    """

    matched: bool
    registration: RegistrationResult
    matched_point_count: int
    fitness_tolerance: float = 0.0
    occupancy_image: Optional[np.ndarray] = None

    @property
    def transform(self) -> np.ndarray:
        """Transform mapping the scan onto the reference."""
        return self.registration.transform

    @property
    def pattern_pose(self) -> np.ndarray:
        """Pose of the reference pattern in the scan frame (inverse of `transform`)."""
        return np.linalg.inv(self.registration.transform)


class MatchEvaluator:
    """Applies point-count and fitness thresholds to registration results."""

    def __init__(self, max_fitness_score: float = 0.01):
        """
        Args:
            max_fitness_score: Fitness tolerance at dilation_factor == 1
        """
        if max_fitness_score < 0:
            raise ValueError(f"max_fitness_score must be non-negative, got {max_fitness_score}")
        self.max_fitness_score = float(max_fitness_score)

    @classmethod
    def from_config(cls, config: EvaluationConfig) -> "MatchEvaluator":
        return cls(max_fitness_score=config.max_fitness_score)

    def fitness_tolerance(self, dilation_factor: float) -> float:
        """Fitness threshold for a given dilation factor (monotonically increasing)."""
        if dilation_factor < 0:
            raise ValueError(f"dilation_factor must be non-negative, got {dilation_factor}")
        return self.max_fitness_score * float(dilation_factor)

    def evaluate(
        self,
        registration: RegistrationResult,
        min_point_count: int,
        dilation_factor: float,
    ) -> MatchResult:
        """
        Decide whether the registered scan matches the reference.

        Args:
            registration: Result of RegistrationEngine.align
            min_point_count: Minimum number of aligned points
            dilation_factor: Scaling of the fitness tolerance

        Returns:
            MatchResult

        Raises:
            ValueError: If min_point_count or dilation_factor is negative
        """
        if min_point_count < 0:
            raise ValueError(f"min_point_count must be non-negative, got {min_point_count}")
        tolerance = self.fitness_tolerance(dilation_factor)

        point_count = int(len(registration.aligned_cloud))
        fitness = float(registration.fitness_score)

        reasons = []
        if not registration.converged:
            reasons.append("registration did not converge")
        if point_count < min_point_count:
            reasons.append(f"{point_count} points < {min_point_count}")
        if not np.isfinite(fitness) or fitness > tolerance:
            reasons.append(f"fitness {fitness:.6e} > tolerance {tolerance:.6e}")

        matched = not reasons
        if matched:
            logger.info(
                "Pattern found: %d points, fitness %.6e (tolerance %.6e).",
                point_count,
                fitness,
                tolerance,
            )
        else:
            logger.info("Pattern not found: %s.", "; ".join(reasons))

        return MatchResult(
            matched=matched,
            registration=registration,
            matched_point_count=point_count,
            fitness_tolerance=tolerance,
        )
