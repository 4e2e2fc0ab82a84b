"""
Pattern Matching Pipeline

Runs one scan end-to-end against the fixed reference pattern:

    scan -> crop -> outlier removal -> (demean) -> ICP against the
    densified reference -> (occupancy image) -> match decision

The matcher keeps no per-scan state. The reference is prepared once and
stored read-only; the hot parameters are an immutable object that is
swapped as a whole on update, so concurrent `process_scan` calls never see
a half-updated configuration.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Iterator, Optional

import numpy as np

from ..alignment.fine_registration import RegistrationEngine, RegistrationResult
from ..detection.match_evaluator import MatchEvaluator, MatchResult
from ..preprocessing.cloud_preprocessor import CloudPreprocessor
from ..rasterization.organized_cloud import PatternRasterizer, RasterizationError
from ..reference.densifier import PatternDensifier
from ..utils.config import AppConfig, PatternMatchingParameters, update_parameters
from ..utils.logging import setup_logger
from ..utils.point_cloud_filters import as_point_cloud

logger = setup_logger(__name__)


class PatternMatcher:
    """Matches incoming scans against one reference pattern."""

    def __init__(self, reference: np.ndarray, config: Optional[AppConfig] = None):
        """
        Prepare the reference pattern.

        Args:
            reference: Reference pattern points (N x 3)
            config: Application configuration (defaults if None)

        Raises:
            ValueError: If the reference is empty, malformed or non-finite.
                The matcher cannot operate without a reference, so callers
                should treat this as a startup failure.
        """
        self.config = config or AppConfig()

        reference = as_point_cloud(reference, name="reference")
        if len(reference) == 0:
            raise ValueError("Reference pattern is empty")
        if not np.isfinite(reference).all():
            raise ValueError("Reference pattern contains non-finite coordinates")

        densify_cfg = self.config.densify
        if densify_cfg.enabled:
            densifier = PatternDensifier(
                scaling_factor=densify_cfg.scaling_factor,
                increment=densify_cfg.increment,
                offset=densify_cfg.offset,
                iterations=densify_cfg.iterations,
            )
            prepared = densifier.densify(reference)
        else:
            prepared = reference.copy()
        prepared.flags.writeable = False
        self._reference = prepared

        self._parameters = self.config.parameters
        self.engine = RegistrationEngine.from_config(self.config.registration)
        self.evaluator = MatchEvaluator.from_config(self.config.evaluation)

        logger.info(
            "PatternMatcher ready: reference %d points (%d after densification).",
            len(reference),
            len(prepared),
        )

    @property
    def reference(self) -> np.ndarray:
        """The prepared (densified) reference pattern, read-only."""
        return self._reference

    @property
    def parameters(self) -> PatternMatchingParameters:
        return self._parameters

    def update_parameters(self, **changes: Any) -> PatternMatchingParameters:
        """
        Replace the hot parameters for subsequent scans.

        Raises:
            ValueError: If a parameter is unknown or out of range; the current
                parameters stay in effect.
        """
        new_parameters = update_parameters(self._parameters, **changes)
        self._parameters = new_parameters
        logger.info("Pattern matching parameters updated: %s", changes)
        return new_parameters

    def process_scan(
        self,
        scan: np.ndarray,
        params: Optional[PatternMatchingParameters] = None,
    ) -> MatchResult:
        """
        Evaluate a single scan.

        Args:
            scan: Raw scan points (N x 3)
            params: Parameters for this call only; defaults to the current ones

        Returns:
            MatchResult. The transform maps the raw scan onto the reference,
            also when the scan was demeaned internally.
        """
        if params is None:
            params = self._parameters

        pre = CloudPreprocessor.preprocess(
            scan,
            params,
            self.config.crop,
            demean=self.config.preprocessing.demean,
        )

        registration = self.engine.align(pre.points, self._reference)

        if pre.centroid is not None:
            # aligned = T_icp (p - c)  =>  T = T_icp @ translate(-c)
            demean_transform = np.eye(4)
            demean_transform[:3, 3] = -pre.centroid
            registration = replace(registration, transform=registration.transform @ demean_transform)

        result = self.evaluator.evaluate(
            registration,
            min_point_count=params.min_point_count,
            dilation_factor=params.dilation_factor,
        )

        if self.config.rasterization.enabled:
            image = self._occupancy_image(registration.aligned_cloud)
            if image is not None:
                result = replace(result, occupancy_image=image)

        return result

    def process_scans(self, scans: Iterable[np.ndarray]) -> Iterator[MatchResult]:
        """
        Evaluate a stream of scans.

        A scan that fails with a ValueError (e.g. malformed array) is logged and
        reported as a no-match; it never stops the remaining scans.
        """
        for index, scan in enumerate(scans):
            try:
                yield self.process_scan(scan)
            except ValueError as e:
                logger.error("Scan %d could not be processed: %s", index, e)
                yield self._no_match()

    def _occupancy_image(self, aligned_cloud: np.ndarray) -> Optional[np.ndarray]:
        raster_cfg = self.config.rasterization
        organized = PatternRasterizer.organize(
            aligned_cloud,
            resolution=raster_cfg.resolution,
            width=raster_cfg.width,
            height=raster_cfg.height,
        )
        try:
            return PatternRasterizer.to_occupancy_image(organized)
        except RasterizationError as e:
            logger.warning("No occupancy image for this scan: %s", e)
            return None

    def _no_match(self) -> MatchResult:
        registration = RegistrationResult(
            transform=np.eye(4),
            converged=False,
            fitness_score=float("inf"),
            aligned_cloud=np.empty((0, 3), dtype=np.float64),
        )
        return MatchResult(
            matched=False,
            registration=registration,
            matched_point_count=0,
            fitness_tolerance=self.evaluator.fitness_tolerance(self._parameters.dilation_factor),
        )
