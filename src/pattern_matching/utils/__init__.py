"""
Utility Functions Module

This module provides common utility functions used across the pattern matching project.
- Logging setup
- Typed configuration loading and runtime parameter updates
- Point cloud validation and box masks
- Export of point clouds and transforms
"""

from .logging import setup_logger, configure_package_logging
from .config import (
    AppConfig,
    PatternMatchingParameters,
    load_config,
    update_parameters,
)
from .point_cloud_filters import as_point_cloud, create_box_mask
from .export import (
    export_points_to_ply,
    export_points_to_laz,
    save_transform_matrix,
    load_transform_matrix,
)

__all__ = [
    "setup_logger",
    "configure_package_logging",
    "AppConfig",
    "PatternMatchingParameters",
    "load_config",
    "update_parameters",
    "as_point_cloud",
    "create_box_mask",
    "export_points_to_ply",
    "export_points_to_laz",
    "save_transform_matrix",
    "load_transform_matrix",
]
