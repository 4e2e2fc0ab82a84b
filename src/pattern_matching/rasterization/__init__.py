"""
Rasterization Module

Organizes unordered point clouds on a regular max-height grid and converts
them to binary occupancy images.
"""

from .organized_cloud import (
    OCCUPIED_VALUE,
    OrganizedPointCloud,
    PatternRasterizer,
    RasterizationError,
)

__all__ = [
    "OCCUPIED_VALUE",
    "OrganizedPointCloud",
    "PatternRasterizer",
    "RasterizationError",
]
