"""
Point Cloud Preprocessing Module

This module contains functions for preparing scans and reference patterns.
It includes methods for:
- Loading point clouds from PLY, LAS/LAZ, NumPy and XYZ text files
- Box cropping to the volume of interest
- Statistical outlier removal
- Demeaning with respect to a centroid
"""

from .loader import PointCloudLoader, load_point_cloud
from .cloud_preprocessor import CloudPreprocessor, PreprocessedScan

__all__ = [
    "PointCloudLoader",
    "load_point_cloud",
    "CloudPreprocessor",
    "PreprocessedScan",
]
