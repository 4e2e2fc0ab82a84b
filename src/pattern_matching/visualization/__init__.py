"""
Visualization Module

This module provides visualization tools for scans, registration results and
occupancy images. Plotly is the default backend; PyVista is optional.
"""

from .point_cloud import PointCloudVisualizer

__all__ = [
    "PointCloudVisualizer",
]
