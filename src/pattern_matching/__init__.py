"""
Pattern Matching Package

A Python package that decides, per 3D scan, whether a known reference
pattern (e.g. a landing marker or a wall feature) is visible and where it is.
Scans are cropped and outlier-filtered, registered against a densified copy
of the reference with an Iterative Closest Point (ICP) implementation built
on a k-d tree, and accepted or rejected from the registration fitness.
Scans can also be rasterized into max-height grids and occupancy images.
"""

__version__ = "0.1.0"

from .preprocessing import *
from .rasterization import *
from .reference import *
from .alignment import *
from .detection import *
from .pipeline import *
from .utils import *
from .visualization import *

__all__ = [
    "preprocessing",
    "rasterization",
    "reference",
    "alignment",
    "detection",
    "pipeline",
    "utils",
    "visualization",
]
