"""
Spatial Alignment Module

This module provides tools for aligning a scan to the reference pattern
using the ICP (Iterative Closest Point) algorithm, with a coarse
initialization step.
"""

from .fine_registration import RegistrationEngine, RegistrationResult
from .coarse_registration import CoarseRegistration

__all__ = [
    "RegistrationEngine",
    "RegistrationResult",
    "CoarseRegistration",
]
