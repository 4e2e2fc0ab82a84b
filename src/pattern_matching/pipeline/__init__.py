"""
Pipeline Module

End-to-end processing of scans against the reference pattern.
"""

from .pattern_matcher import PatternMatcher

__all__ = [
    "PatternMatcher",
]
