"""
Reference Pattern Module

Prepares the fixed reference pattern that every scan is registered against.
"""

from .densifier import PatternDensifier, densify

__all__ = [
    "PatternDensifier",
    "densify",
]
