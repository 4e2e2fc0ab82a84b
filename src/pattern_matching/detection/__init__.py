"""
Pattern Detection Module

Exports the match decision and its result type.
"""

from .match_evaluator import MatchEvaluator, MatchResult

__all__ = [
    "MatchEvaluator",
    "MatchResult",
]
