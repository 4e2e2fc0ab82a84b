"""Tests for the match decision."""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from pattern_matching.alignment.fine_registration import RegistrationResult
from pattern_matching.detection.match_evaluator import MatchEvaluator, MatchResult
from pattern_matching.utils.config import EvaluationConfig


def _registration(fitness: float, n_points: int = 20, converged: bool = True) -> RegistrationResult:
    transform = np.eye(4)
    transform[:3, 3] = [0.5, -0.25, 0.0]
    return RegistrationResult(
        transform=transform,
        converged=converged,
        fitness_score=fitness,
        aligned_cloud=np.zeros((n_points, 3)),
        n_iterations=3,
    )


def test_good_registration_is_matched():
    evaluator = MatchEvaluator(max_fitness_score=0.01)
    result = evaluator.evaluate(_registration(0.001), min_point_count=10, dilation_factor=1.0)

    assert isinstance(result, MatchResult)
    assert result.matched
    assert result.matched_point_count == 20
    assert result.fitness_tolerance == pytest.approx(0.01)


def test_non_converged_registration_is_rejected():
    result = MatchEvaluator().evaluate(_registration(0.0, converged=False), min_point_count=1, dilation_factor=1.0)
    assert not result.matched


def test_too_few_points_are_rejected():
    evaluator = MatchEvaluator()
    assert not evaluator.evaluate(_registration(0.0, n_points=9), min_point_count=10, dilation_factor=1.0).matched
    assert evaluator.evaluate(_registration(0.0, n_points=10), min_point_count=10, dilation_factor=1.0).matched


def test_infinite_fitness_never_matches():
    result = MatchEvaluator().evaluate(_registration(float("inf")), min_point_count=0, dilation_factor=20.0)
    assert not result.matched


def test_larger_dilation_never_turns_match_into_miss():
    evaluator = MatchEvaluator(max_fitness_score=0.01)
    registration = _registration(0.015)

    decisions = [
        evaluator.evaluate(registration, min_point_count=10, dilation_factor=d).matched
        for d in (0.0, 0.5, 1.0, 1.5, 2.0, 5.0, 20.0)
    ]

    assert decisions[2] is False  # 0.015 > 0.01
    assert decisions[4] is True   # 0.015 <= 0.02
    first_match = decisions.index(True)
    assert all(decisions[first_match:])


def test_zero_dilation_only_accepts_perfect_fit():
    evaluator = MatchEvaluator()
    assert evaluator.evaluate(_registration(0.0), min_point_count=0, dilation_factor=0.0).matched
    assert not evaluator.evaluate(_registration(1e-12), min_point_count=0, dilation_factor=0.0).matched


def test_invalid_arguments():
    evaluator = MatchEvaluator()
    with pytest.raises(ValueError):
        evaluator.evaluate(_registration(0.0), min_point_count=-1, dilation_factor=1.0)
    with pytest.raises(ValueError):
        evaluator.evaluate(_registration(0.0), min_point_count=0, dilation_factor=-0.1)
    with pytest.raises(ValueError):
        MatchEvaluator(max_fitness_score=-1.0)


def test_pattern_pose_is_inverse_of_transform():
    result = MatchEvaluator().evaluate(_registration(0.0), min_point_count=0, dilation_factor=1.0)

    assert np.allclose(result.transform[:3, 3], [0.5, -0.25, 0.0])
    assert np.allclose(result.pattern_pose[:3, 3], [-0.5, 0.25, 0.0])
    assert np.allclose(result.pattern_pose @ result.transform, np.eye(4))


def test_from_config():
    evaluator = MatchEvaluator.from_config(EvaluationConfig(max_fitness_score=0.2))
    assert evaluator.fitness_tolerance(2.0) == pytest.approx(0.4)


def test_unit_square_scenario_is_matched():
    from pattern_matching.alignment.fine_registration import RegistrationEngine

    square = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]])
    registration = RegistrationEngine().align(square, square + np.array([1.0, 0.0, 0.0]))

    result = MatchEvaluator().evaluate(registration, min_point_count=4, dilation_factor=1.0)

    assert result.matched
    assert result.matched_point_count == 4
    assert np.allclose(result.transform[:3, 3], [1.0, 0.0, 0.0], atol=1e-6)
