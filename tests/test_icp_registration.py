"""
Tests for fine registration (ICP) implementation.

These tests focus on correctness of the recovered transform, the
convergence flag and the fitness score on small synthetic clouds.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

# Ensure src is importable
sys.path.append(str(Path(__file__).parent.parent / "src"))

from pattern_matching.alignment.fine_registration import RegistrationEngine
from pattern_matching.utils.config import RegistrationConfig


def _make_random_cloud(n: int = 2000, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    # Anisotropic spread to avoid degenerate covariance
    base = rng.normal(size=(n, 3)) * np.array([10.0, 5.0, 2.0])
    base += np.array([100.0, -50.0, 20.0])
    return base.astype(float)


def _rotation_z(deg: float) -> np.ndarray:
    th = np.deg2rad(deg)
    return np.array(
        [
            [np.cos(th), -np.sin(th), 0.0],
            [np.sin(th), np.cos(th), 0.0],
            [0.0, 0.0, 1.0],
        ]
    )


def _unit_square() -> np.ndarray:
    return np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]])


def test_align_cloud_to_itself_is_identity():
    cloud = _make_random_cloud(n=500, seed=2)
    result = RegistrationEngine().align(cloud, cloud)

    assert result.converged
    assert np.allclose(result.transform, np.eye(4), atol=1e-9)
    assert result.fitness_score < 1e-12
    assert np.allclose(result.aligned_cloud, cloud)


def test_unit_square_translation():
    square = _unit_square()
    shifted = square + np.array([1.0, 0.0, 0.0])

    result = RegistrationEngine().align(square, shifted)

    assert result.converged
    assert np.allclose(result.translation, [1.0, 0.0, 0.0], atol=1e-6)
    assert np.allclose(result.rotation, np.eye(3), atol=1e-6)
    assert result.fitness_score < 1e-6


def test_icp_recovers_known_transform():
    """ICP should approximately recover a known rigid transform."""
    src = _make_random_cloud(n=2000, seed=1)
    Rz = _rotation_z(5.0)
    t = np.array([1.5, -0.7, 0.3])
    tgt = (src @ Rz.T) + t

    engine = RegistrationEngine(
        max_iterations=50,
        tolerance=1e-8,
        max_correspondence_distance=5.0,
    )
    result = engine.align(source=src, target=tgt)

    # Compare against a naive identity-transform baseline
    from sklearn.neighbors import NearestNeighbors  # type: ignore

    nn = NearestNeighbors(n_neighbors=1, algorithm="kd_tree").fit(tgt)
    d0, _ = nn.kneighbors(src)
    baseline_mse = float(np.mean(d0 ** 2))

    assert result.fitness_score < baseline_mse * 0.5
    assert result.aligned_cloud.shape == src.shape


def test_empty_source_reports_non_convergence():
    result = RegistrationEngine().align(np.empty((0, 3)), _unit_square())

    assert not result.converged
    assert np.array_equal(result.transform, np.eye(4))
    assert result.fitness_score == float("inf")
    assert result.aligned_cloud.shape == (0, 3)


def test_empty_target_reports_non_convergence():
    result = RegistrationEngine().align(_unit_square(), np.empty((0, 3)))
    assert not result.converged
    assert result.fitness_score == float("inf")
    assert np.array_equal(result.transform, np.eye(4))
    assert result.aligned_cloud.shape == (0, 3)


def test_no_correspondences_in_range():
    square = _unit_square()
    far = square + np.array([100.0, 0.0, 0.0])
    engine = RegistrationEngine(max_correspondence_distance=0.5, initial_alignment="none")

    result = engine.align(square, far)

    assert not result.converged
    assert result.fitness_score == float("inf")
    assert np.array_equal(result.transform, np.eye(4))


def test_iteration_limit_policy():
    src = _make_random_cloud(n=500, seed=3)
    tgt = (src @ _rotation_z(10.0).T) + np.array([2.0, 1.0, 0.0])

    lenient = RegistrationEngine(max_iterations=1, initial_alignment="none")
    strict = RegistrationEngine(max_iterations=1, initial_alignment="none", fail_after_max_iterations=True)

    lenient_result = lenient.align(src, tgt)
    strict_result = strict.align(src, tgt)

    assert lenient_result.n_iterations == 1
    assert lenient_result.converged
    assert not strict_result.converged
    assert np.allclose(lenient_result.transform, strict_result.transform)


def test_initial_transform_is_used():
    square = _unit_square()
    shifted = square + np.array([0.0, 2.0, 0.0])
    initial = np.eye(4)
    initial[:3, 3] = [0.0, 2.0, 0.0]

    result = RegistrationEngine(initial_alignment="none").align(square, shifted, initial_transform=initial)

    assert result.converged
    assert np.allclose(result.translation, [0.0, 2.0, 0.0], atol=1e-9)


def test_initial_transform_must_be_4x4():
    with pytest.raises(ValueError):
        RegistrationEngine().align(_unit_square(), _unit_square(), initial_transform=np.eye(3))


def test_estimate_transformation_exact_correspondences():
    src = _make_random_cloud(n=100, seed=4)
    R = _rotation_z(30.0)
    t = np.array([-3.0, 4.0, 0.5])
    tgt = src @ R.T + t

    T = RegistrationEngine().estimate_transformation(src, tgt)

    assert np.allclose(T[:3, :3], R, atol=1e-9)
    assert np.allclose(T[:3, 3], t, atol=1e-6)
    assert np.isclose(np.linalg.det(T[:3, :3]), 1.0)


def test_from_config():
    cfg = RegistrationConfig(max_iterations=7, max_correspondence_distance=0.25, initial_alignment="pca")
    engine = RegistrationEngine.from_config(cfg)

    assert engine.max_iterations == 7
    assert engine.max_correspondence_distance == 0.25
    assert engine.coarse.method == "pca"


def test_invalid_max_iterations():
    with pytest.raises(ValueError):
        RegistrationEngine(max_iterations=0)
