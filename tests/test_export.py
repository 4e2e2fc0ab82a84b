"""
Tests for export utilities.

Tests PLY and LAS point cloud export and transform matrix persistence.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from pattern_matching.utils.export import (
    export_points_to_laz,
    export_points_to_ply,
    load_transform_matrix,
    save_transform_matrix,
)


@pytest.fixture
def sample_points():
    """Generate sample point cloud data."""
    np.random.seed(42)
    return np.random.uniform(0, 100, (100, 3))


def test_export_ply_creates_parent_directories(tmp_path, sample_points):
    out = tmp_path / "nested" / "dir" / "cloud.ply"
    written = export_points_to_ply(sample_points, out)

    assert Path(written) == out
    assert out.exists()
    assert out.stat().st_size > 0


def test_export_las_header(tmp_path, sample_points):
    import laspy

    out = tmp_path / "cloud.las"
    export_points_to_laz(sample_points, out, scale=1e-3)

    las = laspy.read(out)
    assert las.header.point_count == 100
    assert np.allclose(las.header.scales, 1e-3)
    assert np.allclose(las.header.offsets, sample_points.min(axis=0))


def test_export_rejects_bad_shape(tmp_path):
    with pytest.raises(ValueError):
        export_points_to_ply(np.zeros((5, 2)), tmp_path / "bad.ply")


def test_transform_matrix_roundtrip(tmp_path):
    T = np.eye(4)
    T[:3, :3] = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    T[:3, 3] = [1.25, -3.5, 0.125]
    path = tmp_path / "transform.txt"

    save_transform_matrix(T, path)
    loaded = load_transform_matrix(path)

    assert np.array_equal(loaded, T)


def test_transform_matrix_must_be_4x4(tmp_path):
    with pytest.raises(ValueError):
        save_transform_matrix(np.eye(3), tmp_path / "t.txt")

    path = tmp_path / "three.txt"
    np.savetxt(path, np.eye(3))
    with pytest.raises(ValueError):
        load_transform_matrix(path)
