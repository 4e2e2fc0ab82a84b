"""
Test suite for the point cloud loader
"""

import tempfile
import unittest
import numpy as np
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).parent.parent / "src"))
from pattern_matching.preprocessing.loader import PointCloudLoader, load_point_cloud
from pattern_matching.utils.export import export_points_to_laz, export_points_to_ply


class TestPointCloudLoader(unittest.TestCase):
    """Test cases for the PointCloudLoader class."""

    def setUp(self):
        """Set up a temporary directory and a small cloud."""
        self.loader = PointCloudLoader()
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_dir = Path(self._tmp.name)
        rng = np.random.default_rng(0)
        self.points = rng.uniform(-5.0, 5.0, size=(100, 3))

    def tearDown(self):
        self._tmp.cleanup()

    def test_load_ply(self):
        path = self.tmp_dir / "cloud.ply"
        export_points_to_ply(self.points, path)

        result = self.loader.load(path)

        self.assertIsInstance(result, dict)
        self.assertIn('points', result)
        self.assertIn('metadata', result)
        np.testing.assert_array_equal(result['points'], self.points)
        self.assertEqual(result['metadata']['format'], 'ply')
        self.assertEqual(result['metadata']['point_count'], 100)

    def test_load_ascii_ply(self):
        path = self.tmp_dir / "cloud_ascii.ply"
        export_points_to_ply(self.points, path, text=True)
        np.testing.assert_allclose(load_point_cloud(path), self.points)

    def test_load_las(self):
        path = self.tmp_dir / "cloud.las"
        export_points_to_laz(self.points, path)

        points = load_point_cloud(path)

        self.assertEqual(points.shape, (100, 3))
        np.testing.assert_allclose(points, self.points, atol=1e-4)

    def test_load_npy(self):
        path = self.tmp_dir / "cloud.npy"
        np.save(path, self.points)
        np.testing.assert_array_equal(load_point_cloud(path), self.points)

    def test_load_xyz_text_ignores_extra_columns(self):
        path = self.tmp_dir / "cloud.xyz"
        intensity = np.arange(len(self.points), dtype=float)[:, None]
        np.savetxt(path, np.hstack([self.points, intensity]))

        np.testing.assert_allclose(load_point_cloud(path), self.points)

    def test_load_csv_single_row(self):
        path = self.tmp_dir / "one.csv"
        path.write_text("1.0,2.0,3.0\n")

        points = load_point_cloud(path)

        self.assertEqual(points.shape, (1, 3))
        np.testing.assert_array_equal(points[0], [1.0, 2.0, 3.0])

    def test_metadata_bounds(self):
        path = self.tmp_dir / "cloud.npy"
        np.save(path, self.points)

        bounds = self.loader.load(path)['metadata']['bounds']

        self.assertAlmostEqual(bounds['min_x'], float(self.points[:, 0].min()))
        self.assertAlmostEqual(bounds['max_z'], float(self.points[:, 2].max()))

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            self.loader.load(self.tmp_dir / "missing.ply")

    def test_unsupported_format(self):
        path = self.tmp_dir / "cloud.obj"
        path.write_text("v 0 0 0\n")
        with self.assertRaises(ValueError):
            self.loader.load(path)

    def test_malformed_ply(self):
        path = self.tmp_dir / "broken.ply"
        path.write_text("this is not a ply file\n")
        with self.assertRaises(ValueError):
            self.loader.load(path)

    def test_wrong_shape(self):
        path = self.tmp_dir / "flat.npy"
        np.save(path, np.zeros((10, 2)))
        with self.assertRaises(ValueError):
            self.loader.load(path)

    def test_non_finite_coordinates(self):
        path = self.tmp_dir / "nan.npy"
        bad = self.points.copy()
        bad[3, 1] = np.nan
        np.save(path, bad)
        with self.assertRaises(ValueError):
            self.loader.load(path)

    def test_empty_file(self):
        path = self.tmp_dir / "empty.npy"
        np.save(path, np.empty((0, 3)))

        with self.assertRaises(ValueError):
            self.loader.load(path)

        points = PointCloudLoader(allow_empty=True).load(path)['points']
        self.assertEqual(points.shape, (0, 3))


if __name__ == "__main__":
    unittest.main()
