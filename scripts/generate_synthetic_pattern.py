"""
Generate a synthetic reference pattern and scans for trying the pipeline.

- The reference is an "H" landing marker sampled on a regular grid (z = 0).
- Scan "present" holds the marker under a small rigid motion, sensor noise,
  ground clutter below the crop height and a few far outliers.
- Scan "absent" holds clutter only.

Writes PLY files to data/synthetic/ (reference.ply, scan_present.ply, scan_absent.ply).
"""
from __future__ import annotations

import argparse
import math
import sys
from pathlib import Path

import numpy as np

sys.path.append(str(Path(__file__).parent.parent / "src"))

from pattern_matching.utils.export import export_points_to_ply


def make_h_marker(size=1.0, spacing=0.02):
    """Points of an 'H' inside a size x size square centred on the origin."""
    coords = np.arange(-size / 2, size / 2 + 1e-9, spacing)
    X, Y = np.meshgrid(coords, coords)
    bar = size / 5
    left = np.abs(X + size / 2 - bar / 2) <= bar / 2
    right = np.abs(X - size / 2 + bar / 2) <= bar / 2
    middle = np.abs(Y) <= bar / 2
    mask = left | right | middle
    return np.column_stack([X[mask], Y[mask], np.zeros(mask.sum())])


def transform_points(pts, translation=(0.3, -0.2, 0.0), yaw_deg=5.0):
    th = math.radians(yaw_deg)
    Rz = np.array([[math.cos(th), -math.sin(th), 0], [math.sin(th), math.cos(th), 0], [0, 0, 1]])
    return pts @ Rz.T + np.asarray(translation)


def make_clutter(n, extent=4.0, z_range=(-3.0, -2.0), seed=7):
    rng = np.random.default_rng(seed)
    xy = rng.uniform(-extent, extent, size=(n, 2))
    z = rng.uniform(*z_range, size=n)
    return np.column_stack([xy, z])


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic landing marker and scans")
    parser.add_argument("--out-dir", type=str, default="data/synthetic", help="Output directory")
    parser.add_argument("--noise", type=float, default=0.002, help="Sensor noise std (units)")
    parser.add_argument("--seed", type=int, default=42, help="Seed for the noise generator")
    args = parser.parse_args()

    rng = np.random.default_rng(args.seed)
    out_dir = Path(args.out_dir)

    reference = make_h_marker()
    export_points_to_ply(reference, out_dir / "reference.ply")

    marker = transform_points(reference)
    marker += args.noise * rng.standard_normal(size=marker.shape)
    outliers = rng.uniform(-0.5, 0.5, size=(5, 3)) + np.array([0.0, 0.0, 0.9])
    present = np.vstack([marker, make_clutter(2000, seed=args.seed + 1), outliers])
    export_points_to_ply(present, out_dir / "scan_present.ply")

    absent = make_clutter(2000, z_range=(-0.5, 0.5), seed=args.seed + 2)
    export_points_to_ply(absent, out_dir / "scan_absent.ply")

    print(f"Reference: {len(reference)} points")
    print(f"Scan (present): {len(present)} points")
    print(f"Scan (absent): {len(absent)} points")
    print(f"Written to {out_dir.resolve()}")


if __name__ == "__main__":
    main()
