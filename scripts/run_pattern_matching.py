"""
Run pattern matching on recorded scans

Loads the reference pattern, then evaluates every scan file in turn and
reports whether the pattern was found and where.
"""

import sys
import argparse
import logging
from pathlib import Path

import numpy as np

# Add the src to the path to import modules
sys.path.append(str(Path(__file__).parent.parent / "src"))

from pattern_matching.preprocessing.loader import load_point_cloud
from pattern_matching.pipeline import PatternMatcher
from pattern_matching.utils.config import load_config, AppConfig
from pattern_matching.utils.export import save_transform_matrix
from pattern_matching.utils.logging import setup_logger, configure_package_logging
from pattern_matching.visualization.point_cloud import PointCloudVisualizer


def main():
    """
    Main function to run the pattern matching workflow.
    """
    parser = argparse.ArgumentParser(description="Reference Pattern Matching on 3D Scans")
    parser.add_argument("reference", type=str, help="Reference pattern file (.ply, .las, .laz, .npy, .xyz)")
    parser.add_argument("scans", type=str, nargs="+", help="Scan files to evaluate")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file (defaults to config/default.yaml)",
    )
    parser.add_argument(
        "--save-transform",
        type=str,
        default=None,
        help="Directory to save the 4x4 transform of every matched scan",
    )
    parser.add_argument(
        "--dilation-factor",
        type=float,
        default=None,
        help="Override the dilation factor of the match tolerance.",
    )
    parser.add_argument(
        "--visualize",
        action="store_true",
        help="Show reference, scan and aligned scan for every matched scan.",
    )
    args = parser.parse_args()

    # Load configuration
    cfg: AppConfig = load_config(args.config)

    # Setup logging from config
    log_level = getattr(logging, cfg.logging.level.upper(), logging.INFO)
    logger = setup_logger(__name__, level=log_level, log_file=cfg.logging.file)
    configure_package_logging(level=log_level, log_file=cfg.logging.file)

    try:
        reference = load_point_cloud(args.reference)
        matcher = PatternMatcher(reference, cfg)
    except (FileNotFoundError, ValueError) as e:
        # No reference, no matching
        logger.error(f"Cannot load reference pattern: {e}")
        sys.exit(1)

    if args.dilation_factor is not None:
        try:
            matcher.update_parameters(dilation_factor=args.dilation_factor)
        except ValueError as e:
            logger.error(str(e))
            sys.exit(2)

    visualizer = PointCloudVisualizer(backend=cfg.visualization.backend) if args.visualize else None

    n_found = 0
    for scan_path in args.scans:
        logger.info("=" * 60)
        try:
            scan = load_point_cloud(scan_path, allow_empty=True)
        except (FileNotFoundError, ValueError) as e:
            logger.error(f"Skipping scan {scan_path}: {e}")
            continue

        try:
            result = matcher.process_scan(scan)
        except ValueError as e:
            # One bad scan must not stop the remaining ones
            logger.error(f"Scan {scan_path} could not be processed: {e}")
            continue

        registration = result.registration
        if not result.matched:
            logger.info(
                f"{Path(scan_path).name}: pattern not found "
                f"(fitness={registration.fitness_score:.6e}, points={result.matched_point_count})"
            )
            continue

        n_found += 1
        position = result.pattern_pose[:3, 3]
        logger.info(
            f"{Path(scan_path).name}: pattern found at "
            f"({position[0]:.4f}, {position[1]:.4f}, {position[2]:.4f}) "
            f"(fitness={registration.fitness_score:.6e}, points={result.matched_point_count})"
        )
        logger.debug(f"Transform (scan -> reference):\n{np.array2string(result.transform, precision=6)}")

        if args.save_transform:
            out_file = Path(args.save_transform) / f"{Path(scan_path).stem}_transform.txt"
            out_file.parent.mkdir(parents=True, exist_ok=True)
            save_transform_matrix(result.transform, out_file)

        if visualizer is not None:
            visualizer.visualize_match(
                matcher.reference, scan, result, sample_size=cfg.visualization.sample_size
            )
            if result.occupancy_image is not None:
                visualizer.visualize_occupancy_image(result.occupancy_image)

    logger.info("=" * 60)
    logger.info(f"Pattern found in {n_found} of {len(args.scans)} scans")


if __name__ == "__main__":
    main()
