"""
Command-line entry point for quadmark.

Detects markers in image files and, when known markers are configured,
estimates the camera pose relative to them.

Usage:
    quadmark frame.png                      # Print decoded markers
    quadmark *.png --config markers.json    # Also estimate camera pose
    quadmark frame.png --output out/        # Write annotated images
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

import cv2

from .detector import binarize, to_grayscale
from .localizer import CameraLocalizer
from .render import draw_axes, draw_marker_axes, draw_markers, draw_quads, preview_quads
from .squares import find_squares
from .utils import get_config, setup_logging, validate_config

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="quadmark - square fiducial marker detection and pose estimation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  quadmark frame.png
  quadmark frame.png --config markers.json --output annotated/
  quadmark frame.png --block-size 9 --cosine-limit 0.8 --verbose
  quadmark frame.png --output annotated/ --candidates
        """,
    )

    parser.add_argument("images", nargs="+", help="Image files to process")
    parser.add_argument("--config", "-c", help="JSON configuration file")
    parser.add_argument("--cosine-limit", type=float, help="Max corner cosine for candidates")
    parser.add_argument("--block-size", type=int, help="Adaptive threshold block size (odd)")
    parser.add_argument("--min-area", type=float, help="Minimum candidate area in pixels^2")
    parser.add_argument("--approx-tolerance", type=float, help="Polygon approximation tolerance")
    parser.add_argument("--output", "-o", help="Directory for annotated images")
    parser.add_argument("--show", action="store_true", help="Display annotated images")
    parser.add_argument("--candidates", action="store_true", help="Also write a preview of all square candidates")
    parser.add_argument(
        "--verbose", "-V",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> dict:
    """Merge command-line overrides into the loaded configuration."""
    config = get_config(args.config)
    detection = config["detection"]

    if args.cosine_limit is not None:
        detection["cosine_limit"] = args.cosine_limit
    if args.block_size is not None:
        detection["threshold_block_size"] = args.block_size
    if args.min_area is not None:
        detection["min_area"] = args.min_area
    if args.approx_tolerance is not None:
        detection["approx_tolerance"] = args.approx_tolerance

    # Still images are independent; use the fixed block size
    config["threshold_walk"]["enabled"] = False
    return config


def process_image(path: str, localizer: CameraLocalizer, args: argparse.Namespace, axis_length: float) -> bool:
    """Run detection on one image file and report the results."""
    frame = cv2.imread(path, cv2.IMREAD_COLOR)
    if frame is None:
        LOGGER.error("Could not read image: %s", path)
        return False

    localizer.reset()
    result = localizer.process_frame(frame)

    print(f"{path}: {len(result.markers)} marker(s)")
    for marker in result.markers:
        corners = ", ".join(f"({x:.1f}, {y:.1f})" for x, y in marker.projected)
        known = " known" if marker.info is not None else ""
        print(f"  id={marker.marker_id} rotation={marker.rotation}{known} corners=[{corners}]")

    if result.pose.success:
        info = localizer.pose_estimator.decompose_pose(result.pose)
        x, y, z = info["position"]
        roll, pitch, yaw = info["euler_angles"]
        print(f"  camera position=({x:.3f}, {y:.3f}, {z:.3f}) rotation=({roll:.1f}, {pitch:.1f}, {yaw:.1f}) deg")
    elif result.visible:
        print("  camera pose unavailable")

    if args.output or args.show:
        annotated = draw_markers(frame.copy(), result.markers)
        draw_marker_axes(annotated, result.known_markers, localizer.pose_estimator)
        if result.pose.success:
            draw_axes(annotated, result.pose.inverted(), localizer.pose_estimator, axis_length)

        if args.output:
            os.makedirs(args.output, exist_ok=True)
            out_path = os.path.join(args.output, os.path.basename(path))
            cv2.imwrite(out_path, annotated)
            LOGGER.info("Annotated image written to %s", out_path)

            if args.candidates:
                detection = localizer.detector_config
                binary = binarize(to_grayscale(frame), result.block_size)
                quads = find_squares(binary, detection.cosine_limit, detection.min_area, detection.approx_tolerance)
                preview = draw_quads(preview_quads(frame, quads), quads)
                stem, ext = os.path.splitext(os.path.basename(path))
                preview_path = os.path.join(args.output, f"{stem}_candidates{ext}")
                cv2.imwrite(preview_path, preview)
                LOGGER.info("%d candidates written to %s", len(quads), preview_path)

        if args.show:
            cv2.imshow("quadmark", annotated)
            cv2.waitKey(0)

    return True


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(level=log_level)

    config = build_config(args)
    if not validate_config(config):
        sys.exit(2)

    try:
        localizer = CameraLocalizer(config)
        ok = all([process_image(path, localizer, args, config.get("axis_length", 0.05)) for path in args.images])
    except (ValueError, FileNotFoundError) as e:
        LOGGER.error("Detection failed: %s", e)
        sys.exit(1)
    finally:
        if args.show:
            cv2.destroyAllWindows()

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
