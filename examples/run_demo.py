"""
Demo script for running a synthetic quadmark localization.

Renders two known markers from a camera swinging across the scene, runs
each frame through the localizer and prints the recovered camera position
next to the ground truth. Press 'q' to stop when frames are displayed.
"""

import argparse
import os
import sys

import cv2
import numpy as np

# Add src directory to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from quadmark.localizer import CameraLocalizer  # type: ignore
from quadmark.marker import MarkerInfo  # type: ignore
from quadmark.render import draw_axes, draw_marker_image, draw_markers  # type: ignore
from quadmark.sampling import canonical_corners  # type: ignore
from quadmark.utils import get_config, setup_logging  # type: ignore


KNOWN_MARKERS = [
    {"id": 42, "size": 0.2, "position": [-0.15, 0.0, 0.0]},
    {"id": 100, "size": 0.2, "position": [0.15, 0.0, 0.0]},
]


def render_frame(markers, rvec, tvec, camera_matrix, width=640, height=480):
    """Draw the markers as seen from a world->camera pose on a white frame."""
    frame = np.full((height, width), 255, dtype=np.uint8)
    for info in markers:
        projected, _ = cv2.projectPoints(info.world.astype(np.float64), rvec, tvec, camera_matrix, np.zeros(5))
        transform = cv2.getPerspectiveTransform(canonical_corners(140), projected.reshape(4, 2).astype(np.float32))
        warped = cv2.warpPerspective(draw_marker_image(info.marker_id, 140), transform, (width, height), borderValue=255)
        frame = np.minimum(frame, warped)
    return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)


def run_demo(num_frames, show):
    print("quadmark - Synthetic Localization Demo")
    print("=" * 40)

    setup_logging()

    config = get_config()
    config["known_markers"] = KNOWN_MARKERS
    camera_matrix = np.array(config["calibration"]["camera_matrix"], dtype=np.float64)

    localizer = CameraLocalizer(config)
    markers = [MarkerInfo.from_dict(entry) for entry in KNOWN_MARKERS]

    try:
        for i, angle in enumerate(np.linspace(-0.35, 0.35, num_frames)):
            rvec = np.array([[0.05], [angle], [0.0]])
            tvec = np.array([[0.0], [0.0], [0.9]])
            rotation, _ = cv2.Rodrigues(rvec)
            truth = (-rotation.T @ tvec).flatten()

            frame = render_frame(markers, rvec, tvec, camera_matrix)
            result = localizer.process_frame(frame, timestamp=float(i))

            if result.pose.success:
                position = result.pose.translation_vector.flatten()
                print(
                    f"frame {i:3d}: camera [{position[0]:+.3f}, {position[1]:+.3f}, {position[2]:+.3f}] "
                    f"truth [{truth[0]:+.3f}, {truth[1]:+.3f}, {truth[2]:+.3f}]"
                )
            else:
                print(f"frame {i:3d}: no pose ({len(result.markers)} markers)")

            if show:
                draw_markers(frame, result.markers)
                if result.pose.success:
                    draw_axes(frame, result.pose.inverted(), localizer.pose_estimator, config["axis_length"])
                cv2.imshow("quadmark demo", frame)
                if cv2.waitKey(30) & 0xFF == ord("q"):
                    break
    except KeyboardInterrupt:
        print("\nDemo interrupted by user")
    finally:
        if show:
            cv2.destroyAllWindows()
        print("Demo complete!")


def main():
    """Main entry point for demo."""
    parser = argparse.ArgumentParser(description="Synthetic quadmark localization demo")
    parser.add_argument("--frames", type=int, default=60, help="Number of frames to render")
    parser.add_argument("--show", action="store_true", help="Display annotated frames")
    args = parser.parse_args()

    run_demo(args.frames, args.show)


if __name__ == "__main__":
    main()
