"""
Drawing helpers for debugging and marker generation.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from . import codec
from .geometry import Quadrilateral
from .marker import Marker
from .pose import PoseEstimator, PoseResult

LOGGER = logging.getLogger(__name__)

QUAD_COLOR = (255, 0, 255)
ID_COLOR = (0, 255, 255)


def draw_marker_image(marker_id: int, size: int = 140) -> np.ndarray:
    """Render the canonical grid of ``marker_id`` as a ``size`` x ``size`` image."""
    cells = codec.encode(marker_id).astype(np.uint8) * 255
    return cv2.resize(cells, (size, size), interpolation=cv2.INTER_NEAREST)


def place_marker(
    canvas: np.ndarray,
    marker_id: int,
    top_left: Tuple[int, int],
    size: int,
    turns: int = 0,
) -> np.ndarray:
    """Paste a marker into a gray canvas, optionally turned counter-clockwise 90 degrees ``turns`` times."""
    image = np.ascontiguousarray(np.rot90(draw_marker_image(marker_id, size), turns))
    x, y = top_left
    canvas[y:y + size, x:x + size] = image
    return canvas


def draw_quads(frame: np.ndarray, quads: Sequence[Quadrilateral], color=QUAD_COLOR, thickness: int = 2) -> np.ndarray:
    for quad in quads:
        cv2.polylines(frame, [quad.points.astype(np.int32)], True, color, thickness, cv2.LINE_AA)
    return frame


def filter_quad_region(image: np.ndarray, quad: Quadrilateral) -> np.ndarray:
    """Copy of ``image`` that is black everywhere outside ``quad``."""
    mask = np.zeros(image.shape[:2], dtype=np.uint8)
    cv2.fillPoly(mask, [np.round(quad.points).astype(np.int32)], 255)
    return cv2.bitwise_and(image, image, mask=mask)


def preview_quads(frame: np.ndarray, quads: Sequence[Quadrilateral]) -> np.ndarray:
    """Show only the image content inside candidate quads (saturating where they overlap)."""
    preview = np.zeros_like(frame)
    for quad in quads:
        preview = cv2.add(preview, filter_quad_region(frame, quad))
    return preview


def draw_markers(frame: np.ndarray, markers: Sequence[Marker], thickness: int = 2) -> np.ndarray:
    """Outline each marker, mark its first corner and print its id."""
    for marker in markers:
        corners = marker.projected.astype(np.int32)
        cv2.polylines(frame, [corners], True, QUAD_COLOR, thickness, cv2.LINE_AA)
        cv2.circle(frame, tuple(int(v) for v in corners[0]), 4, (0, 0, 255), -1, cv2.LINE_AA)

        cx, cy = marker.center
        cv2.putText(frame, str(marker.marker_id), (int(cx), int(cy)), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 0, 0), 3, cv2.LINE_AA)
        cv2.putText(frame, str(marker.marker_id), (int(cx), int(cy)), cv2.FONT_HERSHEY_SIMPLEX, 0.5, ID_COLOR, 1, cv2.LINE_AA)
    return frame


def draw_axes(
    frame: np.ndarray,
    pose: PoseResult,
    estimator: PoseEstimator,
    axis_length: float = 0.05,
) -> Optional[np.ndarray]:
    """Draw XYZ axes of a world->camera pose."""
    projected = estimator.project_axes(pose, axis_length)
    if projected is None or len(projected) < 4 or not np.all(np.isfinite(projected)):
        return None

    origin, x_axis, y_axis, z_axis = (tuple(int(v) for v in point) for point in projected)

    cv2.line(frame, origin, x_axis, (0, 0, 255), 2, cv2.LINE_AA)  # X axis - red
    cv2.putText(frame, "X", x_axis, cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 0, 255), 1, cv2.LINE_AA)
    cv2.line(frame, origin, y_axis, (0, 255, 0), 2, cv2.LINE_AA)  # Y axis - green
    cv2.putText(frame, "Y", y_axis, cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 0), 1, cv2.LINE_AA)
    cv2.line(frame, origin, z_axis, (255, 0, 0), 2, cv2.LINE_AA)  # Z axis - blue
    cv2.putText(frame, "Z", z_axis, cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 0, 0), 1, cv2.LINE_AA)
    return frame


def draw_marker_axes(frame: np.ndarray, markers: Sequence[Marker], estimator: PoseEstimator) -> np.ndarray:
    """Draw per-marker axes for markers with attached world info."""
    for marker in markers:
        if marker.info is None:
            continue
        try:
            pose = estimator.estimate_marker_pose(marker, size=marker.info.size)
        except ValueError as exc:
            LOGGER.debug("Skipping axes for marker %d: %s", marker.marker_id, exc)
            continue
        draw_axes(frame, pose, estimator, marker.info.size / 2.0)
    return frame
