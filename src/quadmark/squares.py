"""
Square candidate detection on binary images.

Contours are simplified with Douglas-Peucker and filtered down to convex
quads whose corners are all close to right angles.
"""

from __future__ import annotations

import logging
from typing import List

import cv2
import numpy as np

from .geometry import Quadrilateral

LOGGER = logging.getLogger(__name__)


def corner_cosine(b: np.ndarray, c: np.ndarray, a: np.ndarray) -> float:
    """Cosine of the angle at ``a`` between a->b and a->c."""
    dx1 = float(b[0] - a[0])
    dy1 = float(b[1] - a[1])
    dx2 = float(c[0] - a[0])
    dy2 = float(c[1] - a[1])
    return (dx1 * dx2 + dy1 * dy2) / np.sqrt((dx1 * dx1 + dy1 * dy1) * (dx2 * dx2 + dy2 * dy2) + 1e-12)


def max_corner_cosine(points: np.ndarray) -> float:
    """Largest absolute corner cosine over the 4 corners of a quad."""
    return max(
        abs(corner_cosine(points[(i + 1) % 4], points[(i - 1) % 4], points[i]))
        for i in range(4)
    )


def find_squares(
    binary: np.ndarray,
    max_cosine: float = 0.6,
    min_area: float = 100,
    approx_tolerance: float = 0.025,
) -> List[Quadrilateral]:
    """Find convex, roughly square quads in a single-channel binary image.

    Args:
        binary: 8-bit single-channel image (non-zero = foreground)
        max_cosine: Upper bound for the largest corner cosine
        min_area: Minimum absolute polygon area in pixels^2
        approx_tolerance: Polygon approximation error as a fraction of the
            contour perimeter

    Returns:
        List of quads, one per accepted contour, in contour order
    """
    if binary is None or binary.ndim != 2 or binary.dtype != np.uint8:
        raise ValueError("find_squares expects a single-channel uint8 image")

    contours, _ = cv2.findContours(binary, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)

    squares: List[Quadrilateral] = []
    for contour in contours:
        epsilon = cv2.arcLength(contour, True) * approx_tolerance
        approx = cv2.approxPolyDP(contour, epsilon, True)

        if len(approx) != 4:
            continue
        if abs(cv2.contourArea(approx)) <= min_area:
            continue
        if not cv2.isContourConvex(approx):
            continue

        points = approx.reshape(4, 2).astype(np.float32)
        if max_corner_cosine(points) >= max_cosine:
            continue

        squares.append(Quadrilateral(points).with_winding(negative=True))

    LOGGER.debug("Found %d square candidates in %d contours", len(squares), len(contours))
    return squares
