"""
Perspective normalization and bit grid sampling.

A detected quad is warped into an axis-aligned square and reduced to a
fixed grid of black/white cells.
"""

from __future__ import annotations

import cv2
import numpy as np

from .geometry import Quadrilateral

GRID_SIZE = 7
DEFAULT_OUTPUT_SIZE = GRID_SIZE * 7


def canonical_corners(size: int) -> np.ndarray:
    """Canonical square corners: top-left, bottom-left, bottom-right, top-right."""
    return np.array(
        [
            [0.0, 0.0],
            [0.0, float(size)],
            [float(size), float(size)],
            [float(size), 0.0],
        ],
        dtype=np.float32,
    )


def normalize_quad(
    image: np.ndarray,
    quad: Quadrilateral,
    output_size: int = DEFAULT_OUTPUT_SIZE,
) -> np.ndarray:
    """Warp the region enclosed by ``quad`` into an ``output_size`` square.

    Quad point 0 lands on the top-left corner and the remaining points follow
    the canonical order of :func:`canonical_corners`.
    """
    transform = cv2.getPerspectiveTransform(quad.points, canonical_corners(output_size))
    return cv2.warpPerspective(image, transform, (output_size, output_size), flags=cv2.INTER_LINEAR)


def extract_grid(square: np.ndarray, grid_size: int = GRID_SIZE, cell_pixels: int = 7) -> np.ndarray:
    """Binarize a normalized marker sample into a ``grid_size`` x ``grid_size`` grid.

    The sample is converted to intensity, resized to a working resolution,
    thresholded with Otsu so each marker adapts to its own lighting, and
    area-averaged down to one value per cell.

    Returns:
        Boolean array, True for white cells
    """
    if square.ndim == 3:
        code = cv2.COLOR_BGRA2GRAY if square.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        gray = cv2.cvtColor(square, code)
    else:
        gray = square

    working = grid_size * cell_pixels
    if gray.shape[:2] != (working, working):
        gray = cv2.resize(gray, (working, working), interpolation=cv2.INTER_AREA)

    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)

    cells = cv2.resize(binary, (grid_size, grid_size), interpolation=cv2.INTER_AREA)
    return cells > 127
