"""
Marker detection pipeline.

Binarizes a frame with an adaptive mean threshold, finds square candidates,
samples a bit grid from each one and keeps the candidates that decode.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import cv2
import numpy as np

from . import codec
from .marker import Marker
from .sampling import DEFAULT_OUTPUT_SIZE, extract_grid, normalize_quad
from .squares import find_squares

LOGGER = logging.getLogger(__name__)


@dataclass
class DetectorConfig:
    """Tunable detection parameters."""

    cosine_limit: float = 0.7  # Higher tolerates more perspective distortion
    threshold_block_size: int = 7  # Odd adaptive threshold neighbourhood
    min_area: float = 100.0  # Pixels^2
    approx_tolerance: float = 0.025  # Fraction of contour perimeter

    @classmethod
    def from_dict(cls, config: Optional[Dict]) -> DetectorConfig:
        config = config or {}
        return cls(
            cosine_limit=float(config.get("cosine_limit", cls.cosine_limit)),
            threshold_block_size=int(config.get("threshold_block_size", cls.threshold_block_size)),
            min_area=float(config.get("min_area", cls.min_area)),
            approx_tolerance=float(config.get("approx_tolerance", cls.approx_tolerance)),
        )


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a gray, BGR or BGRA uint8 image to single-channel intensity."""
    if image is None or not isinstance(image, np.ndarray) or image.size == 0:
        raise ValueError("Input image is empty")
    if image.dtype != np.uint8:
        raise ValueError(f"Input image must be uint8, got {image.dtype}")

    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"Unsupported image shape {image.shape}")


def binarize(gray: np.ndarray, block_size: int = 7) -> np.ndarray:
    """Locally adaptive mean threshold."""
    if block_size < 3 or block_size % 2 == 0:
        raise ValueError(f"Threshold block size must be an odd integer >= 3, got {block_size}")
    return cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY, block_size, 0
    )


def suppress_duplicates(markers: List[Marker]) -> List[Marker]:
    """Drop outer detections nested around a tighter one with the same id.

    The threshold ring around a marker yields an inner and an outer contour,
    both of which decode. The smaller quad is kept.
    """
    kept: List[Marker] = []
    for marker in markers:
        duplicate = None
        for index, other in enumerate(kept):
            if other.marker_id != marker.marker_id:
                continue
            if other.quad.contains_point(marker.center) or marker.quad.contains_point(other.center):
                duplicate = index
                break

        if duplicate is None:
            kept.append(marker)
        elif marker.area < kept[duplicate].area:
            kept[duplicate] = marker
    return kept


def get_markers(
    image: np.ndarray,
    cosine_limit: float = 0.7,
    threshold_block_size: int = 7,
    min_area: float = 100,
    approx_tolerance: float = 0.025,
) -> List[Marker]:
    """Detect and decode all markers in an image.

    Args:
        image: Gray, BGR or BGRA uint8 frame (never modified)
        cosine_limit: Max corner cosine accepted for square candidates
        threshold_block_size: Odd block size of the adaptive threshold
        min_area: Minimum candidate area in pixels^2
        approx_tolerance: Polygon approximation tolerance (fraction of perimeter)

    Returns:
        Validated markers with rotation-corrected corners; possibly empty
    """
    gray = to_grayscale(image)
    binary = binarize(gray, threshold_block_size)

    quads = find_squares(binary, cosine_limit, min_area, approx_tolerance)

    markers: List[Marker] = []
    for quad in quads:
        square = normalize_quad(gray, quad, DEFAULT_OUTPUT_SIZE)
        cells = extract_grid(square, codec.GRID_SIZE)
        marker = codec.decode(cells, quad.points)
        if marker is not None:
            markers.append(marker)

    markers = suppress_duplicates(markers)
    LOGGER.debug("%d markers decoded from %d candidates", len(markers), len(quads))
    return markers


class MarkerDetector:
    """Convenience wrapper binding a ``DetectorConfig`` to ``get_markers``."""

    def __init__(self, config: Optional[Dict] = None):
        self.config = DetectorConfig.from_dict(config)

    def detect(self, frame: np.ndarray, threshold_block_size: Optional[int] = None) -> List[Marker]:
        block_size = threshold_block_size or self.config.threshold_block_size
        return get_markers(
            frame,
            cosine_limit=self.config.cosine_limit,
            threshold_block_size=block_size,
            min_area=self.config.min_area,
            approx_tolerance=self.config.approx_tolerance,
        )
