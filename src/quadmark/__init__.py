"""
quadmark - Square fiducial marker toolkit.

This package provides functionality for:
- Square candidate detection on thresholded images
- Perspective normalization and bit grid sampling
- Rotation-invariant marker decoding with a fixed codeword table
- Marker and camera pose estimation from known markers
- Debug rendering and marker image generation
"""

from .geometry import Quadrilateral, rotation_matrix
from .squares import find_squares
from .sampling import extract_grid, normalize_quad
from .codec import decode, encode, hamming_distance, border_errors
from .marker import Marker, MarkerInfo, MarkerRegistry
from .detector import DetectorConfig, MarkerDetector, get_markers
from .pose import (
    CalibrationData,
    DegeneratePoseError,
    PoseEstimator,
    PoseFilter,
    PoseFilterConfig,
    PoseResult,
    solve_pnp,
)
from .localizer import CameraLocalizer, LocalizationResult, ThresholdWalkConfig
from .render import draw_marker_image, draw_markers

__version__ = "0.1.0"

__all__ = [
    # Geometry
    "Quadrilateral",
    "rotation_matrix",
    "find_squares",
    # Sampling & codec
    "normalize_quad",
    "extract_grid",
    "decode",
    "encode",
    "hamming_distance",
    "border_errors",
    # Markers
    "Marker",
    "MarkerInfo",
    "MarkerRegistry",
    # Detection
    "DetectorConfig",
    "MarkerDetector",
    "get_markers",
    # Pose
    "CalibrationData",
    "DegeneratePoseError",
    "PoseEstimator",
    "PoseFilter",
    "PoseFilterConfig",
    "PoseResult",
    "solve_pnp",
    # Localization
    "CameraLocalizer",
    "LocalizationResult",
    "ThresholdWalkConfig",
    # Rendering
    "draw_marker_image",
    "draw_markers",
]
