"""
Marker and camera pose estimation.

Wraps OpenCV's PnP solver to recover marker poses in the camera frame and
the camera pose in the world frame defined by known markers. Includes
temporal smoothing and jump rejection for per-frame camera poses.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Dict, Optional, Sequence

import cv2
import numpy as np

from .marker import Marker

LOGGER = logging.getLogger(__name__)

PNP_METHODS = {
    "iterative": cv2.SOLVEPNP_ITERATIVE,
    "epnp": cv2.SOLVEPNP_EPNP,
    "ippe": cv2.SOLVEPNP_IPPE,
    "ippe_square": cv2.SOLVEPNP_IPPE_SQUARE,
}


class DegeneratePoseError(ValueError):
    """Raised when correspondences cannot produce a reliable pose."""


@dataclass
class CalibrationData:
    """Container for camera calibration parameters."""

    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray


@dataclass
class PoseResult:
    """Structured container for pose estimation output."""

    success: bool
    rotation_vector: Optional[np.ndarray] = None
    translation_vector: Optional[np.ndarray] = None
    rotation_matrix: Optional[np.ndarray] = None
    method: str = ""
    inliers: int = 0
    reprojection_error: Optional[float] = None
    timestamp: Optional[float] = None
    is_smoothed: bool = False

    def as_matrix(self) -> Optional[np.ndarray]:
        """Return the 4x4 transformation matrix if pose is valid."""
        if not self.success or self.rotation_matrix is None or self.translation_vector is None:
            return None
        transform = np.eye(4, dtype=np.float64)
        transform[:3, :3] = self.rotation_matrix
        transform[:3, 3] = self.translation_vector.flatten()
        return transform

    def inverted(self) -> PoseResult:
        """Inverse transform: world->camera becomes camera->world."""
        if not self.success or self.rotation_matrix is None or self.translation_vector is None:
            return self.copy()
        rotation = self.rotation_matrix.T
        translation = -rotation @ self.translation_vector.reshape(3, 1)
        rvec, _ = cv2.Rodrigues(rotation)
        return PoseResult(
            success=True,
            rotation_vector=rvec,
            translation_vector=translation,
            rotation_matrix=rotation,
            method=self.method,
            inliers=self.inliers,
            reprojection_error=self.reprojection_error,
            timestamp=self.timestamp,
            is_smoothed=self.is_smoothed,
        )

    def copy(self) -> PoseResult:
        """Create a copy of this pose result."""
        return PoseResult(
            success=self.success,
            rotation_vector=self.rotation_vector.copy() if self.rotation_vector is not None else None,
            translation_vector=self.translation_vector.copy() if self.translation_vector is not None else None,
            rotation_matrix=self.rotation_matrix.copy() if self.rotation_matrix is not None else None,
            method=self.method,
            inliers=self.inliers,
            reprojection_error=self.reprojection_error,
            timestamp=self.timestamp,
            is_smoothed=self.is_smoothed,
        )


def reprojection_error(
    world_points: np.ndarray,
    image_points: np.ndarray,
    rvec: np.ndarray,
    tvec: np.ndarray,
    calibration: CalibrationData,
) -> float:
    """Mean pixel distance between observed points and their reprojection."""
    projected, _ = cv2.projectPoints(
        np.asarray(world_points, dtype=np.float64).reshape(-1, 3),
        rvec,
        tvec,
        calibration.camera_matrix,
        calibration.dist_coeffs,
    )
    residuals = projected.reshape(-1, 2) - np.asarray(image_points, dtype=np.float64).reshape(-1, 2)
    return float(np.linalg.norm(residuals, axis=1).mean())


def solve_pnp(
    world_points: np.ndarray,
    image_points: np.ndarray,
    calibration: CalibrationData,
    method: str = "iterative",
) -> PoseResult:
    """Solve the pose mapping world points onto their image projections.

    Raises:
        DegeneratePoseError: fewer than 4 correspondences, mismatched inputs,
            or the solver failed to converge
    """
    world = np.asarray(world_points, dtype=np.float64).reshape(-1, 3)
    image = np.asarray(image_points, dtype=np.float64).reshape(-1, 2)

    if len(world) != len(image):
        raise DegeneratePoseError(
            f"Correspondence count mismatch: {len(world)} world vs {len(image)} image points"
        )
    if len(world) < 4:
        raise DegeneratePoseError(f"At least 4 correspondences are required, got {len(world)}")
    if method not in PNP_METHODS:
        raise ValueError(f"Unknown PnP method '{method}'")

    try:
        success, rvec, tvec = cv2.solvePnP(
            world,
            image,
            calibration.camera_matrix,
            calibration.dist_coeffs,
            flags=PNP_METHODS[method],
        )
    except cv2.error as exc:
        raise DegeneratePoseError(f"solvePnP failed: {exc}") from exc

    if not success or not np.all(np.isfinite(rvec)) or not np.all(np.isfinite(tvec)):
        raise DegeneratePoseError("solvePnP did not converge")

    rotation, _ = cv2.Rodrigues(rvec)
    error = reprojection_error(world, image, rvec, tvec, calibration)

    return PoseResult(
        success=True,
        rotation_vector=rvec,
        translation_vector=tvec,
        rotation_matrix=rotation,
        method=method,
        inliers=len(world),
        reprojection_error=error,
    )


@dataclass
class PoseFilterConfig:
    """Configuration for pose filtering and smoothing."""

    enable_smoothing: bool = True
    smoothing_alpha: float = 0.3  # EMA factor (0 = max smooth, 1 = no smooth)
    enable_outlier_rejection: bool = True
    max_translation_jump: float = 0.5  # Max allowed jump in meters
    max_rotation_jump: float = 0.5  # Max allowed rotation change in radians
    history_size: int = 10  # Number of poses to keep for median filtering
    use_median_filter: bool = False  # Use median instead of EMA
    outlier_reset_frames: int = 3  # Consecutive rejections before accepting the new pose

    @classmethod
    def from_dict(cls, config: Optional[Dict]) -> PoseFilterConfig:
        config = config or {}
        return cls(
            enable_smoothing=config.get("enable_smoothing", True),
            smoothing_alpha=config.get("smoothing_alpha", 0.3),
            enable_outlier_rejection=config.get("enable_outlier_rejection", True),
            max_translation_jump=config.get("max_translation_jump", 0.5),
            max_rotation_jump=config.get("max_rotation_jump", 0.5),
            history_size=config.get("history_size", 10),
            use_median_filter=config.get("use_median_filter", False),
            outlier_reset_frames=int(config.get("outlier_reset_frames", 3)),
        )


class PoseFilter:
    """
    Temporal filter for camera pose stabilization.

    Applies exponential moving average (or median) smoothing and rejects
    poses that jump too far from the current estimate.
    """

    def __init__(self, config: Optional[PoseFilterConfig] = None):
        self.config = config or PoseFilterConfig()
        self.pose_history: Deque[PoseResult] = deque(maxlen=self.config.history_size)
        self.smoothed_pose: Optional[PoseResult] = None
        self._ema_rotation: Optional[np.ndarray] = None
        self._ema_translation: Optional[np.ndarray] = None
        self.rejected_count = 0

    def reset(self):
        """Reset filter state."""
        self.rejected_count = 0
        self.pose_history.clear()
        self.smoothed_pose = None
        self._ema_rotation = None
        self._ema_translation = None

    def filter(self, pose: PoseResult) -> PoseResult:
        """Apply filtering to a pose estimate.

        Args:
            pose: Raw pose estimate

        Returns:
            Filtered/smoothed pose
        """
        if not pose.success:
            return pose

        if self.config.enable_outlier_rejection and self._is_outlier(pose):
            self.rejected_count += 1
            if self.rejected_count < self.config.outlier_reset_frames:
                LOGGER.debug("Pose rejected as outlier (%d in a row)", self.rejected_count)
                return self.smoothed_pose.copy()
            # The jump persisted, so the camera really moved
            LOGGER.info("Pose jump persisted for %d frames, filter re-seeded", self.rejected_count)
            self.reset()

        self.rejected_count = 0
        self.pose_history.append(pose)

        if not self.config.enable_smoothing:
            self.smoothed_pose = pose.copy()
            return self.smoothed_pose

        if self.config.use_median_filter:
            smoothed = self._apply_median_filter(pose)
        else:
            smoothed = self._apply_ema_filter(pose)

        self.smoothed_pose = smoothed
        return smoothed

    def _is_outlier(self, pose: PoseResult) -> bool:
        """Check if pose jumps too far from the smoothed estimate."""
        if self.smoothed_pose is None:
            return False

        if pose.translation_vector is None or self.smoothed_pose.translation_vector is None:
            return False

        t_diff = np.linalg.norm(pose.translation_vector - self.smoothed_pose.translation_vector)
        if t_diff > self.config.max_translation_jump:
            LOGGER.debug("Translation jump: %.3f > %.3f", t_diff, self.config.max_translation_jump)
            return True

        if pose.rotation_vector is not None and self.smoothed_pose.rotation_vector is not None:
            r_diff = np.linalg.norm(pose.rotation_vector - self.smoothed_pose.rotation_vector)
            if r_diff > self.config.max_rotation_jump:
                LOGGER.debug("Rotation jump: %.3f > %.3f", r_diff, self.config.max_rotation_jump)
                return True

        return False

    def _apply_ema_filter(self, pose: PoseResult) -> PoseResult:
        """Apply exponential moving average smoothing."""
        alpha = self.config.smoothing_alpha

        if pose.rotation_vector is None or pose.translation_vector is None:
            return pose.copy()

        if self._ema_rotation is None:
            self._ema_rotation = pose.rotation_vector.copy()
            self._ema_translation = pose.translation_vector.copy()
        else:
            self._ema_rotation = alpha * pose.rotation_vector + (1 - alpha) * self._ema_rotation
            self._ema_translation = alpha * pose.translation_vector + (1 - alpha) * self._ema_translation

        R_smoothed, _ = cv2.Rodrigues(self._ema_rotation)

        return PoseResult(
            success=True,
            rotation_vector=self._ema_rotation.copy(),
            translation_vector=self._ema_translation.copy(),
            rotation_matrix=R_smoothed,
            method=pose.method,
            inliers=pose.inliers,
            reprojection_error=pose.reprojection_error,
            timestamp=pose.timestamp,
            is_smoothed=True,
        )

    def _apply_median_filter(self, pose: PoseResult) -> PoseResult:
        """Apply median filtering over recent history."""
        rotations = [
            p.rotation_vector.flatten()
            for p in self.pose_history
            if p.success and p.rotation_vector is not None and p.translation_vector is not None
        ]
        translations = [
            p.translation_vector.flatten()
            for p in self.pose_history
            if p.success and p.rotation_vector is not None and p.translation_vector is not None
        ]

        if len(rotations) < 3:
            return pose.copy()

        r_median = np.median(np.array(rotations), axis=0).reshape(3, 1)
        t_median = np.median(np.array(translations), axis=0).reshape(3, 1)

        R_median, _ = cv2.Rodrigues(r_median)

        return PoseResult(
            success=True,
            rotation_vector=r_median,
            translation_vector=t_median,
            rotation_matrix=R_median,
            method=pose.method,
            inliers=pose.inliers,
            reprojection_error=pose.reprojection_error,
            timestamp=pose.timestamp,
            is_smoothed=True,
        )


class PoseEstimator:
    """
    Pose estimation from decoded markers.

    Supports:
    - Pose of a single marker in the camera frame
    - Camera pose in the world frame from all known markers in view
    - Calibration from file or inline config
    """

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}
        self.calibration_config = self.config.get("calibration", {})
        self.pnp_method = self.config.get("pnp_method", "iterative")

        self.calibration: Optional[CalibrationData] = None
        self.initialized = False

    # ------------------------------------------------------------------ #
    # Initialization / calibration
    # ------------------------------------------------------------------ #
    def initialize(self) -> bool:
        """Load calibration data and prepare estimator."""
        self.calibration = self._load_calibration(self.calibration_config)
        self.initialized = True
        LOGGER.info("Pose estimator initialized with calibration matrix:\n%s", self.calibration.camera_matrix)
        return True

    @staticmethod
    def _load_calibration(config: Dict) -> CalibrationData:
        """Load calibration data from config or external file."""
        calibration_file = config.get("calibration_file")

        if calibration_file:
            data = PoseEstimator._read_calibration_file(calibration_file)
        else:
            data = {
                "camera_matrix": config.get("camera_matrix"),
                "dist_coeffs": config.get("dist_coeffs"),
            }

        if data.get("camera_matrix") is None:
            raise ValueError("Camera matrix must be provided for pose estimation.")

        camera_matrix = np.array(data["camera_matrix"], dtype=np.float64).reshape(3, 3)
        dist_coeffs = PoseEstimator._normalize_dist_coeffs(data.get("dist_coeffs"))

        return CalibrationData(camera_matrix=camera_matrix, dist_coeffs=dist_coeffs)

    @staticmethod
    def _read_calibration_file(path: str) -> Dict:
        calib_path = Path(path)
        if not calib_path.exists():
            raise FileNotFoundError(f"Calibration file not found: {path}")
        with calib_path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
        return payload

    @staticmethod
    def _normalize_dist_coeffs(coeffs: Optional[Sequence[float]]) -> np.ndarray:
        if coeffs is None:
            coeffs = [0.0, 0.0, 0.0, 0.0, 0.0]
        arr = np.array(coeffs, dtype=np.float64).reshape(-1, 1)
        return arr

    def _ensure_initialized(self):
        if not self.initialized or self.calibration is None:
            self.initialize()

    # ------------------------------------------------------------------ #
    # Marker-based pose estimation
    # ------------------------------------------------------------------ #
    def estimate_marker_pose(self, marker: Marker, size: Optional[float] = None) -> PoseResult:
        """Pose of a single marker in the camera frame.

        Uses the attached world corners when ``size`` is not given; otherwise
        a marker-centred square of edge ``size``.
        """
        self._ensure_initialized()

        if size is not None:
            half = size / 2.0
            object_points = np.array(
                [
                    [-half, -half, 0.0],
                    [-half, half, 0.0],
                    [half, half, 0.0],
                    [half, -half, 0.0],
                ],
                dtype=np.float64,
            )
        elif marker.info is not None:
            object_points = marker.info.world
        else:
            raise DegeneratePoseError(f"Marker {marker.marker_id} has no size or world info")

        pose = solve_pnp(object_points, marker.projected, self.calibration, self.pnp_method)
        pose.method = "marker"
        return pose

    def estimate_camera_pose(self, markers: Sequence[Marker]) -> PoseResult:
        """Camera pose in the world frame from every marker with attached info.

        Raises:
            DegeneratePoseError: no known marker in view, or the solver failed
        """
        self._ensure_initialized()

        known = [marker for marker in markers if marker.info is not None]
        if not known:
            raise DegeneratePoseError("No known markers in view")

        world = np.concatenate([marker.info.world for marker in known]).astype(np.float64)
        image = np.concatenate([marker.projected for marker in known]).astype(np.float64)

        pose = solve_pnp(world, image, self.calibration, self.pnp_method)
        camera = pose.inverted()
        camera.method = "camera"
        return camera

    # ------------------------------------------------------------------ #
    # Utility helpers
    # ------------------------------------------------------------------ #
    def reprojection_error(
        self,
        object_points: np.ndarray,
        rvec: np.ndarray,
        tvec: np.ndarray,
        image_points: np.ndarray,
    ) -> float:
        self._ensure_initialized()
        return reprojection_error(object_points, image_points, rvec, tvec, self.calibration)

    def project_points(
        self, points_3d: np.ndarray, pose: PoseResult
    ) -> Optional[np.ndarray]:
        """Project 3D points into the image using a world->camera pose."""
        if not pose or not pose.success or pose.rotation_vector is None or pose.translation_vector is None:
            return None
        self._ensure_initialized()
        image_points, _ = cv2.projectPoints(
            np.asarray(points_3d, dtype=np.float64),
            pose.rotation_vector,
            pose.translation_vector,
            self.calibration.camera_matrix,
            self.calibration.dist_coeffs,
        )
        return image_points.reshape(-1, 2)

    def project_axes(self, pose: PoseResult, axis_length: float = 0.05) -> Optional[np.ndarray]:
        """Project canonical XYZ axes for visualisation."""
        axes = np.array(
            [
                [0.0, 0.0, 0.0],
                [axis_length, 0.0, 0.0],
                [0.0, axis_length, 0.0],
                [0.0, 0.0, axis_length],
            ],
            dtype=np.float64,
        )
        return self.project_points(axes, pose)

    def decompose_pose(self, pose: PoseResult) -> Optional[Dict]:
        """Decompose pose into interpretable components.

        Returns:
            Dictionary with:
            - euler_angles: (roll, pitch, yaw) in degrees
            - position: (x, y, z) translation
            - distance: distance from origin
        """
        if not pose.success or pose.rotation_matrix is None or pose.translation_vector is None:
            return None

        R = pose.rotation_matrix
        sy = np.sqrt(R[0, 0] ** 2 + R[1, 0] ** 2)
        singular = sy < 1e-6

        if not singular:
            roll = np.arctan2(R[2, 1], R[2, 2])
            pitch = np.arctan2(-R[2, 0], sy)
            yaw = np.arctan2(R[1, 0], R[0, 0])
        else:
            roll = np.arctan2(-R[1, 2], R[1, 1])
            pitch = np.arctan2(-R[2, 0], sy)
            yaw = 0

        t = pose.translation_vector.flatten()

        return {
            "euler_angles": (float(np.degrees(roll)), float(np.degrees(pitch)), float(np.degrees(yaw))),
            "position": (float(t[0]), float(t[1]), float(t[2])),
            "distance": float(np.linalg.norm(t)),
        }
