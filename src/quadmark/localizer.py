"""
Per-stream camera localization from known markers.

The detector itself is stateless. ``CameraLocalizer`` owns the state that
spans frames: the adaptive threshold block size that is walked while no
marker is visible, the known-marker registry and the pose filter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .detector import DetectorConfig, get_markers
from .marker import Marker, MarkerRegistry
from .pose import DegeneratePoseError, PoseEstimator, PoseFilter, PoseFilterConfig, PoseResult

LOGGER = logging.getLogger(__name__)


@dataclass
class ThresholdWalkConfig:
    """Range walked by the threshold block size while nothing is detected."""

    enabled: bool = True
    min_block_size: int = 3
    max_block_size: int = 21
    step: int = 2

    @classmethod
    def from_dict(cls, config: Optional[Dict]) -> ThresholdWalkConfig:
        config = config or {}
        return cls(
            enabled=config.get("enabled", True),
            min_block_size=int(config.get("min_block_size", 3)),
            max_block_size=int(config.get("max_block_size", 21)),
            step=int(config.get("step", 2)),
        )

    def initial_block_size(self) -> int:
        block_size = (self.min_block_size + self.max_block_size) // 2
        if block_size % 2 == 0:
            block_size += 1
        return block_size


@dataclass
class LocalizationResult:
    """Everything known about one processed frame."""

    markers: List[Marker] = field(default_factory=list)
    known_markers: List[Marker] = field(default_factory=list)
    pose: PoseResult = field(default_factory=lambda: PoseResult(success=False, method="camera"))
    block_size: int = 0

    @property
    def visible(self) -> bool:
        return len(self.known_markers) > 0


class CameraLocalizer:
    """Detects markers frame by frame and estimates the camera pose."""

    def __init__(self, config: Optional[Dict] = None, registry: Optional[MarkerRegistry] = None):
        self.config = config or {}
        self.detector_config = DetectorConfig.from_dict(self.config.get("detection"))
        self.walk_config = ThresholdWalkConfig.from_dict(self.config.get("threshold_walk"))

        if registry is None:
            registry = MarkerRegistry.from_config(self.config.get("known_markers"))
        self.registry = registry
        self.pose_estimator = PoseEstimator(self.config)
        self.pose_filter = PoseFilter(PoseFilterConfig.from_dict(self.config.get("pose_filter")))

        if self.walk_config.enabled:
            self.block_size = self.walk_config.initial_block_size()
        else:
            self.block_size = self.detector_config.threshold_block_size

    def reset(self):
        """Drop per-stream state."""
        self.pose_filter.reset()
        if self.walk_config.enabled:
            self.block_size = self.walk_config.initial_block_size()

    def _advance_block_size(self):
        self.block_size += self.walk_config.step
        if self.block_size > self.walk_config.max_block_size:
            self.block_size = self.walk_config.min_block_size
        LOGGER.debug("No markers found, threshold block size now %d", self.block_size)

    def process_frame(self, frame: np.ndarray, timestamp: Optional[float] = None) -> LocalizationResult:
        """Detect markers and estimate the camera pose for one frame."""
        block_size = self.block_size
        markers = get_markers(
            frame,
            cosine_limit=self.detector_config.cosine_limit,
            threshold_block_size=block_size,
            min_area=self.detector_config.min_area,
            approx_tolerance=self.detector_config.approx_tolerance,
        )

        if not markers and self.walk_config.enabled:
            self._advance_block_size()

        known = self.registry.attach(markers)
        result = LocalizationResult(markers=markers, known_markers=known, block_size=block_size)

        if not known:
            # Smoothing must not bridge a gap in which the camera may have moved
            if self.pose_filter.smoothed_pose is not None:
                LOGGER.debug("Known markers lost, pose filter reset")
                self.pose_filter.reset()
        else:
            try:
                pose = self.pose_estimator.estimate_camera_pose(known)
            except DegeneratePoseError as exc:
                LOGGER.warning("Camera pose unavailable: %s", exc)
            else:
                pose.timestamp = timestamp
                result.pose = self.pose_filter.filter(pose)

        return result
