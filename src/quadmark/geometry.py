"""
Geometric primitives used by the marker pipeline.

Quadrilaterals are stored as fixed (4, 2) float32 arrays so they can be
handed straight to OpenCV.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import cv2
import numpy as np


@dataclass
class Quadrilateral:
    """Ordered 4-point polygon in image coordinates.

    The starting corner is not fixed. Quads produced by ``find_squares``
    share one winding (negative signed area with y pointing down).
    """

    points: np.ndarray

    def __post_init__(self):
        points = np.asarray(self.points, dtype=np.float32).reshape(-1, 2)
        if points.shape[0] != 4:
            raise ValueError(f"Quadrilateral needs exactly 4 points, got {points.shape[0]}")
        self.points = points

    @classmethod
    def from_points(cls, a, b, c, d) -> Quadrilateral:
        return cls(np.array([a, b, c, d], dtype=np.float32))

    def area(self) -> float:
        """Absolute area of the quad."""
        return abs(self.signed_area())

    def signed_area(self) -> float:
        """Shoelace area; negative for TL->BL->BR->TR in image coordinates."""
        x = self.points[:, 0].astype(np.float64)
        y = self.points[:, 1].astype(np.float64)
        return float(0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))

    def center(self) -> Tuple[float, float]:
        center = self.points.mean(axis=0)
        return (float(center[0]), float(center[1]))

    def contains_point(self, point: Sequence[float]) -> bool:
        """True if the point lies inside the quad or on its boundary."""
        pt = (float(point[0]), float(point[1]))
        return cv2.pointPolygonTest(self.points.reshape(-1, 1, 2), pt, False) >= 0.0

    def rolled(self, shift: int = 1) -> Quadrilateral:
        """Copy with the corner sequence shifted left by ``shift`` positions."""
        return Quadrilateral(np.roll(self.points, -shift, axis=0))

    def with_winding(self, negative: bool = True) -> Quadrilateral:
        """Copy with the requested winding, keeping the first corner in place."""
        area = self.signed_area()
        if (area > 0 and negative) or (area < 0 and not negative):
            return Quadrilateral(self.points[[0, 3, 2, 1]])
        return Quadrilateral(self.points.copy())

    def copy(self) -> Quadrilateral:
        return Quadrilateral(self.points.copy())

    @staticmethod
    def largest(quads: Sequence[Quadrilateral]) -> Quadrilateral:
        """Return the quad with the biggest area (sequence must not be empty)."""
        if not quads:
            raise ValueError("Cannot pick the largest quad of an empty sequence")
        return max(quads, key=lambda quad: quad.area())


def rotation_matrix(euler: Sequence[float]) -> np.ndarray:
    """Rotation matrix Rz * Ry * Rx from Euler angles in radians."""
    rx_angle, ry_angle, rz_angle = (float(v) for v in euler)

    rx = np.array(
        [
            [1.0, 0.0, 0.0],
            [0.0, np.cos(rx_angle), -np.sin(rx_angle)],
            [0.0, np.sin(rx_angle), np.cos(rx_angle)],
        ]
    )
    ry = np.array(
        [
            [np.cos(ry_angle), 0.0, np.sin(ry_angle)],
            [0.0, 1.0, 0.0],
            [-np.sin(ry_angle), 0.0, np.cos(ry_angle)],
        ]
    )
    rz = np.array(
        [
            [np.cos(rz_angle), -np.sin(rz_angle), 0.0],
            [np.sin(rz_angle), np.cos(rz_angle), 0.0],
            [0.0, 0.0, 1.0],
        ]
    )
    return rz @ ry @ rx
