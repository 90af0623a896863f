"""
Marker records and the known-marker registry.

``Marker`` is what the detector returns. ``MarkerInfo`` describes where a
marker physically sits in the world, and ``MarkerRegistry`` maps ids to
that information so detections can be tied to world coordinates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .geometry import Quadrilateral, rotation_matrix

LOGGER = logging.getLogger(__name__)


@dataclass
class MarkerInfo:
    """Real-world description of a marker.

    Units are meters for size and position, radians for rotation. World
    corners are stored in the same order as ``Marker.projected``.
    """

    marker_id: int
    size: float = 1.0
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    world: np.ndarray = field(init=False)

    def __post_init__(self):
        if self.size <= 0:
            raise ValueError(f"Marker size must be positive, got {self.size}")
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(3)
        self.world = self.calculate_world_points()

    def calculate_world_points(self) -> np.ndarray:
        """Rotate a size-centred square about its centre, then translate it."""
        half = self.size / 2.0
        square = np.array(
            [
                [-half, -half, 0.0],
                [-half, half, 0.0],
                [half, half, 0.0],
                [half, -half, 0.0],
            ],
            dtype=np.float64,
        )
        rotated = square @ rotation_matrix(self.rotation).T
        return (rotated + self.position).astype(np.float32)

    @classmethod
    def from_dict(cls, data: Dict) -> MarkerInfo:
        return cls(
            marker_id=int(data["id"]),
            size=float(data.get("size", 1.0)),
            position=data.get("position", [0.0, 0.0, 0.0]),
            rotation=data.get("rotation", [0.0, 0.0, 0.0]),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.marker_id,
            "size": self.size,
            "position": self.position.tolist(),
            "rotation": self.rotation.tolist(),
        }


@dataclass
class Marker:
    """A decoded and validated marker.

    ``projected`` holds the image-space corners in canonical order after
    rotation normalization, so corner 0 is always the same physical corner.
    """

    marker_id: int
    cells: np.ndarray
    rotation: int
    projected: np.ndarray
    info: Optional[MarkerInfo] = None

    def attach_info(self, info: MarkerInfo):
        self.info = info

    @property
    def quad(self) -> Quadrilateral:
        return Quadrilateral(self.projected)

    @property
    def center(self) -> Tuple[float, float]:
        return self.quad.center()

    @property
    def area(self) -> float:
        return self.quad.area()

    @property
    def world_points(self) -> Optional[np.ndarray]:
        return None if self.info is None else self.info.world


class MarkerRegistry:
    """Known markers indexed by id."""

    def __init__(self, markers: Optional[Sequence[MarkerInfo]] = None):
        self._known: Dict[int, MarkerInfo] = {}
        for info in markers or []:
            self.register(info)

    @classmethod
    def from_config(cls, entries: Optional[Sequence[Dict]]) -> MarkerRegistry:
        return cls([MarkerInfo.from_dict(entry) for entry in entries or []])

    def to_config(self) -> List[Dict]:
        return [info.to_dict() for info in self]

    def register(self, info: MarkerInfo):
        """Add a marker, replacing any entry with the same id."""
        if info.marker_id in self._known:
            LOGGER.info("Marker %d already exists, replaced", info.marker_id)
        else:
            LOGGER.info("Marker %d added", info.marker_id)
        self._known[info.marker_id] = info

    def remove(self, marker_id: int) -> bool:
        if self._known.pop(marker_id, None) is None:
            return False
        LOGGER.info("Marker %d removed", marker_id)
        return True

    def get(self, marker_id: int) -> Optional[MarkerInfo]:
        return self._known.get(marker_id)

    def attach(self, markers: Sequence[Marker]) -> List[Marker]:
        """Attach known info to detected markers and return the known ones."""
        found = []
        for marker in markers:
            info = self._known.get(marker.marker_id)
            if info is not None:
                marker.attach_info(info)
                found.append(marker)
        return found

    def clear(self):
        self._known.clear()

    def __contains__(self, marker_id: int) -> bool:
        return marker_id in self._known

    def __len__(self) -> int:
        return len(self._known)

    def __iter__(self) -> Iterator[MarkerInfo]:
        return iter(sorted(self._known.values(), key=lambda info: info.marker_id))
