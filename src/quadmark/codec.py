"""
Marker bit grid protocol.

A marker is a 7x7 grid of cells. The outer ring is a black border and the
inner 5x5 block carries data. Each interior row must equal one of four
5-bit codewords; the codeword is chosen by the row's two payload bits
(columns 2 and 4), which together give a 10-bit identifier.

Decoding tries the four 90 degree rotations in order and only accepts a
grid whose Hamming distance to the codeword set is exactly zero.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .marker import Marker

LOGGER = logging.getLogger(__name__)

GRID_SIZE = 7
MAX_BORDER_ERRORS = 3
MAX_MARKER_ID = 1023
PAYLOAD_COLUMNS = (2, 4)

# Indexed by the payload bits (col 2, col 4) of a row.
CODEWORDS = np.array(
    [
        [1, 0, 0, 0, 0],
        [1, 0, 1, 1, 1],
        [0, 1, 0, 0, 1],
        [0, 1, 1, 1, 0],
    ],
    dtype=bool,
)

_BORDER_MASK = np.ones((GRID_SIZE, GRID_SIZE), dtype=bool)
_BORDER_MASK[1:-1, 1:-1] = False


def border_errors(cells: np.ndarray) -> int:
    """Number of white cells in the outer ring."""
    return int(np.count_nonzero(cells[_BORDER_MASK]))


def hamming_distance(cells: np.ndarray) -> int:
    """Sum over interior rows of the distance to the nearest codeword."""
    interior = cells[1:-1, 1:-1].astype(bool)
    # (rows, codewords) mismatch counts
    mismatches = np.count_nonzero(interior[:, None, :] != CODEWORDS[None, :, :], axis=2)
    return int(mismatches.min(axis=1).sum())


def rotate(cells: np.ndarray) -> np.ndarray:
    """Rotate 90 degrees clockwise: new[i, j] = old[N - 1 - j, i].

    Returns a view, no data is copied.
    """
    return np.rot90(cells, -1)


def rotate_corners(points: np.ndarray) -> np.ndarray:
    """Shift the corner sequence left by one to follow a clockwise grid turn."""
    return np.roll(points, -1, axis=0)


def marker_id(cells: np.ndarray) -> int:
    """Read the 10-bit id from the payload columns, first row most significant."""
    value = 0
    for row in range(1, GRID_SIZE - 1):
        for col in PAYLOAD_COLUMNS:
            value = (value << 1) | int(bool(cells[row, col]))
    return value


def encode(value: int) -> np.ndarray:
    """Build the canonical (unrotated) grid for a marker id."""
    if not 0 <= value <= MAX_MARKER_ID:
        raise ValueError(f"Marker id must be in [0, {MAX_MARKER_ID}], got {value}")

    cells = np.zeros((GRID_SIZE, GRID_SIZE), dtype=bool)
    for row in range(1, GRID_SIZE - 1):
        shift = 2 * (GRID_SIZE - 2 - row)
        pair = (value >> shift) & 0b11
        cells[row, 1:-1] = CODEWORDS[pair]
    return cells


def decode(cells: np.ndarray, corners: Optional[np.ndarray]) -> Optional[Marker]:
    """Validate a sampled grid and build the marker it encodes.

    Args:
        cells: Sampled 7x7 boolean grid
        corners: Image-space corners of the quad the grid was sampled from

    Returns:
        The decoded marker, or None when the candidate is not a valid marker
    """
    if corners is None or len(corners) < 4:
        LOGGER.debug("Candidate rejected: missing corner points")
        return None

    cells = np.asarray(cells, dtype=bool)
    if cells.shape != (GRID_SIZE, GRID_SIZE):
        LOGGER.debug("Candidate rejected: grid shape %s", cells.shape)
        return None

    bad = border_errors(cells)
    if bad > MAX_BORDER_ERRORS:
        LOGGER.debug("Candidate rejected: %d white border cells", bad)
        return None

    work = cells
    points = np.asarray(corners, dtype=np.float32).reshape(-1, 2)
    for rotation in range(4):
        if hamming_distance(work) == 0:
            validated = np.array(work, dtype=bool)
            validated.setflags(write=False)
            return Marker(
                marker_id=marker_id(validated),
                cells=validated,
                rotation=rotation,
                projected=points.copy(),
            )
        work = rotate(work)
        points = rotate_corners(points)

    LOGGER.debug("Candidate rejected: no rotation matches the codewords")
    return None


def is_valid(cells: np.ndarray) -> bool:
    """True if the grid decodes in some rotation."""
    return decode(cells, np.zeros((4, 2), dtype=np.float32)) is not None
