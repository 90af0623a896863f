"""
Write printable marker images.

Each marker is saved as its own PNG with a white quiet zone, and an optional
contact sheet collects all of them on one page.

Usage:
    python examples/generate_markers.py 0 1 2 42 --output markers/
    python examples/generate_markers.py 0-15 --sheet sheet.png
"""

import argparse
import logging
import os
import sys

import cv2
import numpy as np

# Add src directory to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from quadmark.codec import MAX_MARKER_ID  # type: ignore
from quadmark.render import draw_marker_image  # type: ignore
from quadmark.utils import setup_logging  # type: ignore


LOGGER = logging.getLogger(__name__)


def parse_ids(tokens):
    """Expand tokens like ``3`` and ``10-14`` into a sorted id list."""
    ids = set()
    for token in tokens:
        if "-" in token:
            start, end = (int(part) for part in token.split("-", 1))
            ids.update(range(start, end + 1))
        else:
            ids.add(int(token))

    invalid = [marker_id for marker_id in ids if not 0 <= marker_id <= MAX_MARKER_ID]
    if invalid:
        raise ValueError(f"Marker ids must be in 0..{MAX_MARKER_ID}: {sorted(invalid)}")
    return sorted(ids)


def marker_tile(marker_id, size, margin):
    """Marker image with a white border and its id printed underneath."""
    tile = np.full((size + 2 * margin + 20, size + 2 * margin), 255, dtype=np.uint8)
    tile[margin:margin + size, margin:margin + size] = draw_marker_image(marker_id, size)
    cv2.putText(
        tile,
        f"id {marker_id}",
        (margin, size + 2 * margin + 12),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.5,
        0,
        1,
        cv2.LINE_AA,
    )
    return tile


def build_sheet(tiles, columns):
    rows = [tiles[i:i + columns] for i in range(0, len(tiles), columns)]
    blank = np.full_like(tiles[0], 255)
    return np.vstack([np.hstack(row + [blank] * (columns - len(row))) for row in rows])


def main():
    parser = argparse.ArgumentParser(description="Generate quadmark marker images")
    parser.add_argument("ids", nargs="+", help="Marker ids or ranges such as 0-15")
    parser.add_argument("--size", type=int, default=350, help="Marker edge in pixels (multiple of 7 keeps cells crisp)")
    parser.add_argument("--margin", type=int, default=50, help="White quiet zone in pixels")
    parser.add_argument("--output", "-o", default="markers", help="Directory for individual images")
    parser.add_argument("--sheet", help="Optional path for a contact sheet of all markers")
    parser.add_argument("--columns", type=int, default=4, help="Markers per sheet row")
    args = parser.parse_args()

    setup_logging()

    try:
        ids = parse_ids(args.ids)
    except ValueError as e:
        LOGGER.error("%s", e)
        sys.exit(2)

    os.makedirs(args.output, exist_ok=True)
    tiles = []
    for marker_id in ids:
        tile = marker_tile(marker_id, args.size, args.margin)
        path = os.path.join(args.output, f"marker_{marker_id:04d}.png")
        cv2.imwrite(path, tile)
        tiles.append(tile)
    LOGGER.info("Wrote %d marker images to %s", len(tiles), args.output)

    if args.sheet:
        cv2.imwrite(args.sheet, build_sheet(tiles, args.columns))
        LOGGER.info("Contact sheet written to %s", args.sheet)


if __name__ == "__main__":
    main()
