"""
Tests for marker detection functionality.
"""

import os
import sys
import unittest

import cv2
import numpy as np

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from quadmark import codec  # type: ignore
from quadmark.detector import (  # type: ignore
    DetectorConfig,
    MarkerDetector,
    binarize,
    get_markers,
    suppress_duplicates,
    to_grayscale,
)
from quadmark.marker import Marker  # type: ignore
from quadmark.render import place_marker  # type: ignore

EXPECTED_CORNERS = np.array([[80, 80], [80, 220], [220, 220], [220, 80]], dtype=np.float32)


def unambiguous(marker_ids):
    """Ids whose turned grids never decode as another marker."""
    return [
        marker_id for marker_id in marker_ids
        if not any(codec.hamming_distance(np.rot90(codec.encode(marker_id), t)) == 0 for t in (1, 2, 3))
    ]


def single_marker_frame(marker_id=42, turns=0):
    canvas = np.full((300, 300), 255, dtype=np.uint8)
    place_marker(canvas, marker_id, (80, 80), 140, turns)
    return cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)


class TestMarkerDetect(unittest.TestCase):
    """Test cases for the full detection pipeline."""

    def test_single_marker_end_to_end(self):
        markers = get_markers(single_marker_frame(42))

        self.assertEqual(len(markers), 1)
        marker = markers[0]
        self.assertEqual(marker.marker_id, 42)
        self.assertIn(marker.rotation, range(4))
        self.assertEqual(marker.projected.shape, (4, 2))
        np.testing.assert_allclose(marker.projected, EXPECTED_CORNERS, atol=3)

    def test_turned_marker_keeps_physical_corner_order(self):
        for turns in (1, 2, 3):
            markers = get_markers(single_marker_frame(42, turns))
            self.assertEqual(len(markers), 1)
            self.assertEqual(markers[0].marker_id, 42)
            np.testing.assert_allclose(
                markers[0].projected, np.roll(EXPECTED_CORNERS, -turns, axis=0), atol=3
            )

    def test_several_markers_in_one_frame(self):
        marker_ids = unambiguous([42, 100, 513, 777, 900, 5, 300, 640])[:4]
        self.assertEqual(len(marker_ids), 4)

        canvas = np.full((300, 600), 255, dtype=np.uint8)
        for index, marker_id in enumerate(marker_ids):
            place_marker(canvas, marker_id, (30 + 140 * index, 90), 105)

        markers = get_markers(canvas)
        self.assertEqual(sorted(m.marker_id for m in markers), sorted(marker_ids))

    def test_colour_formats_agree(self):
        frame = single_marker_frame(42)
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        bgra = cv2.cvtColor(frame, cv2.COLOR_BGR2BGRA)

        for image in (frame, gray, bgra):
            markers = get_markers(image)
            self.assertEqual([m.marker_id for m in markers], [42])

    def test_input_is_not_modified(self):
        frame = single_marker_frame(42)
        original = frame.copy()
        get_markers(frame)
        np.testing.assert_array_equal(frame, original)

    def test_blank_frame_has_no_markers(self):
        self.assertEqual(get_markers(np.full((200, 200, 3), 255, dtype=np.uint8)), [])
        self.assertEqual(get_markers(np.zeros((200, 200), dtype=np.uint8)), [])

    def test_plain_black_square_is_not_a_marker(self):
        canvas = np.full((300, 300), 255, dtype=np.uint8)
        cv2.rectangle(canvas, (80, 80), (219, 219), 0, -1)
        self.assertEqual(get_markers(canvas), [])

    def test_invalid_inputs_raise(self):
        with self.assertRaises(ValueError):
            get_markers(None)
        with self.assertRaises(ValueError):
            get_markers(np.zeros((0, 0, 3), dtype=np.uint8))
        with self.assertRaises(ValueError):
            get_markers(np.zeros((50, 50), dtype=np.float32))
        with self.assertRaises(ValueError):
            get_markers(np.zeros((50, 50, 2), dtype=np.uint8))

    def test_block_size_must_be_odd(self):
        frame = single_marker_frame(42)
        with self.assertRaises(ValueError):
            get_markers(frame, threshold_block_size=8)
        with self.assertRaises(ValueError):
            get_markers(frame, threshold_block_size=1)


class TestDetectorHelpers(unittest.TestCase):
    """Configuration and pipeline helpers."""

    def test_config_defaults_and_overrides(self):
        config = DetectorConfig.from_dict(None)
        self.assertEqual(config.cosine_limit, 0.7)
        self.assertEqual(config.threshold_block_size, 7)

        config = DetectorConfig.from_dict({"threshold_block_size": 11, "min_area": 50})
        self.assertEqual(config.threshold_block_size, 11)
        self.assertEqual(config.min_area, 50.0)
        self.assertEqual(config.approx_tolerance, 0.025)

    def test_detector_wrapper(self):
        detector = MarkerDetector({"threshold_block_size": 9})
        markers = detector.detect(single_marker_frame(42))
        self.assertEqual([m.marker_id for m in markers], [42])
        markers = detector.detect(single_marker_frame(42), threshold_block_size=5)
        self.assertEqual([m.marker_id for m in markers], [42])

    def test_grayscale_passthrough(self):
        gray = np.zeros((4, 4), dtype=np.uint8)
        self.assertIs(to_grayscale(gray), gray)
        self.assertEqual(to_grayscale(np.zeros((4, 4, 1), dtype=np.uint8)).shape, (4, 4))

    def test_binarize_uniform_image(self):
        binary = binarize(np.full((20, 20), 128, dtype=np.uint8), 7)
        self.assertEqual(binary.dtype, np.uint8)
        self.assertTrue(np.all(binary == 0))

    def test_suppress_duplicates_keeps_smaller(self):
        cells = codec.encode(3)
        outer = Marker(3, cells, 0, np.array([[0, 0], [0, 100], [100, 100], [100, 0]], dtype=np.float32))
        inner = Marker(3, cells, 0, np.array([[4, 4], [4, 96], [96, 96], [96, 4]], dtype=np.float32))
        other = Marker(8, codec.encode(8), 0, inner.projected.copy())

        kept = suppress_duplicates([outer, other, inner])
        self.assertEqual(len(kept), 2)
        self.assertIs(kept[0], inner)
        self.assertIs(kept[1], other)

    def test_suppress_duplicates_keeps_separate_instances(self):
        cells = codec.encode(3)
        left = Marker(3, cells, 0, np.array([[0, 0], [0, 50], [50, 50], [50, 0]], dtype=np.float32))
        right = Marker(3, cells, 0, np.array([[100, 0], [100, 50], [150, 50], [150, 0]], dtype=np.float32))
        self.assertEqual(len(suppress_duplicates([left, right])), 2)


if __name__ == "__main__":
    unittest.main()
