"""
Tests for the marker bit grid protocol.
"""

import os
import sys
import unittest

import numpy as np

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from quadmark import codec  # type: ignore

CORNERS = np.array([[0.0, 0.0], [0.0, 10.0], [10.0, 10.0], [10.0, 0.0]], dtype=np.float32)


def rotation_ambiguous(cells):
    """True if a turned copy of the grid also matches the codewords."""
    return any(codec.hamming_distance(np.rot90(cells, turns)) == 0 for turns in (1, 2, 3))


class TestEncodeDecode(unittest.TestCase):
    """Id round trips and grid layout."""

    def test_every_id_round_trips_unrotated(self):
        for marker_id in range(codec.MAX_MARKER_ID + 1):
            cells = codec.encode(marker_id)
            marker = codec.decode(cells, CORNERS)
            self.assertIsNotNone(marker, f"id {marker_id} did not decode")
            self.assertEqual(marker.marker_id, marker_id)
            self.assertEqual(marker.rotation, 0)
            np.testing.assert_array_equal(marker.projected, CORNERS)

    def test_encoded_grid_layout(self):
        cells = codec.encode(42)
        self.assertEqual(cells.shape, (7, 7))
        self.assertEqual(codec.border_errors(cells), 0)
        self.assertEqual(codec.hamming_distance(cells), 0)
        # 42 = 00 00 10 10 10
        np.testing.assert_array_equal(cells[1, 1:6], [1, 0, 0, 0, 0])
        np.testing.assert_array_equal(cells[3, 1:6], [0, 1, 0, 0, 1])

    def test_marker_id_reads_payload_columns(self):
        cells = np.zeros((7, 7), dtype=bool)
        cells[1, 2] = True
        self.assertEqual(codec.marker_id(cells), 512)
        cells[5, 4] = True
        self.assertEqual(codec.marker_id(cells), 513)

    def test_encode_rejects_out_of_range(self):
        with self.assertRaises(ValueError):
            codec.encode(-1)
        with self.assertRaises(ValueError):
            codec.encode(1024)

    def test_decoded_cells_are_read_only(self):
        marker = codec.decode(codec.encode(5), CORNERS)
        with self.assertRaises(ValueError):
            marker.cells[0, 0] = True


class TestRotation(unittest.TestCase):
    """Rotation handling and corner realignment."""

    def test_rotate_is_clockwise_transpose_with_reversal(self):
        cells = np.arange(49).reshape(7, 7)
        rotated = codec.rotate(cells)
        for i in range(7):
            for j in range(7):
                self.assertEqual(rotated[i, j], cells[6 - j, i])

    def test_rotate_corners_shifts_left(self):
        shifted = codec.rotate_corners(CORNERS)
        np.testing.assert_array_equal(shifted, CORNERS[[1, 2, 3, 0]])

    def test_rotation_invariance_of_id(self):
        checked = 0
        for marker_id in range(0, codec.MAX_MARKER_ID + 1, 7):
            cells = codec.encode(marker_id)
            if rotation_ambiguous(cells):
                continue
            checked += 1
            for turns in (1, 2, 3):
                marker = codec.decode(np.rot90(cells, turns), CORNERS)
                self.assertIsNotNone(marker)
                self.assertEqual(marker.marker_id, marker_id)
                self.assertEqual(marker.rotation, turns % 4)
                np.testing.assert_array_equal(marker.projected, np.roll(CORNERS, -turns, axis=0))
                np.testing.assert_array_equal(marker.cells, cells)
        self.assertGreater(checked, 0)

    def test_rotation_decode_is_idempotent(self):
        cells = codec.encode(42)
        self.assertFalse(rotation_ambiguous(cells))
        for turns in range(4):
            rotated = np.rot90(cells, turns)
            marker = codec.decode(rotated, CORNERS)
            self.assertEqual(marker.marker_id, 42)
            self.assertEqual(codec.hamming_distance(marker.cells), 0)

            again = codec.decode(marker.cells, marker.projected)
            self.assertEqual(again.marker_id, 42)
            self.assertEqual(again.rotation, 0)
            np.testing.assert_array_equal(again.projected, marker.projected)


class TestValidation(unittest.TestCase):
    """Border tolerance and Hamming strictness."""

    def test_three_white_border_cells_still_validate(self):
        cells = codec.encode(300)
        for row, col in [(0, 0), (0, 3), (6, 5)]:
            cells[row, col] = True
        self.assertEqual(codec.border_errors(cells), 3)
        marker = codec.decode(cells, CORNERS)
        self.assertIsNotNone(marker)
        self.assertEqual(marker.marker_id, 300)

    def test_four_white_border_cells_never_validate(self):
        for marker_id in range(0, codec.MAX_MARKER_ID + 1, 11):
            cells = codec.encode(marker_id)
            for row, col in [(0, 1), (2, 0), (6, 6), (4, 6)]:
                cells[row, col] = True
            self.assertIsNone(codec.decode(cells, CORNERS))

    def test_border_cells_are_counted_individually(self):
        cells = codec.encode(1)
        for row, col in [(0, 3), (6, 3), (3, 0), (3, 6)]:
            cells[row, col] = True
        self.assertEqual(codec.border_errors(cells), 4)
        self.assertIsNone(codec.decode(cells, CORNERS))

    def test_single_bit_error_is_rejected(self):
        cells = codec.encode(0)
        cells[3, 1] = False
        self.assertEqual(codec.hamming_distance(cells), 1)
        self.assertIsNone(codec.decode(cells, CORNERS))

    def test_no_best_effort_acceptance(self):
        for marker_id in (0, 42, 333, 777, 1023):
            for row in range(1, 6):
                for col in range(1, 6):
                    cells = codec.encode(marker_id)
                    cells[row, col] = not cells[row, col]
                    self.assertEqual(codec.hamming_distance(cells), 1)
                    if any(codec.hamming_distance(np.rot90(cells, -t)) == 0 for t in range(4)):
                        continue
                    self.assertIsNone(codec.decode(cells, CORNERS))
                    self.assertFalse(codec.is_valid(cells))

    def test_missing_corners_rejected(self):
        cells = codec.encode(7)
        self.assertIsNone(codec.decode(cells, None))
        self.assertIsNone(codec.decode(cells, np.zeros((0, 2), dtype=np.float32)))
        self.assertIsNone(codec.decode(cells, CORNERS[:3]))

    def test_wrong_grid_shape_rejected(self):
        self.assertIsNone(codec.decode(np.zeros((5, 5), dtype=bool), CORNERS))

    def test_all_black_grid_rejected(self):
        cells = np.zeros((7, 7), dtype=bool)
        self.assertEqual(codec.hamming_distance(cells), 5)
        self.assertFalse(codec.is_valid(cells))


if __name__ == "__main__":
    unittest.main()
