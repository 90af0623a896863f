"""
Tests for marker world info and the known-marker registry.
"""

import os
import sys
import unittest

import numpy as np

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from quadmark import codec  # type: ignore
from quadmark.marker import Marker, MarkerInfo, MarkerRegistry  # type: ignore

CORNERS = np.array([[0, 0], [0, 10], [10, 10], [10, 0]], dtype=np.float32)


class TestMarkerInfo(unittest.TestCase):
    """World corner computation."""

    def test_unrotated_world_points(self):
        info = MarkerInfo(7, size=0.2, position=[1.0, 2.0, 0.5])
        expected = np.array(
            [[0.9, 1.9, 0.5], [0.9, 2.1, 0.5], [1.1, 2.1, 0.5], [1.1, 1.9, 0.5]],
            dtype=np.float32,
        )
        self.assertEqual(info.world.dtype, np.float32)
        np.testing.assert_allclose(info.world, expected, atol=1e-6)

    def test_rotation_about_centre(self):
        info = MarkerInfo(1, size=2.0, position=[0.0, 0.0, 3.0], rotation=[0.0, 0.0, np.pi / 2])
        np.testing.assert_allclose(info.world.mean(axis=0), [0.0, 0.0, 3.0], atol=1e-6)
        # Quarter turn about z maps (-1, -1) onto (1, -1)
        np.testing.assert_allclose(info.world[0], [1.0, -1.0, 3.0], atol=1e-6)

    def test_wall_mounted_marker(self):
        info = MarkerInfo(2, size=1.0, rotation=[np.pi / 2, 0.0, 0.0])
        np.testing.assert_allclose(info.world[:, 1], 0.0, atol=1e-6)
        np.testing.assert_allclose(np.abs(info.world[:, 2]), 0.5, atol=1e-6)

    def test_size_must_be_positive(self):
        with self.assertRaises(ValueError):
            MarkerInfo(3, size=0.0)

    def test_dict_round_trip(self):
        info = MarkerInfo.from_dict({"id": 12, "size": 0.15, "position": [1, 2, 3]})
        data = info.to_dict()
        self.assertEqual(data["id"], 12)
        self.assertEqual(data["position"], [1.0, 2.0, 3.0])
        self.assertEqual(data["rotation"], [0.0, 0.0, 0.0])
        np.testing.assert_allclose(MarkerInfo.from_dict(data).world, info.world)


class TestMarker(unittest.TestCase):
    """Detected marker record."""

    def test_geometry_properties(self):
        marker = Marker(4, codec.encode(4), 0, CORNERS)
        self.assertEqual(marker.center, (5.0, 5.0))
        self.assertAlmostEqual(marker.area, 100.0)
        self.assertIsNone(marker.world_points)

        info = MarkerInfo(4, size=0.1)
        marker.attach_info(info)
        self.assertIs(marker.world_points, info.world)


class TestMarkerRegistry(unittest.TestCase):
    """Known marker bookkeeping."""

    def setUp(self):
        self.registry = MarkerRegistry.from_config(
            [
                {"id": 5, "size": 0.1},
                {"id": 2, "size": 0.2, "position": [1.0, 0.0, 0.0]},
            ]
        )

    def test_lookup_and_iteration_order(self):
        self.assertEqual(len(self.registry), 2)
        self.assertIn(5, self.registry)
        self.assertNotIn(9, self.registry)
        self.assertEqual([info.marker_id for info in self.registry], [2, 5])
        self.assertAlmostEqual(self.registry.get(2).size, 0.2)
        self.assertIsNone(self.registry.get(9))

    def test_register_replaces_existing(self):
        self.registry.register(MarkerInfo(5, size=0.3))
        self.assertEqual(len(self.registry), 2)
        self.assertAlmostEqual(self.registry.get(5).size, 0.3)

    def test_remove_and_clear(self):
        self.assertTrue(self.registry.remove(5))
        self.assertFalse(self.registry.remove(5))
        self.registry.clear()
        self.assertEqual(len(self.registry), 0)

    def test_attach_returns_known_markers(self):
        known = Marker(2, codec.encode(2), 0, CORNERS)
        unknown = Marker(9, codec.encode(9), 0, CORNERS)

        found = self.registry.attach([known, unknown])
        self.assertEqual(len(found), 1)
        self.assertIs(found[0], known)
        self.assertIs(known.info, self.registry.get(2))
        self.assertIsNone(unknown.info)

    def test_config_round_trip(self):
        entries = self.registry.to_config()
        self.assertEqual([entry["id"] for entry in entries], [2, 5])
        rebuilt = MarkerRegistry.from_config(entries)
        np.testing.assert_allclose(rebuilt.get(2).world, self.registry.get(2).world)


if __name__ == "__main__":
    unittest.main()
