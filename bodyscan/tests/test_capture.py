#!/usr/bin/env python3
"""
Unit Tests for Scan Frames and the Scan Store

Covers:
- Frame validation and back-scan reversal
- Color mask derivation from body sample UVs
- Dataset save/load round trip
- Store retrieval semantics
"""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from bodyscan.capture.scan_frame import ScanFrame, derive_color_mask, load_scan_frame, save_scan_frame
from bodyscan.capture.scan_store import ScanStore
from bodyscan.errors import ShapeMismatchError
from bodyscan.tests.create_test_data import create_scan_frame, create_skeleton, t_pose_joints


def small_frame():
    positions = np.zeros((3, 4, 3))
    uvs = np.zeros((3, 4, 2))
    uvs[..., 0] = np.arange(4) / 4.0
    uvs[..., 1] = (np.arange(3) / 4.0)[:, None]
    mask = np.zeros((3, 4), dtype=np.uint8)
    mask[1, 1:3] = 1
    texture = np.zeros((8, 8, 3), dtype=np.uint8)
    texture[0, 0] = (10, 20, 30)
    return ScanFrame(positions, uvs, mask, texture)


class TestScanFrame(unittest.TestCase):

    def test_valid_frame(self):
        frame = small_frame()
        frame.validate()
        self.assertEqual(frame.lattice_shape, (3, 4))
        self.assertEqual(frame.texture_size, (8, 8))

    def test_shape_mismatch(self):
        frame = small_frame()
        frame.uvs = np.zeros((3, 3, 2))
        with self.assertRaises(ShapeMismatchError):
            frame.validate()

        frame = small_frame()
        frame.color_mask = np.zeros((5, 8), dtype=np.uint8)
        with self.assertRaises(ShapeMismatchError):
            frame.validate()

    def test_reversed(self):
        frame = small_frame()
        frame.color_mask = np.zeros((8, 8), dtype=np.uint8)
        frame.color_mask[0, 1] = 1

        reversed_frame = frame.reversed()

        np.testing.assert_allclose(reversed_frame.uvs, 1.0 - frame.uvs)
        np.testing.assert_array_equal(reversed_frame.texture[7, 7], [10, 20, 30])
        self.assertEqual(reversed_frame.color_mask[7, 6], 1)
        np.testing.assert_array_equal(reversed_frame.body_mask, frame.body_mask)
        # Reversing twice restores the original mapping
        np.testing.assert_allclose(reversed_frame.reversed().uvs, frame.uvs)

    def test_derive_color_mask(self):
        frame = small_frame()
        mask = derive_color_mask(frame, dilation=1)
        self.assertEqual(mask.shape, (8, 8))
        # Body samples (1, 1) and (1, 2) hit pixels (2, 2) and (2, 4)
        self.assertEqual(int(mask.sum()), 2)
        self.assertEqual(mask[2, 2], 1)
        self.assertEqual(mask[2, 4], 1)

        dilated = derive_color_mask(frame, dilation=3)
        self.assertEqual(dilated[1, 1], 1)
        self.assertEqual(dilated[3, 5], 1)
        self.assertEqual(dilated[0, 0], 0)

    def test_derive_color_mask_without_body(self):
        frame = small_frame()
        frame.body_mask[...] = 0
        self.assertFalse(derive_color_mask(frame).any())


class TestDatasetIO(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_round_trip(self):
        frame = create_scan_frame(t_pose_joints(), spacing=0.06, pixels_per_sample=2, timestamp=3.5)
        skeleton = create_skeleton(3.5)
        save_scan_frame(self.temp_dir, "front", frame, skeleton)

        loaded, loaded_skeleton = load_scan_frame(self.temp_dir, "front")

        self.assertEqual(loaded.timestamp, 3.5)
        np.testing.assert_array_equal(loaded.body_mask, frame.body_mask)
        np.testing.assert_array_equal(loaded.texture, frame.texture)
        np.testing.assert_allclose(loaded.positions, frame.positions, atol=1e-6)
        np.testing.assert_allclose(loaded.uvs, frame.uvs, atol=1e-6)
        self.assertIsNone(loaded.color_mask)
        np.testing.assert_allclose(loaded_skeleton.joint_positions, skeleton.joint_positions)

    def test_missing_frame(self):
        with self.assertRaises(FileNotFoundError):
            load_scan_frame(self.temp_dir, "nope")


class TestScanStore(unittest.TestCase):

    def setUp(self):
        self.store = ScanStore()
        self.store.add(2.0, small_frame(), create_skeleton(2.0))
        self.store.add(1.0, small_frame(), create_skeleton(1.0))

    def test_keys_and_latest(self):
        self.assertEqual(self.store.keys(), [1.0, 2.0])
        self.assertEqual(len(self.store), 2)
        self.assertIn(1.0, self.store)
        self.assertEqual(self.store.latest().key, 2.0)

    def test_get_returns_copy(self):
        snapshot = self.store.get(1.0)
        snapshot.frame.body_mask[...] = 0
        snapshot.skeleton.joint_positions[...] = 0
        again = self.store.get(1.0)
        self.assertEqual(int(again.frame.body_mask.sum()), 2)
        self.assertNotEqual(float(np.abs(again.skeleton.joint_positions).sum()), 0.0)

    def test_missing_key(self):
        with self.assertRaises(KeyError):
            self.store.get(7.0)
        self.assertIsNone(ScanStore().latest())

    def test_lattice_size_fixed(self):
        frame = create_scan_frame(t_pose_joints(), spacing=0.1, pixels_per_sample=1)
        with self.assertRaises(ShapeMismatchError):
            self.store.add(3.0, frame, create_skeleton())

    def test_max_snapshots(self):
        store = ScanStore(max_snapshots=1)
        store.add(1.0, small_frame(), create_skeleton())
        store.add(2.0, small_frame(), create_skeleton())
        self.assertEqual(store.keys(), [2.0])


if __name__ == "__main__":
    unittest.main()
