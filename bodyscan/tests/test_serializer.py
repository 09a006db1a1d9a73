#!/usr/bin/env python3
"""
Unit Tests for Body Scan Serialization

Covers:
- Binary skeleton frames (layout, header and length checks)
- Flattened scan payload arrays and their validation
- Payload save/load through .npz files
"""

import os
import shutil
import struct
import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from bodyscan.errors import SerializationError
from bodyscan.geometry.transforms import Transform
from bodyscan.reconstruction.body_scan import BodyScan, GroupMesh
from bodyscan.reconstruction.linking import EdgeHook, LinkingMesh
from bodyscan.skeleton.anatomy import GROUP_COUNT, POI_COUNT, TEXTURE_REGION_COUNT
from bodyscan.tests.create_test_data import create_skeleton
from bodyscan.transport.scan_serializer import (SKELETON_FRAME_SIZE, SKELETON_HEADER, ScanPayload,
                                                SkeletonFrame, pack_skeleton, unpack_skeleton)


def small_body_scan():
    """Body scan with one triangle in group 0 and a three-vertex linking mesh."""
    groups = []
    for g in range(GROUP_COUNT):
        transform = Transform(position=[0.0, 0.1 * g, 2.0])
        if g == 0:
            groups.append(GroupMesh(g, transform,
                                    np.array([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0], [0.0, 0.1, 0.0]]),
                                    np.array([[0.0, 0.0], [0.5, 0.0], [0.0, 0.5]]),
                                    np.array([[0, 1, 2]])))
        else:
            groups.append(GroupMesh(g, transform, np.zeros((0, 3)), np.zeros((0, 2)),
                                    np.zeros((0, 3), dtype=np.int64)))

    links = []
    for r in range(TEXTURE_REGION_COUNT):
        if r == 0:
            links.append(LinkingMesh(r, np.array([[0.0, 0.0, 2.0], [0.1, 0.0, 2.0], [0.0, 0.1, 2.0]]),
                                     np.array([[0.1, 0.1], [0.2, 0.1], [0.1, 0.2]]),
                                     np.array([[0, 1, 2]]), front_vertex_count=2,
                                     original_index=np.array([5, 6, 7])))
        else:
            links.append(LinkingMesh(r, np.zeros((0, 3)), np.zeros((0, 2)),
                                     np.zeros((0, 3), dtype=np.int64), 0, np.zeros(0, dtype=np.int64)))

    hooks = [EdgeHook(group=0, region=0, vertex=1, linking_index=1, front=True),
             EdgeHook(group=0, region=0, vertex=2, linking_index=2, front=False)]

    texture = np.zeros((4, 6, 3), dtype=np.uint8)
    texture[1, 2] = (255, 128, 1)
    textures = [texture, None, None, None, None]
    return BodyScan(groups, links, hooks, textures)


class TestSkeletonFrames(unittest.TestCase):

    def test_pack_layout(self):
        skeleton = create_skeleton(timestamp=12.5)
        data = pack_skeleton(skeleton)

        self.assertEqual(len(data), SKELETON_FRAME_SIZE)
        self.assertEqual(data[:4], SKELETON_HEADER)
        self.assertEqual(struct.unpack('<d', data[4:12])[0], 12.5)

    def test_round_trip(self):
        skeleton = create_skeleton(timestamp=0.25)
        frame = unpack_skeleton(pack_skeleton(skeleton))

        self.assertEqual(frame.timestamp, 0.25)
        self.assertEqual(frame.poi_positions.shape, (POI_COUNT, 3))
        self.assertEqual(frame.poi_rotations.shape, (POI_COUNT, 4))
        np.testing.assert_allclose(frame.poi_positions, skeleton.poi_positions, atol=1e-6)
        np.testing.assert_allclose(frame.poi_rotations, skeleton.poi_rotations, atol=1e-6)

    def test_skeleton_frame_packs_like_skeleton(self):
        skeleton = create_skeleton(timestamp=4.0)
        self.assertEqual(pack_skeleton(SkeletonFrame.from_skeleton(skeleton)), pack_skeleton(skeleton))

    def test_short_frame(self):
        data = pack_skeleton(create_skeleton())
        with self.assertRaises(SerializationError):
            unpack_skeleton(data[:-1])

    def test_bad_header(self):
        data = b'XXXX' + pack_skeleton(create_skeleton())[4:]
        with self.assertRaises(SerializationError):
            unpack_skeleton(data)

    def test_wrong_poi_count(self):
        class Partial:
            timestamp = 0.0
            poi_positions = np.zeros((3, 3))
            poi_rotations = np.zeros((3, 4))

        with self.assertRaises(SerializationError):
            pack_skeleton(Partial())


class TestScanPayload(unittest.TestCase):

    def setUp(self):
        self.body_scan = small_body_scan()
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_offset_tables(self):
        arrays = ScanPayload.from_body_scan(self.body_scan).to_arrays()

        self.assertEqual(len(arrays["group_vertex_offsets"]), GROUP_COUNT + 1)
        self.assertEqual(list(arrays["group_vertex_offsets"][:3]), [0, 3, 3])
        self.assertEqual(arrays["group_vertices"].shape, (3, 3))
        self.assertEqual(arrays["hooks"].shape, (2, 5))
        self.assertEqual(list(arrays["texture_shapes"][0]), [4, 6])
        self.assertEqual(list(arrays["texture_offsets"]), [0, 72, 72, 72, 72, 72])

    def test_arrays_restore_body_scan(self):
        arrays = ScanPayload.from_body_scan(self.body_scan).to_arrays()
        restored = ScanPayload.from_arrays(arrays).to_body_scan()

        self.assertEqual(len(restored.groups), GROUP_COUNT)
        np.testing.assert_allclose(restored.groups[0].vertices, self.body_scan.groups[0].vertices, atol=1e-6)
        np.testing.assert_array_equal(restored.groups[0].triangles, [[0, 1, 2]])
        np.testing.assert_allclose(restored.groups[5].transform.position, [0.0, 0.5, 2.0], atol=1e-6)

        link = restored.linking_meshes[0]
        self.assertEqual(link.front_vertex_count, 2)
        np.testing.assert_array_equal(link.original_index, [5, 6, 7])

        self.assertEqual(restored.hooks, self.body_scan.hooks)
        np.testing.assert_array_equal(restored.textures[0], self.body_scan.textures[0])
        self.assertTrue(all(t is None for t in restored.textures[1:]))

    def test_missing_array(self):
        arrays = ScanPayload.from_body_scan(self.body_scan).to_arrays()
        del arrays["hooks"]
        with self.assertRaises(SerializationError):
            ScanPayload.from_arrays(arrays)

    def test_inconsistent_offsets(self):
        arrays = ScanPayload.from_body_scan(self.body_scan).to_arrays()
        arrays["group_vertex_offsets"] = arrays["group_vertex_offsets"].copy()
        arrays["group_vertex_offsets"][-1] = 99
        with self.assertRaises(SerializationError):
            ScanPayload.from_arrays(arrays)

    def test_save_and_load(self):
        path = ScanPayload.from_body_scan(self.body_scan).save(self.temp_dir / "out" / "scan.npz")
        self.assertTrue(path.exists())

        payload = ScanPayload.load(path)
        np.testing.assert_allclose(payload.link_vertices[0], self.body_scan.linking_meshes[0].vertices, atol=1e-6)

        with self.assertRaises(FileNotFoundError):
            ScanPayload.load(self.temp_dir / "missing.npz")


if __name__ == "__main__":
    unittest.main()
