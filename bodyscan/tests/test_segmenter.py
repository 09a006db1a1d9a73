#!/usr/bin/env python3
"""
Unit Tests for the Anatomical Segmenter

Covers:
- Nearest POI selection and the joint/bone tie-break
- Segmentation completeness on a synthetic body scan
- The single-block lattice scenario
- Created edges and cut triangles
"""

import os
import sys
import unittest

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from bodyscan.processing.mask_denoiser import MaskDenoiser
from bodyscan.processing.surface_reconstructor import SurfaceReconstructor
from bodyscan.reconstruction.segmenter import AnatomicalSegmenter, ScanSide, find_closest_pois
from bodyscan.skeleton.anatomy import GROUP_COUNT, JOINT_COUNT, TextureRegion
from bodyscan.skeleton.skeleton import Skeleton
from bodyscan.tests.create_test_data import create_scan_frame, create_skeleton, t_pose_joints


class TestClosestPois(unittest.TestCase):

    def setUp(self):
        joints = t_pose_joints()
        joints[1] = [0.0, 0.5, 2.0]         # SpineMid
        joints[20] = [0.0, 0.8, 2.0]        # SpineShoulder
        self.skeleton = Skeleton.from_joints(joints)

    def test_joint_wins_exact_tie(self):
        # Equidistant from SpineBase (0, 0) and the SpineMid-SpineBase bone centre (0, 0.25)
        closest = find_closest_pois(np.array([[0.0, 0.125, 2.0]]), self.skeleton)
        self.assertEqual(closest[0], 0)

    def test_strictly_closer_bone_wins(self):
        closest = find_closest_pois(np.array([[0.0, 0.13, 2.0]]), self.skeleton)
        self.assertEqual(closest[0], JOINT_COUNT + 0)

    def test_empty_input(self):
        self.assertEqual(len(find_closest_pois(np.zeros((0, 3)), self.skeleton)), 0)


class TestSingleBlockScenario(unittest.TestCase):
    """A 2x2 block next to the spine base ends up entirely in the lower torso."""

    def test_one_group_with_two_triangles(self):
        positions = np.zeros((4, 4, 3))
        positions[..., 2] = 2.0
        for row in range(4):
            for col in range(4):
                positions[row, col, :2] = [(col - 1.5) * 0.01, (1.5 - row) * 0.01]
        uvs = np.full((4, 4, 2), 0.5)
        mask = np.zeros((4, 4), dtype=np.uint8)
        mask[1:3, 1:3] = 1

        mesh = SurfaceReconstructor().reconstruct(positions, uvs, mask)
        self.assertEqual(mesh.vertex_count, 4)
        self.assertEqual(mesh.triangle_count, 2)

        result = AnatomicalSegmenter(create_skeleton()).segment(mesh)

        self.assertEqual(result.non_empty_groups, [0])
        group = result.groups[0]
        self.assertEqual(group.vertex_count, 4)
        self.assertEqual(len(group.triangles), 2)
        self.assertEqual(len(group.created_edge), 0)
        self.assertEqual(len(result.cut_triangles), 0)
        for g in range(1, GROUP_COUNT):
            self.assertTrue(result.groups[g].is_empty)
            self.assertEqual(len(result.groups[g].triangles), 0)

    def test_vertices_relative_to_group_origin(self):
        positions = np.zeros((2, 2, 3))
        positions[..., 2] = 2.0
        positions[0, 1, 0] = 0.01
        positions[1, 0, 1] = -0.01
        mesh = SurfaceReconstructor().reconstruct(positions, np.zeros((2, 2, 2)), np.ones((2, 2), dtype=np.uint8))
        skeleton = create_skeleton()

        group = AnatomicalSegmenter(skeleton).segment(mesh).groups[0]
        np.testing.assert_allclose(group.world_vertices(), mesh.vertices)
        np.testing.assert_allclose(group.origin, skeleton.group_origin(0))


class TestSyntheticSegmentation(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        frame = create_scan_frame(t_pose_joints(), spacing=0.04, pixels_per_sample=1, speckles=False)
        mask = MaskDenoiser([8]).denoise(frame.body_mask).mask
        cls.mesh = SurfaceReconstructor().reconstruct(frame.positions, frame.uvs, mask)
        cls.result = AnatomicalSegmenter(create_skeleton()).segment(cls.mesh, ScanSide.FRONT)

    def test_every_vertex_in_exactly_one_group(self):
        indices = np.concatenate([g.original_index for g in self.result.groups])
        self.assertEqual(len(indices), self.mesh.vertex_count)
        np.testing.assert_array_equal(np.sort(indices), np.arange(self.mesh.vertex_count))

    def test_triangles_conserved(self):
        kept = sum(len(g.triangles) for g in self.result.groups)
        self.assertEqual(kept + len(self.result.cut_triangles), self.mesh.triangle_count)

    def test_group_triangles_use_local_indices(self):
        for group in self.result.groups:
            if len(group.triangles):
                self.assertLess(group.triangles.max(), group.vertex_count)
                original = group.original_index[group.triangles]
                self.assertTrue(np.all(self.result.vertex_groups[original] == group.group))

    def test_created_edges_tagged_with_regions(self):
        self.assertGreater(len(self.result.cut_triangles), 0)
        tagged = [g for g in self.result.groups if g.created_edge]
        self.assertGreater(len(tagged), 1)
        for group in tagged:
            for local, regions in group.created_edge.items():
                self.assertLess(local, group.vertex_count)
                self.assertTrue(all(r in list(TextureRegion) for r in regions))

    def test_cut_triangles_span_groups(self):
        groups = self.result.vertex_groups[self.result.cut_triangles]
        self.assertTrue(np.all((groups[:, 0] != groups[:, 1]) | (groups[:, 1] != groups[:, 2])))

    def test_scanned_edges_carried_over(self):
        total = sum(len(g.scanned_edge) for g in self.result.groups)
        self.assertEqual(total, len(self.mesh.scanned_edges))

    def test_region_uvs(self):
        uvs = self.result.region_uvs(TextureRegion.MAIN_BODY)
        self.assertGreater(len(uvs), 0)
        self.assertEqual(uvs.shape[1], 2)


if __name__ == "__main__":
    unittest.main()
