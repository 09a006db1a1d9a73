#!/usr/bin/env python3
"""
Unit Tests for the Texture Atlas Builder

Covers:
- UV bounds and interval-rounded pixel bounds
- UV remapping into the combined front/back texture
- Background masking and extrapolation
- Atlas construction and skipped regions
"""

import os
import sys
import unittest

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from bodyscan.reconstruction.texture_atlas import (
    TextureAtlasBuilder, centre_out_range, extrapolate_texture, join_texture_segments, mask_texture,
    pixel_bounds, remap_uvs, square_ring, uv_min_max,
)
from bodyscan.skeleton.anatomy import TEXTURE_REGION_COUNT

GREEN = (0, 255, 0)


class TestBounds(unittest.TestCase):

    def test_uv_min_max_ignores_border_values(self):
        uvs = np.array([[0.0, 0.5], [0.2, 0.3], [0.6, 1.0], [0.4, 0.7]])
        self.assertEqual(uv_min_max(uvs), (0.2, 0.6, 0.3, 0.7))

    def test_uv_min_max_fallback(self):
        self.assertEqual(uv_min_max(np.zeros((0, 2))), (0.0, 1.0, 0.0, 1.0))

    def test_pixel_bounds_round_outward(self):
        bounds = pixel_bounds((0.25, 0.625, 0.375, 0.75), 320, 320, interval=40)
        self.assertEqual(bounds, (80, 200, 120, 240))

    def test_pixel_bounds_never_empty(self):
        min_x, max_x, min_y, max_y = pixel_bounds((0.5, 0.5, 0.5, 0.5), 300, 300, interval=30)
        self.assertGreater(max_x, min_x)
        self.assertGreater(max_y, min_y)

    def test_pixel_bounds_interval_validated(self):
        with self.assertRaises(ValueError):
            pixel_bounds((0, 1, 0, 1), 100, 100, interval=0)


class TestRemap(unittest.TestCase):

    def setUp(self):
        self.bounds = (80, 200, 120, 240)
        self.size = (320, 320)

    def test_front_endpoints(self):
        uvs = np.array([[0.25, 0.375], [0.625, 0.75]])
        remapped = remap_uvs(uvs, self.bounds, *self.size, front=True)
        np.testing.assert_allclose(remapped, [[0.0, 0.5], [1.0, 1.0]], atol=1e-12)

    def test_back_endpoints(self):
        uvs = np.array([[0.25, 0.375], [0.625, 0.75]])
        remapped = remap_uvs(uvs, self.bounds, *self.size, front=False)
        np.testing.assert_allclose(remapped, [[0.0, 0.0], [1.0, 0.5]], atol=1e-12)

    def test_zero_span_maps_to_zero(self):
        remapped = remap_uvs(np.array([[0.4, 0.4]]), (60, 60, 90, 90), *self.size, front=False)
        np.testing.assert_allclose(remapped, [[0.0, 0.0]])


class TestTextureOps(unittest.TestCase):

    def test_mask_texture(self):
        texture = np.full((4, 4, 3), 100, dtype=np.uint8)
        mask = np.zeros((4, 4), dtype=np.uint8)
        mask[1:3, 1:3] = 1
        masked = mask_texture(texture, mask, GREEN)
        np.testing.assert_array_equal(masked[0, 0], GREEN)
        np.testing.assert_array_equal(masked[1, 1], [100, 100, 100])
        np.testing.assert_array_equal(texture[0, 0], [100, 100, 100])

    def test_mask_texture_shape_checked(self):
        with self.assertRaises(ValueError):
            mask_texture(np.zeros((4, 4, 3), dtype=np.uint8), np.ones((3, 4), dtype=np.uint8))

    def test_square_ring_first_ring(self):
        xs, ys = square_ring(4, 4, 1)
        self.assertEqual(sorted(zip(xs.tolist(), ys.tolist())), [(1, 1), (1, 2), (2, 1), (2, 2)])

    def test_centre_out_range(self):
        np.testing.assert_array_equal(centre_out_range(5), [2, 3, 4, 1, 0])

    def test_extrapolation_fills_background(self):
        texture = np.zeros((10, 10, 3), dtype=np.uint8)
        texture[...] = GREEN
        texture[3:7, 3:7] = (200, 100, 50)

        filled = extrapolate_texture(texture, GREEN, iterations=2)

        self.assertEqual(filled.dtype, np.uint8)
        np.testing.assert_array_equal(filled[4, 4], [200, 100, 50])
        self.assertFalse(np.all(filled == np.array(GREEN, dtype=np.uint8), axis=2).any())
        np.testing.assert_array_equal(filled[0, 0], [200, 100, 50])

    def test_extrapolation_all_background_unchanged(self):
        texture = np.zeros((6, 8, 3), dtype=np.uint8)
        texture[...] = GREEN
        np.testing.assert_array_equal(extrapolate_texture(texture, GREEN), texture)

    def test_join_resizes_back(self):
        front = np.zeros((20, 10, 3), dtype=np.uint8)
        back = np.full((40, 30, 3), 255, dtype=np.uint8)
        joined = join_texture_segments(front, back)
        self.assertEqual(joined.shape, (40, 10, 3))
        self.assertTrue(np.all(joined[:20] == 255))
        self.assertTrue(np.all(joined[20:] == 0))


class TestAtlasBuilder(unittest.TestCase):

    def setUp(self):
        self.front = np.zeros((120, 120, 3), dtype=np.uint8)
        self.front[...] = GREEN
        self.front[30:90, 30:90] = (180, 120, 90)
        self.back = self.front.copy()
        self.builder = TextureAtlasBuilder({'interval': 30})

    def test_build_and_skip(self):
        region_uvs = [np.array([[0.25, 0.25], [0.75, 0.75]])] + [np.zeros((0, 2))] * (TEXTURE_REGION_COUNT - 1)

        atlas = self.builder.build(self.front, self.back, region_uvs, region_uvs)

        self.assertEqual(len(atlas.regions), TEXTURE_REGION_COUNT)
        main = atlas.region(0)
        self.assertFalse(main.skipped)
        self.assertEqual(main.front_bounds, (30, 90, 30, 90))
        self.assertEqual(main.image.shape, (120, 60, 3))
        self.assertEqual(len(atlas.skipped_regions), TEXTURE_REGION_COUNT - 1)
        self.assertIsNone(atlas.region(1).image)

        remapped = atlas.remap(np.array([[0.25, 0.25], [0.75, 0.75]]), 0, front=True)
        np.testing.assert_allclose(remapped, [[0.0, 0.5], [1.0, 1.0]], atol=1e-12)


if __name__ == "__main__":
    unittest.main()
