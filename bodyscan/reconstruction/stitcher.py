#!/usr/bin/env python3
"""
Scan Stitcher Module

Combines the front and back submeshes of every anatomical group into one
closed-ish surface.

Key Features:
- Back half rotated half a turn about the vertical axis into the front frame
- Optional alignment of the back half by vertex averages (head by default)
- Optional statistical outlier removal
- Overlap removal in both directions
- Vertex concatenation with the back offset by the front vertex count
- Seam smoothing and zipper triangulation along both seams

Author: Body Scan Team
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from ..geometry.mesh_ops import centroid, compute_vertex_normals
from ..geometry.transforms import rotation_about_y
from ..skeleton.anatomy import GROUP_NAMES, GROUP_TEXTURE_REGION, is_group_vertical
from .overlap import remove_overlap, remove_statistical_outliers
from .submesh import GroupSubmesh
from .texture_atlas import TextureAtlas
from .zipper import group_scanned_edges, quarter_scanned_edges, smooth_chains, zip_chains

logger = logging.getLogger(__name__)

BACK_ROTATION = rotation_about_y(180.0)
DEPTH_AXIS = 2


@dataclass
class StitchedGroupMesh:
    """Front and back halves of one group joined by zipper triangles."""
    group: int
    origin: np.ndarray
    vertices: np.ndarray
    raw_uvs: np.ndarray
    triangles: np.ndarray
    front_vertex_count: int
    front: GroupSubmesh
    back: GroupSubmesh
    zipper_triangle_count: int = 0
    uvs: Optional[np.ndarray] = None
    normals: Optional[np.ndarray] = None
    removed_front: int = 0
    removed_back: int = 0
    chains: List[List[int]] = field(default_factory=list)

    def __post_init__(self):
        if self.uvs is None:
            self.uvs = self.raw_uvs.copy()
        if self.normals is None:
            self.normals = compute_vertex_normals(self.vertices, self.triangles)

    @property
    def name(self) -> str:
        return GROUP_NAMES[self.group]

    @property
    def texture_region(self) -> int:
        return GROUP_TEXTURE_REGION[self.group]

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) == 0

    def apply_atlas(self, atlas: TextureAtlas):
        """Remap the raw scan UVs into this group's region texture."""
        region = self.texture_region
        fvc = self.front_vertex_count
        uvs = np.zeros_like(self.raw_uvs)
        if fvc:
            uvs[:fvc] = atlas.remap(self.raw_uvs[:fvc], region, front=True)
        if len(self.raw_uvs) > fvc:
            uvs[fvc:] = atlas.remap(self.raw_uvs[fvc:], region, front=False)
        self.uvs = uvs


def align_by_averages(front_vertices: np.ndarray, back_vertices: np.ndarray,
                      depth_offset: float) -> np.ndarray:
    """
    Translation moving the back average onto the front average.

    The depth component additionally carries ``depth_offset``, making up for
    depth the sensor misses around the sides of the head.
    """
    diff = centroid(front_vertices) - centroid(back_vertices)
    diff[DEPTH_AXIS] += depth_offset
    return diff


class ScanStitcher:
    """Stitches matched front/back group submeshes."""

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}
        self.smoothing_iterations = int(config.get('smoothing_iterations', 3))
        self.align_groups = set(config.get('align_groups', ['Head']))
        self.align_depth_offset = float(config.get('align_depth_offset', 0.15))
        outliers = config.get('outlier_removal', {}) or {}
        self.remove_outliers = bool(outliers.get('enabled', False))
        self.outlier_neighbors = int(outliers.get('nb_neighbors', 20))
        self.outlier_std_ratio = float(outliers.get('std_ratio', 2.0))

    def to_front_frame(self, front: GroupSubmesh, back: GroupSubmesh) -> GroupSubmesh:
        """Rotate the back half into the front frame and share the front origin."""
        turned = back.transformed(BACK_ROTATION)
        turned.origin = front.origin.copy()
        if GROUP_NAMES[back.group] in self.align_groups and not front.is_empty and not turned.is_empty:
            offset = align_by_averages(front.vertices, turned.vertices, self.align_depth_offset)
            logger.debug(f"{turned.name}: aligning back half by {np.round(offset, 4)}")
            turned = turned.translated(offset)
        return turned

    def stitch_group(self, front: GroupSubmesh, back: GroupSubmesh) -> StitchedGroupMesh:
        """
        Stitch one group.

        Args:
            front: Front submesh, POI-relative
            back: Back submesh, POI-relative in the back scan's frame
        """
        if front.group != back.group:
            raise ValueError(f"Cannot stitch group {front.group} with group {back.group}")

        back = self.to_front_frame(front, back)

        if self.remove_outliers:
            front = remove_statistical_outliers(front, self.outlier_neighbors, self.outlier_std_ratio)
            back = remove_statistical_outliers(back, self.outlier_neighbors, self.outlier_std_ratio)

        front_result = remove_overlap(front, back)
        back_result = remove_overlap(back, front_result.submesh)
        front = front_result.submesh
        back = back_result.submesh

        fvc = front.vertex_count
        vertices = np.vstack([front.vertices, back.vertices])
        raw_uvs = np.vstack([front.uvs, back.uvs])
        triangles = np.vstack([front.triangles, back.triangles + fvc])

        vertical = is_group_vertical(front.group)
        front_chains = group_scanned_edges(quarter_scanned_edges(front.vertices, front.scanned_edge), vertical)
        back_chains = group_scanned_edges(quarter_scanned_edges(back.vertices, back.scanned_edge), vertical)
        back_chains = tuple([i + fvc for i in chain] for chain in back_chains)

        zipper = []
        if front.is_empty or back.is_empty:
            if not (front.is_empty and back.is_empty):
                logger.warning(f"{front.name}: one half is empty, seam left open")
        else:
            for seam in range(2):
                vertices = smooth_chains(vertices, front_chains[seam], back_chains[seam],
                                         vertical, self.smoothing_iterations)
            for seam, greater in ((0, False), (1, True)):
                zipper.append(zip_chains(vertices, front_chains[seam], back_chains[seam],
                                         vertical, greater))

        zipper_triangles = (np.vstack(zipper) if zipper else np.zeros((0, 3), dtype=np.int64))
        all_triangles = np.vstack([triangles, zipper_triangles]).astype(np.int64)

        logger.debug(f"{front.name}: {fvc} front + {back.vertex_count} back vertices, "
                     f"{len(zipper_triangles)} zipper triangles")

        return StitchedGroupMesh(
            group=front.group,
            origin=front.origin.copy(),
            vertices=vertices,
            raw_uvs=raw_uvs,
            triangles=all_triangles,
            front_vertex_count=fvc,
            front=front,
            back=back,
            zipper_triangle_count=len(zipper_triangles),
            removed_front=front_result.removed_count,
            removed_back=back_result.removed_count,
            chains=[list(front_chains[0]), list(back_chains[0]),
                    list(front_chains[1]), list(back_chains[1])],
        )

    def stitch(self, front_groups: List[GroupSubmesh], back_groups: List[GroupSubmesh]) -> List[StitchedGroupMesh]:
        if len(front_groups) != len(back_groups):
            raise ValueError(f"Front has {len(front_groups)} groups, back has {len(back_groups)}")
        return [self.stitch_group(f, b) for f, b in zip(front_groups, back_groups)]
