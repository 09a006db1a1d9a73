#!/usr/bin/env python3
"""
Linking meshes across group boundaries.

Segmentation drops every triangle whose vertices fall into different
groups. Those triangles are rebuilt here as five linking meshes, one per
texture region, whose vertices are "edge hooks" attached to the created
edges of the stitched groups. When the groups move with the skeleton the
hooks move with them and drag the linking mesh along.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from ..geometry.mesh_ops import compute_vertex_normals
from ..skeleton.anatomy import TEXTURE_REGION_COUNT, TEXTURE_REGION_NAMES
from .stitcher import StitchedGroupMesh
from .texture_atlas import TextureAtlas

logger = logging.getLogger(__name__)


@dataclass
class EdgeHook:
    """A linking mesh vertex pinned to a vertex of a stitched group."""
    group: int
    region: int
    vertex: int             # index into the stitched group's combined vertices
    linking_index: int      # index into the region's linking mesh vertices
    front: bool = True


@dataclass
class LinkingMesh:
    """Seam patch for one texture region."""
    region: int
    vertices: np.ndarray
    uvs: np.ndarray
    triangles: np.ndarray
    front_vertex_count: int
    original_index: np.ndarray
    normals: np.ndarray = None

    def __post_init__(self):
        if self.normals is None:
            self.recalculate_normals()

    @property
    def name(self) -> str:
        return TEXTURE_REGION_NAMES[self.region]

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    def recalculate_normals(self):
        self.normals = compute_vertex_normals(self.vertices, self.triangles)


def _linking_triangles(cut_triangles: np.ndarray, original_to_link: Dict[int, int]) -> List[Tuple[int, int, int]]:
    """Cut triangles whose three scan vertices all have a linking vertex."""
    triangles = []
    for tri in np.asarray(cut_triangles, dtype=np.int64).reshape(-1, 3):
        mapped = [original_to_link.get(int(v), -1) for v in tri]
        if min(mapped) >= 0:
            triangles.append(tuple(mapped))
    return triangles


class LinkingMeshBuilder:
    """Builds linking meshes and their edge hooks from stitched groups."""

    def __init__(self, atlas: TextureAtlas):
        self.atlas = atlas

    def _collect(self, stitched: Sequence[StitchedGroupMesh], region: int, front: bool,
                 vertices: list, uvs: list, originals: list, hooks: list) -> Dict[int, int]:
        original_to_link: Dict[int, int] = {}
        for mesh in stitched:
            half = mesh.front if front else mesh.back
            offset = 0 if front else mesh.front_vertex_count
            for local in sorted(half.created_edge):
                if region not in half.created_edge[local]:
                    continue
                combined = local + offset
                link_index = len(vertices)
                vertices.append(mesh.origin + mesh.vertices[combined])
                uvs.append(self.atlas.remap(half.uvs[local:local + 1], region, front)[0])
                original = int(half.original_index[local])
                originals.append(original)
                original_to_link.setdefault(original, link_index)
                hooks.append(EdgeHook(group=mesh.group, region=region, vertex=combined,
                                      linking_index=link_index, front=front))
        return original_to_link

    def build(self, stitched: Sequence[StitchedGroupMesh], front_cut_triangles: np.ndarray,
              back_cut_triangles: np.ndarray) -> Tuple[List[LinkingMesh], List[EdgeHook]]:
        """
        Build the five linking meshes.

        Vertices are in world position (group origin plus combined vertex),
        front created edges first, then back ones.

        Returns:
            Linking meshes indexed by texture region, and all edge hooks
        """
        meshes = []
        all_hooks: List[EdgeHook] = []

        for region in range(TEXTURE_REGION_COUNT):
            vertices, uvs, originals, hooks = [], [], [], []
            front_map = self._collect(stitched, region, True, vertices, uvs, originals, hooks)
            front_count = len(vertices)
            back_map = self._collect(stitched, region, False, vertices, uvs, originals, hooks)

            triangles = (_linking_triangles(front_cut_triangles, front_map)
                         + _linking_triangles(back_cut_triangles, back_map))

            mesh = LinkingMesh(
                region=region,
                vertices=np.array(vertices, dtype=float).reshape(-1, 3),
                uvs=np.array(uvs, dtype=float).reshape(-1, 2),
                triangles=np.array(triangles, dtype=np.int64).reshape(-1, 3),
                front_vertex_count=front_count,
                original_index=np.array(originals, dtype=np.int64),
            )
            logger.debug(f"Linking mesh {mesh.name}: {mesh.vertex_count} vertices, "
                         f"{len(mesh.triangles)} triangles")
            meshes.append(mesh)
            all_hooks.extend(hooks)

        logger.info(f"Built {len(meshes)} linking meshes with {len(all_hooks)} edge hooks")
        return meshes, all_hooks
