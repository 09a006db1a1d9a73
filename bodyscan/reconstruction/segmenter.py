#!/usr/bin/env python3
"""
Anatomical Segmenter Module

Splits a reconstructed scan mesh into the 21 anatomical groups.

Key Features:
- Nearest point of interest (joint or bone) per vertex
- POI to group assignment and POI-relative local coordinates
- Cut triangles recorded as created edges, tagged with a texture region
- Scan boundary carried into each group's local indexing

Author: Body Scan Team
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

import numpy as np
from scipy.spatial.distance import cdist

from ..processing.surface_reconstructor import ScanMesh
from ..skeleton.anatomy import (
    GROUP_COUNT, GROUP_TEXTURE_REGION, JOINT_COUNT, POI_TO_GROUP, TEXTURE_REGION_POIS,
    seam_texture_region,
)
from ..skeleton.skeleton import Skeleton
from .submesh import GroupSubmesh

logger = logging.getLogger(__name__)


class ScanSide(Enum):
    """Which side of the subject a scan was taken from."""
    FRONT = "front"
    BACK = "back"


@dataclass
class SegmentationResult:
    """All groups of one segmented scan."""
    side: ScanSide
    groups: List[GroupSubmesh]
    closest_pois: np.ndarray        # (n,) POI of every scan vertex
    vertex_groups: np.ndarray       # (n,) group of every scan vertex
    cut_triangles: np.ndarray       # (k, 3) scan vertex indices of dropped triangles
    mesh: ScanMesh = field(repr=False, default=None)

    @property
    def non_empty_groups(self) -> List[int]:
        return [g.group for g in self.groups if not g.is_empty]

    def region_uvs(self, region: int) -> np.ndarray:
        """Scan UVs of every vertex assigned to a POI of texture ``region``."""
        if self.mesh is None or len(self.closest_pois) == 0:
            return np.zeros((0, 2))
        selected = np.isin(self.closest_pois, TEXTURE_REGION_POIS[region])
        return self.mesh.uvs[selected]


def find_closest_pois(vertices: np.ndarray, skeleton: Skeleton) -> np.ndarray:
    """
    Closest point of interest for every vertex.

    The nearest joint and the nearest bone are found separately (lowest
    index on ties); the bone is used only when strictly closer than the
    joint.

    Returns:
        (n,) POI indices, bones offset by the joint count
    """
    vertices = np.asarray(vertices, dtype=float).reshape(-1, 3)
    if len(vertices) == 0:
        return np.zeros(0, dtype=np.int64)

    joint_dist = cdist(vertices, skeleton.joint_positions)
    bone_dist = cdist(vertices, skeleton.bone_positions)

    closest_joint = np.argmin(joint_dist, axis=1)
    closest_bone = np.argmin(bone_dist, axis=1)
    rows = np.arange(len(vertices))
    bone_wins = bone_dist[rows, closest_bone] < joint_dist[rows, closest_joint]

    return np.where(bone_wins, closest_bone + JOINT_COUNT, closest_joint).astype(np.int64)


class AnatomicalSegmenter:
    """Assigns scan vertices to anatomical groups and builds group submeshes."""

    def __init__(self, skeleton: Skeleton):
        self.skeleton = skeleton
        self.poi_to_group = np.asarray(POI_TO_GROUP, dtype=np.int64)
        self.group_region = np.asarray(GROUP_TEXTURE_REGION, dtype=np.int64)

    def segment(self, mesh: ScanMesh, side: ScanSide = ScanSide.FRONT) -> SegmentationResult:
        """
        Split ``mesh`` into 21 group submeshes.

        Args:
            mesh: Reconstructed scan mesh
            side: Scan side, recorded on the result

        Returns:
            SegmentationResult with one submesh per group (possibly empty)
        """
        vertex_count = mesh.vertex_count
        closest = find_closest_pois(mesh.vertices, self.skeleton)
        vertex_groups = self.poi_to_group[closest] if vertex_count else np.zeros(0, dtype=np.int64)

        # Local index of every scan vertex inside its own group
        local_index = np.zeros(vertex_count, dtype=np.int64)
        members: List[np.ndarray] = []
        for g in range(GROUP_COUNT):
            idx = np.flatnonzero(vertex_groups == g)
            local_index[idx] = np.arange(len(idx))
            members.append(idx)

        group_triangles: List[List[np.ndarray]] = [[] for _ in range(GROUP_COUNT)]
        created: List[Dict[int, set]] = [dict() for _ in range(GROUP_COUNT)]
        cut = []

        tris = mesh.triangles
        if len(tris):
            tri_groups = vertex_groups[tris]
            whole = (tri_groups[:, 0] == tri_groups[:, 1]) & (tri_groups[:, 1] == tri_groups[:, 2])

            for g in np.unique(tri_groups[whole, 0]):
                sel = whole & (tri_groups[:, 0] == g)
                group_triangles[g].append(local_index[tris[sel]])

            for t in np.flatnonzero(~whole):
                tri = tris[t]
                groups = tri_groups[t]
                region = seam_texture_region(self.group_region[groups])
                for vertex, group in zip(tri, groups):
                    created[group].setdefault(int(local_index[vertex]), set()).add(region)
                cut.append(tri)

        cut_triangles = np.array(cut, dtype=np.int64).reshape(-1, 3)

        edge_mask = np.zeros(vertex_count, dtype=bool)
        edge_mask[mesh.scanned_edges] = True

        groups = []
        for g in range(GROUP_COUNT):
            idx = members[g]
            origin = self.skeleton.group_origin(g)
            triangles = (np.concatenate(group_triangles[g], axis=0)
                         if group_triangles[g] else np.zeros((0, 3), dtype=np.int64))
            groups.append(GroupSubmesh(
                group=g,
                origin=origin,
                vertices=mesh.vertices[idx] - origin,
                uvs=mesh.uvs[idx],
                triangles=triangles,
                original_index=idx,
                scanned_edge=local_index[idx[edge_mask[idx]]],
                created_edge=created[g],
            ))

        populated = sum(1 for g in groups if not g.is_empty)
        logger.info(f"Segmented {side.value} scan: {vertex_count} vertices into {populated} groups, "
                    f"{len(cut_triangles)} cut triangles")

        return SegmentationResult(side=side, groups=groups, closest_pois=closest,
                                  vertex_groups=vertex_groups, cut_triangles=cut_triangles,
                                  mesh=mesh)
