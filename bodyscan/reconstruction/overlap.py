#!/usr/bin/env python3
"""
Overlap removal between the front and back halves of one group.

Both submeshes must be expressed in the same POI-relative frame. The
dominant axis of the difference between their centroids is taken as the
split plane normal through the POI; any vertex of the current side lying
on the far side of that plane overlaps the counter side and is removed.
"""

import logging
from dataclasses import dataclass

import numpy as np
import open3d as o3d

from ..geometry.mesh_ops import centroid, largest_axis
from .submesh import GroupSubmesh

logger = logging.getLogger(__name__)


@dataclass
class OverlapResult:
    """Submesh after overlap removal and what was removed."""
    submesh: GroupSubmesh
    removed: np.ndarray
    axis: int

    @property
    def removed_count(self) -> int:
        return len(self.removed)


def identify_overlap(current: np.ndarray, counter: np.ndarray):
    """
    Indices of ``current`` vertices lying past the split plane.

    Returns:
        Tuple of (overlapping indices, split axis). No vertices are flagged
        when either side is empty.
    """
    current = np.asarray(current, dtype=float).reshape(-1, 3)
    counter = np.asarray(counter, dtype=float).reshape(-1, 3)
    if len(current) == 0 or len(counter) == 0:
        return np.zeros(0, dtype=np.int64), 0

    diff = centroid(current) - centroid(counter)
    axis = largest_axis(diff)
    signed = current[:, axis] * np.sign(diff[axis])
    return np.flatnonzero(signed < 0.0), axis


def remove_overlap(current: GroupSubmesh, counter: GroupSubmesh) -> OverlapResult:
    """Remove the part of ``current`` that reaches into ``counter``'s half space."""
    overlap, axis = identify_overlap(current.vertices, counter.vertices)
    if len(overlap) == 0:
        return OverlapResult(current.copy(), overlap, axis)

    cleaned = current.remove_vertices(overlap)
    logger.debug(f"{current.name}: {len(overlap)} overlapping vertices removed along axis {axis}")
    return OverlapResult(cleaned, overlap, axis)


def remove_statistical_outliers(submesh: GroupSubmesh, nb_neighbors: int = 20,
                                std_ratio: float = 2.0) -> GroupSubmesh:
    """
    Drop vertices far from their neighbours using Open3D's statistical filter.

    Groups with too few vertices for the neighbourhood size are returned unchanged.
    """
    if submesh.vertex_count <= nb_neighbors:
        return submesh.copy()

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(submesh.vertices)
    _, inliers = pcd.remove_statistical_outlier(nb_neighbors=nb_neighbors, std_ratio=std_ratio)

    keep = np.zeros(submesh.vertex_count, dtype=bool)
    keep[np.asarray(inliers, dtype=np.int64)] = True
    outliers = np.flatnonzero(~keep)
    if len(outliers) == 0:
        return submesh.copy()

    logger.debug(f"{submesh.name}: {len(outliers)} statistical outliers removed")
    return submesh.remove_vertices(outliers)
