#!/usr/bin/env python3
"""
Surface Reconstructor Module

Turns a lattice of depth samples into a triangle mesh.

Key Features:
- One vertex per unmasked lattice cell, compacted in row-major order
- 2x2 cell triangulation (two triangles for full quads, one for three corners)
- Scan boundary ("scanned edge") detection from unmasked neighbour counts
- Lattice <-> vertex lookups for recovering sample positions

Author: Body Scan Team
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from ..errors import ShapeMismatchError
from ..geometry.mesh_ops import compute_vertex_normals
from .mask_denoiser import UNMASKED, count_unmasked_neighbours

logger = logging.getLogger(__name__)

FULL_NEIGHBOURHOOD = 8


@dataclass
class ScanMesh:
    """Triangle mesh reconstructed from one scan."""
    vertices: np.ndarray            # (n, 3)
    uvs: np.ndarray                 # (n, 2)
    triangles: np.ndarray           # (m, 3)
    vertex_index: np.ndarray        # (H, W), -1 where no vertex
    lattice_coords: np.ndarray      # (n, 2) row, col of each vertex
    scanned_edges: np.ndarray       # ascending vertex indices on the scan boundary
    normals: np.ndarray = field(default=None)

    def __post_init__(self):
        if self.normals is None:
            self.normals = compute_vertex_normals(self.vertices, self.triangles)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    def lattice_position(self, vertex: int) -> Tuple[int, int]:
        """(row, col) of the lattice sample a vertex was built from."""
        row, col = self.lattice_coords[vertex]
        return int(row), int(col)

    def vertex_at(self, row: int, col: int) -> int:
        """Vertex built from lattice sample (row, col), -1 if masked."""
        return int(self.vertex_index[row, col])

    def boundary_chains(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Deterministic split of the scanned edges.

        Returns:
            Boundary vertices lying on the first or last boundary row, and
            those on all other rows, both in ascending lattice-scan order
        """
        edges = self.scanned_edges
        if len(edges) == 0:
            empty = np.zeros(0, dtype=np.int64)
            return empty, empty.copy()
        rows = self.lattice_coords[edges, 0]
        outer = (rows == rows[0]) | (rows == rows[-1])
        return edges[outer], edges[~outer]


def _cell_triangles(present: np.ndarray, index: np.ndarray) -> np.ndarray:
    """
    Triangulate every 2x2 cell of the lattice.

    Corners are ordered (r, c), (r, c+1), (r+1, c), (r+1, c+1). Output
    triangles are ordered by cell in row-major order.
    """
    if present.shape[0] < 2 or present.shape[1] < 2:
        return np.zeros((0, 3), dtype=np.int64)

    corners_present = [present[:-1, :-1], present[:-1, 1:], present[1:, :-1], present[1:, 1:]]
    corners_index = [index[:-1, :-1], index[:-1, 1:], index[1:, :-1], index[1:, 1:]]
    count = sum(c.astype(np.int32) for c in corners_present)
    cell_ids = np.arange(count.size).reshape(count.shape)

    tri_parts = []
    order_parts = []

    full = count == 4
    c0, c1, c2, c3 = (ci[full] for ci in corners_index)
    ids = cell_ids[full]
    tri_parts += [np.stack([c0, c1, c2], axis=1), np.stack([c2, c1, c3], axis=1)]
    order_parts += [np.stack([ids, np.zeros_like(ids)], axis=1),
                    np.stack([ids, np.ones_like(ids)], axis=1)]

    three = count == 3
    for missing in range(4):
        sel = three & ~corners_present[missing]
        kept = [ci[sel] for k, ci in enumerate(corners_index) if k != missing]
        ids = cell_ids[sel]
        tri_parts.append(np.stack(kept, axis=1))
        order_parts.append(np.stack([ids, np.zeros_like(ids)], axis=1))

    triangles = np.concatenate(tri_parts, axis=0).astype(np.int64)
    order = np.concatenate(order_parts, axis=0)
    if len(triangles) == 0:
        return np.zeros((0, 3), dtype=np.int64)
    sort = np.lexsort((order[:, 1], order[:, 0]))
    return triangles[sort]


class SurfaceReconstructor:
    """Builds a :class:`ScanMesh` from lattice samples and a denoised mask."""

    def reconstruct(self, positions: np.ndarray, uvs: np.ndarray, mask: np.ndarray) -> ScanMesh:
        """
        Triangulate the unmasked part of a sample lattice.

        Args:
            positions: (H, W, 3) sample positions
            uvs: (H, W, 2) texture coordinates
            mask: (H, W) mask, only value 1 produces vertices

        Raises:
            ShapeMismatchError: If the three lattices disagree in size
        """
        positions = np.asarray(positions, dtype=float)
        uvs = np.asarray(uvs, dtype=float)
        mask = np.asarray(mask)
        if mask.ndim != 2:
            raise ShapeMismatchError(f"Mask must be 2D, got shape {mask.shape}")
        if positions.shape != mask.shape + (3,):
            raise ShapeMismatchError(f"Positions {positions.shape} do not match mask {mask.shape}")
        if uvs.shape != mask.shape + (2,):
            raise ShapeMismatchError(f"UVs {uvs.shape} do not match mask {mask.shape}")

        present = mask == UNMASKED
        vertex_count = int(np.count_nonzero(present))

        vertex_index = np.full(mask.shape, -1, dtype=np.int64)
        vertex_index[present] = np.arange(vertex_count)
        lattice_coords = np.argwhere(present).astype(np.int64)

        vertices = positions[present].reshape(-1, 3)
        vertex_uvs = uvs[present].reshape(-1, 2)
        triangles = _cell_triangles(present, vertex_index)

        neighbour_counts = count_unmasked_neighbours(mask)
        boundary = present & (neighbour_counts < FULL_NEIGHBOURHOOD)
        scanned_edges = np.sort(vertex_index[boundary])

        logger.info(f"Reconstructed mesh: {vertex_count} vertices, {len(triangles)} triangles, "
                    f"{len(scanned_edges)} scanned edges")

        return ScanMesh(vertices=vertices, uvs=vertex_uvs, triangles=triangles,
                        vertex_index=vertex_index, lattice_coords=lattice_coords,
                        scanned_edges=scanned_edges)
