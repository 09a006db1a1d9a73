#!/usr/bin/env python3
"""
Per-group submesh container.

A GroupSubmesh holds the part of one scan assigned to one anatomical group,
together with the index tables that tie it back to the scan mesh. All
vertex removal goes through :meth:`GroupSubmesh.remove_vertices`, which
rebuilds every index table in one step.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Set

import numpy as np

from ..geometry.mesh_ops import compute_vertex_normals
from ..geometry.transforms import Transform
from ..skeleton.anatomy import GROUP_NAMES, TextureRegion

logger = logging.getLogger(__name__)


def _empty_vectors(width: int) -> np.ndarray:
    return np.zeros((0, width), dtype=float)


@dataclass
class GroupSubmesh:
    """
    Scan geometry of one anatomical group.

    ``vertices`` are relative to ``origin``. ``original_index[i]`` is the
    scan mesh vertex of local vertex ``i``; ``scanned_edge`` holds sorted
    local indices on the scan boundary; ``created_edge`` maps local indices
    on a segmentation cut to the texture regions of the cut triangles.
    """
    group: int
    origin: np.ndarray = field(default_factory=lambda: np.zeros(3))
    vertices: np.ndarray = field(default_factory=lambda: _empty_vectors(3))
    uvs: np.ndarray = field(default_factory=lambda: _empty_vectors(2))
    triangles: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.int64))
    original_index: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    scanned_edge: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    created_edge: Dict[int, Set[TextureRegion]] = field(default_factory=dict)
    colors: np.ndarray = None
    normals: np.ndarray = None

    def __post_init__(self):
        self.origin = np.asarray(self.origin, dtype=float).reshape(3)
        self.vertices = np.asarray(self.vertices, dtype=float).reshape(-1, 3)
        self.uvs = np.asarray(self.uvs, dtype=float).reshape(-1, 2)
        self.triangles = np.asarray(self.triangles, dtype=np.int64).reshape(-1, 3)
        self.original_index = np.asarray(self.original_index, dtype=np.int64).reshape(-1)
        self.scanned_edge = np.unique(np.asarray(self.scanned_edge, dtype=np.int64).reshape(-1))
        if self.colors is not None:
            self.colors = np.asarray(self.colors, dtype=float).reshape(len(self.vertices), -1)
        if self.normals is None:
            self.recalculate_normals()

    @property
    def name(self) -> str:
        return GROUP_NAMES[self.group]

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) == 0

    def recalculate_normals(self):
        self.normals = compute_vertex_normals(self.vertices, self.triangles)

    def world_vertices(self) -> np.ndarray:
        return self.vertices + self.origin

    def transformed(self, transform: Transform) -> 'GroupSubmesh':
        """Copy with vertices mapped through ``transform`` (origin unchanged)."""
        result = self.copy()
        result.vertices = transform.apply(self.vertices).reshape(-1, 3)
        result.recalculate_normals()
        return result

    def translated(self, offset: np.ndarray) -> 'GroupSubmesh':
        result = self.copy()
        result.vertices = self.vertices + np.asarray(offset, dtype=float)
        return result

    def copy(self) -> 'GroupSubmesh':
        return GroupSubmesh(
            group=self.group,
            origin=self.origin.copy(),
            vertices=self.vertices.copy(),
            uvs=self.uvs.copy(),
            triangles=self.triangles.copy(),
            original_index=self.original_index.copy(),
            scanned_edge=self.scanned_edge.copy(),
            created_edge={k: set(v) for k, v in self.created_edge.items()},
            colors=None if self.colors is None else self.colors.copy(),
            normals=self.normals.copy(),
        )

    def local_index_table(self, removed: Iterable[int]) -> np.ndarray:
        """New local index for every vertex, -1 for removed ones."""
        keep = np.ones(self.vertex_count, dtype=bool)
        removed = np.asarray(list(removed), dtype=np.int64)
        if len(removed):
            if removed.min() < 0 or removed.max() >= self.vertex_count:
                raise IndexError(f"Removed vertex out of range for {self.name} "
                                 f"({self.vertex_count} vertices)")
            keep[removed] = False
        table = np.full(self.vertex_count, -1, dtype=np.int64)
        table[keep] = np.arange(int(keep.sum()))
        return table

    def remove_vertices(self, removed: Iterable[int]) -> 'GroupSubmesh':
        """
        Return a compacted copy without the ``removed`` local vertices.

        Triangles touching a removed vertex are dropped. Surviving vertices
        that lose some, but not all, of their triangles become scanned edges,
        since they now border the removed area.
        """
        table = self.local_index_table(removed)
        keep = table >= 0
        if keep.all():
            return self.copy()

        tris = self.triangles
        removed_tris = ~keep[tris].all(axis=1) if len(tris) else np.zeros(0, dtype=bool)

        vc = self.vertex_count
        total_per_vertex = np.bincount(tris.reshape(-1), minlength=vc) if len(tris) else np.zeros(vc, int)
        removed_per_vertex = (np.bincount(tris[removed_tris].reshape(-1), minlength=vc)
                              if removed_tris.any() else np.zeros(vc, int))
        partially_cut = (removed_per_vertex > 0) & (removed_per_vertex < total_per_vertex)

        was_edge = np.zeros(vc, dtype=bool)
        was_edge[self.scanned_edge] = True
        new_edges = table[keep & (was_edge | partially_cut)]

        new_created = {}
        for local, regions in self.created_edge.items():
            if table[local] >= 0:
                new_created[int(table[local])] = set(regions)

        result = GroupSubmesh(
            group=self.group,
            origin=self.origin.copy(),
            vertices=self.vertices[keep],
            uvs=self.uvs[keep],
            triangles=table[tris[~removed_tris]] if len(tris) else tris.copy(),
            original_index=self.original_index[keep],
            scanned_edge=new_edges,
            created_edge=new_created,
            colors=None if self.colors is None else self.colors[keep],
        )
        logger.debug(f"{self.name}: removed {vc - result.vertex_count} vertices, "
                     f"{int(removed_tris.sum())} triangles")
        return result
