#!/usr/bin/env python3
"""
Small mesh helpers shared by the reconstruction stages.
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import open3d as o3d

logger = logging.getLogger(__name__)


def compute_vertex_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """
    Area-weighted vertex normals.

    Vertices with no adjacent triangles, or whose face normals cancel out,
    get a zero normal instead of NaN.
    """
    vertices = np.asarray(vertices, dtype=float).reshape(-1, 3)
    triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    normals = np.zeros_like(vertices)
    if len(vertices) == 0 or len(triangles) == 0:
        return normals

    v0 = vertices[triangles[:, 0]]
    v1 = vertices[triangles[:, 1]]
    v2 = vertices[triangles[:, 2]]
    face_normals = np.cross(v1 - v0, v2 - v0)

    for corner in range(3):
        np.add.at(normals, triangles[:, corner], face_normals)

    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    valid = lengths[:, 0] > 1e-12
    normals[valid] /= lengths[valid]
    normals[~valid] = 0.0
    return normals


def centroid(points: np.ndarray) -> np.ndarray:
    """Mean of a point set, the zero vector for an empty set."""
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(points) == 0:
        return np.zeros(3)
    return points.mean(axis=0)


def largest_axis(vector: np.ndarray) -> int:
    """Index of the component with the largest magnitude (first on ties)."""
    return int(np.argmax(np.abs(np.asarray(vector, dtype=float))))


def to_open3d_mesh(vertices: np.ndarray, triangles: np.ndarray,
                   uvs: Optional[np.ndarray] = None) -> o3d.geometry.TriangleMesh:
    """Build an Open3D triangle mesh, with per-corner UVs when ``uvs`` is given."""
    mesh = o3d.geometry.TriangleMesh()
    mesh.vertices = o3d.utility.Vector3dVector(np.asarray(vertices, dtype=np.float64).reshape(-1, 3))
    tris = np.asarray(triangles, dtype=np.int32).reshape(-1, 3)
    mesh.triangles = o3d.utility.Vector3iVector(tris)
    if uvs is not None and len(tris) > 0:
        uvs = np.asarray(uvs, dtype=np.float64).reshape(-1, 2)
        mesh.triangle_uvs = o3d.utility.Vector2dVector(uvs[tris.reshape(-1)])
    mesh.compute_vertex_normals()
    return mesh


def write_mesh(path: Path, vertices: np.ndarray, triangles: np.ndarray,
               uvs: Optional[np.ndarray] = None) -> bool:
    """Write a mesh file (format from the extension) through Open3D."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    mesh = to_open3d_mesh(vertices, triangles, uvs)
    success = o3d.io.write_triangle_mesh(str(path), mesh)
    if success:
        logger.debug(f"Saved mesh with {len(mesh.vertices)} vertices to {path}")
    else:
        logger.error(f"Failed to write mesh to {path}")
    return success
