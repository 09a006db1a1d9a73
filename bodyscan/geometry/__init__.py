"""
Geometry helpers: rigid transforms and mesh utilities.
"""

from .mesh_ops import compute_vertex_normals, write_mesh
from .transforms import Transform, compose, local_to_world, rotation_about_y

__all__ = ["compute_vertex_normals", "write_mesh", "Transform", "compose", "local_to_world",
           "rotation_about_y"]
