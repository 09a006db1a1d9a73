#!/usr/bin/env python3
"""
Final body scan model: group meshes in group-local frames, linking meshes,
edge hooks and region textures, plus export helpers.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import cv2
import numpy as np

from ..geometry.mesh_ops import compute_vertex_normals, write_mesh
from ..geometry.transforms import Transform
from ..skeleton.anatomy import GROUP_NAMES, GROUP_TEXTURE_REGION, TEXTURE_REGION_NAMES
from ..skeleton.skeleton import Skeleton
from .linking import EdgeHook, LinkingMesh
from .stitcher import StitchedGroupMesh
from .texture_atlas import TextureAtlas

logger = logging.getLogger(__name__)


@dataclass
class GroupMesh:
    """Stitched mesh of one group, attached to the group's POI transform."""
    group: int
    transform: Transform
    vertices: np.ndarray        # group-local
    uvs: np.ndarray
    triangles: np.ndarray
    normals: np.ndarray = None

    def __post_init__(self):
        if self.normals is None:
            self.normals = compute_vertex_normals(self.vertices, self.triangles)

    @property
    def name(self) -> str:
        return GROUP_NAMES[self.group]

    @property
    def texture_region(self) -> int:
        return GROUP_TEXTURE_REGION[self.group]

    def world_vertices(self) -> np.ndarray:
        return self.transform.apply(self.vertices).reshape(-1, 3)


@dataclass
class BodyScan:
    """Everything the rendering layer needs to display and animate a scan."""
    groups: List[GroupMesh]
    linking_meshes: List[LinkingMesh]
    hooks: List[EdgeHook] = field(default_factory=list)
    textures: List[Optional[np.ndarray]] = field(default_factory=list)

    @classmethod
    def assemble(cls, stitched: Sequence[StitchedGroupMesh], linking_meshes: List[LinkingMesh],
                 hooks: List[EdgeHook], atlas: TextureAtlas, skeleton: Skeleton) -> 'BodyScan':
        """
        Attach stitched groups to their POI transforms.

        Stitched vertices are POI-relative in scan orientation; they are
        rotated into the POI's frame so that posing the POI poses the mesh.
        """
        groups = []
        for mesh in stitched:
            transform = skeleton.group_transform(mesh.group)
            orientation = Transform(rotation=transform.rotation)
            local = orientation.inverse_apply(mesh.vertices).reshape(-1, 3)
            groups.append(GroupMesh(mesh.group, transform, local, mesh.uvs.copy(),
                                    mesh.triangles.copy()))
        textures = [region.image for region in atlas.regions]
        return cls(groups, linking_meshes, list(hooks), textures)

    def hooks_for_group(self, group: int) -> List[EdgeHook]:
        return [h for h in self.hooks if h.group == group]

    def hook_local_position(self, hook: EdgeHook) -> np.ndarray:
        return self.groups[hook.group].vertices[hook.vertex]

    def hook_world_position(self, hook: EdgeHook) -> np.ndarray:
        return self.groups[hook.group].transform.apply(self.hook_local_position(hook))

    def update_linking_meshes(self):
        """Move every linking vertex to its hook's current world position."""
        for hook in self.hooks:
            self.linking_meshes[hook.region].vertices[hook.linking_index] = self.hook_world_position(hook)
        for mesh in self.linking_meshes:
            mesh.recalculate_normals()

    def export(self, output_dir: Path) -> List[Path]:
        """
        Write group and linking meshes as PLY and region textures as PNG.

        Returns:
            Paths of the written files
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        written = []

        for group in self.groups:
            if len(group.vertices) == 0:
                continue
            path = output_dir / f"{group.group:02d}_{group.name}.ply"
            if write_mesh(path, group.world_vertices(), group.triangles, group.uvs):
                written.append(path)

        for mesh in self.linking_meshes:
            if mesh.vertex_count == 0:
                continue
            path = output_dir / f"link_{mesh.region}_{mesh.name}.ply"
            if write_mesh(path, mesh.vertices, mesh.triangles, mesh.uvs):
                written.append(path)

        for region, texture in enumerate(self.textures):
            if texture is None:
                continue
            path = output_dir / f"texture_{region}_{TEXTURE_REGION_NAMES[region]}.png"
            if cv2.imwrite(str(path), cv2.cvtColor(texture, cv2.COLOR_RGB2BGR)):
                written.append(path)
            else:
                logger.error(f"Failed to write texture {path}")

        logger.info(f"Exported {len(written)} files to {output_dir}")
        return written
